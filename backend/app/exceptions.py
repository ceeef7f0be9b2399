"""
Failure Taxonomy
----------------
Typed failures raised by the planning pipeline. The API layer maps them to
HTTP status codes in app.main.
"""
from typing import Optional


class MealPlannerError(Exception):
    """Base class for every failure raised by the pipeline."""


class InvalidInput(MealPlannerError, ValueError):
    """Malformed or out-of-range request fields."""


class NotFound(MealPlannerError):
    """A referenced user, plan, day, meal slot, recipe or shopping list is absent."""


class GenerationFailure(MealPlannerError):
    """
    The generative boundary was unreachable, timed out, or returned content that
    could not be decoded into the expected schema after one repair attempt.
    """

    def __init__(self, message: str, stage: str = "invoke", raw: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        # Keep only a preview of the payload for logs / error responses
        self.raw = raw[:500] if raw else None


class ResolutionDegraded(UserWarning):
    """A fixed meal title could not be matched; a zero-nutrition placeholder is used."""
