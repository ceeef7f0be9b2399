from pydantic import ConfigDict, Field, model_validator
from typing import Dict, List, Literal, Optional
from datetime import datetime

from app.schemas.common import CamelModel

RepeatPreference = Literal["definitely", "sometimes", "never"]

DELTA_LIMIT = 0.5


class LearnedPreferenceProfile(CamelModel):
    cuisines: Dict[str, float] = Field(default_factory=dict)
    flavors: Dict[str, float] = Field(default_factory=dict)
    ingredients: Dict[str, float] = Field(default_factory=dict)
    avoid_patterns: Dict[str, float] = Field(default_factory=dict)
    disliked_ingredients: List[str] = Field(default_factory=list)
    total_feedbacks: int = 0
    updated_at: Optional[datetime] = None


class PreferenceDelta(CamelModel):
    model_config = ConfigDict(allow_inf_nan=False)

    cuisines: Dict[str, float] = Field(default_factory=dict)
    flavors: Dict[str, float] = Field(default_factory=dict)
    ingredients: Dict[str, float] = Field(default_factory=dict)


class FeedbackAnalysis(CamelModel):
    """Shape the feedback analyzer must return."""
    positive_tags: List[str] = Field(default_factory=list)
    negative_tags: List[str] = Field(default_factory=list)
    extracted_preferences: PreferenceDelta = Field(default_factory=PreferenceDelta)

    @model_validator(mode="before")
    @classmethod
    def _require_analysis_fields(cls, data):
        # An object carrying none of the fields is a wrapper, not an analysis
        if isinstance(data, dict) and not any(
            key in data for key in ("positiveTags", "negativeTags", "extractedPreferences",
                                    "positive_tags", "negative_tags", "extracted_preferences")
        ):
            raise ValueError("no analysis fields present")
        return data


class FeedbackRatings(CamelModel):
    overall: float = Field(..., ge=1, le=5)
    taste: float = Field(..., ge=1, le=5)
    ease: float = Field(..., ge=1, le=5)
    satisfaction: float = Field(..., ge=1, le=5)


class FeedbackRecord(CamelModel):
    model_config = ConfigDict(frozen=True)

    recipe_id: str = Field(..., min_length=1)
    cooked: bool
    ratings: FeedbackRatings
    repeat_preference: RepeatPreference
    comment: str = ""


class RecipeSummary(CamelModel):
    title: str
    tags: List[str] = Field(default_factory=list)
    ingredients: List[str] = Field(default_factory=list)


class LearningResult(CamelModel):
    feedback_id: str
    analysis: FeedbackAnalysis
    delta: PreferenceDelta
    profile: LearnedPreferenceProfile


# REQUESTS
class DislikedIngredientsUpdate(CamelModel):
    add: List[str] = Field(default_factory=list)
    remove: List[str] = Field(default_factory=list)
