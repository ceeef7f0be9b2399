import logging
import uuid
from typing import Any, Dict, Iterable, List, Protocol, Union

from pydantic import ValidationError

from config import ANALYZER_TEMPERATURE
from app.crud import recipe_history as crud_recipe_history
from app.crud import user_profile as crud_user_profile
from app.crud.documents import DocumentStore
from app.exceptions import GenerationFailure, InvalidInput
from app.schemas.meal_plan import RecipeHistoryItem
from app.schemas.preferences import (
    DELTA_LIMIT,
    FeedbackAnalysis,
    FeedbackRecord,
    LearnedPreferenceProfile,
    LearningResult,
    PreferenceDelta,
    RecipeSummary,
)
from app.services import llm_service
from app.services.llm_service import Instruction
from app.utils.llm_prompts.preference_prompts import (
    FEEDBACK_ANALYZER_SYSTEM_PROMPT,
    FEEDBACK_ANALYSIS_USER_PROMPT,
)

logger = logging.getLogger(__name__)

"""
Preference Learning Service
---------------------------
Learns what a user likes from post-meal feedback.
1. The feedback analyzer (LLM) reads recipe + ratings + comment.
2. Its per-label deltas are clamped to [-0.5, 0.5].
3. Deltas are added onto the stored profile; negative tags feed avoidPatterns.

The ledger is additive: scores are never decayed or normalized.
"""

DELTA_CATEGORIES = ("cuisines", "flavors", "ingredients")
AVOID_PATTERN_WEIGHT = 1.0


class FeedbackAnalyzer(Protocol):
    def analyze(self, instruction: Instruction) -> Union[str, Dict[str, Any]]:
        ...


class LLMFeedbackAnalyzer:
    """Feedback analyzer backed by the configured chat model in JSON mode."""

    def __init__(self, temperature: float = ANALYZER_TEMPERATURE, max_tokens: int = 1500):
        self.temperature = temperature
        self.max_tokens = max_tokens

    def analyze(self, instruction: Instruction) -> str:
        return llm_service.call_llm(
            system_prompt=instruction.system,
            user_prompt=instruction.user,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=True,
        )


def clamp_delta(delta: PreferenceDelta) -> PreferenceDelta:
    """Every value forced into [-DELTA_LIMIT, DELTA_LIMIT]."""
    def _clamp(scores: Dict[str, float]) -> Dict[str, float]:
        return {label: max(-DELTA_LIMIT, min(DELTA_LIMIT, value)) for label, value in scores.items()}

    return PreferenceDelta(**{category: _clamp(getattr(delta, category)) for category in DELTA_CATEGORIES})


def merge_delta(
    profile: LearnedPreferenceProfile,
    delta: PreferenceDelta,
    negative_tags: Iterable[str] = ()
) -> LearnedPreferenceProfile:
    """
    Adds a clamped delta onto a profile and counts one feedback.
    Addition is commutative, so the merge order of feedbacks does not matter.
    """
    updates = {}
    for category in DELTA_CATEGORIES:
        scores = dict(getattr(profile, category))
        for label, value in getattr(delta, category).items():
            scores[label] = scores.get(label, 0.0) + value
        updates[category] = scores

    avoid_patterns = dict(profile.avoid_patterns)
    for tag in negative_tags:
        avoid_patterns[tag] = avoid_patterns.get(tag, 0.0) + AVOID_PATTERN_WEIGHT
    updates["avoid_patterns"] = avoid_patterns
    updates["total_feedbacks"] = profile.total_feedbacks + 1

    return profile.model_copy(update=updates)


class PreferenceLearningEngine:
    def __init__(self, analyzer: FeedbackAnalyzer):
        self.analyzer = analyzer

    def build_instruction(self, recipe: RecipeSummary, feedback: FeedbackRecord) -> Instruction:
        ratings = feedback.ratings
        user_prompt = FEEDBACK_ANALYSIS_USER_PROMPT.format(
            title=recipe.title,
            tags=", ".join(recipe.tags) or "none",
            ingredients=", ".join(recipe.ingredients) or "none",
            cooked="yes" if feedback.cooked else "no",
            overall=ratings.overall,
            taste=ratings.taste,
            ease=ratings.ease,
            satisfaction=ratings.satisfaction,
            repeat_preference=feedback.repeat_preference,
            comment=feedback.comment or "none",
        )
        return Instruction(system=FEEDBACK_ANALYZER_SYSTEM_PROMPT, user=user_prompt)

    def analyze(self, recipe: RecipeSummary, feedback: FeedbackRecord) -> FeedbackAnalysis:
        """Raw analysis with deltas already clamped."""
        instruction = self.build_instruction(recipe, feedback)
        try:
            raw = self.analyzer.analyze(instruction)
        except GenerationFailure:
            raise
        except Exception as e:
            logger.error(f"[Preference Service] Feedback analyzer failed: {e}")
            raise GenerationFailure(f"Feedback analyzer failed: {e}", stage="invoke") from e

        analysis = llm_service.decode_with_repair(raw, FeedbackAnalysis, "Feedback analysis")
        return analysis.model_copy(update={"extracted_preferences": clamp_delta(analysis.extracted_preferences)})

    def learn(self, recipe: RecipeSummary, feedback: FeedbackRecord) -> PreferenceDelta:
        return self.analyze(recipe, feedback).extracted_preferences


def get_or_create_profile(store: DocumentStore, user_id: str) -> LearnedPreferenceProfile:
    return crud_user_profile.get_or_create_learned_profile(store, user_id)


def _recipe_summary(item: RecipeHistoryItem) -> RecipeSummary:
    return RecipeSummary(title=item.title, tags=item.tags, ingredients=item.ingredients)


def submit_feedback(
    store: DocumentStore,
    engine: PreferenceLearningEngine,
    user_id: str,
    payload: Union[FeedbackRecord, dict]
) -> LearningResult:
    """
    Stores a feedback record, learns from it and merges the delta into the
    user's profile.
    """
    if isinstance(payload, FeedbackRecord):
        feedback = payload
    else:
        try:
            feedback = FeedbackRecord.model_validate(payload)
        except ValidationError as e:
            raise InvalidInput(f"Invalid feedback: {e.errors(include_url=False)}") from e

    recipe = crud_recipe_history.get_history_item_or_404(store, user_id, feedback.recipe_id)

    feedback_id = str(uuid.uuid4())
    crud_recipe_history.save_feedback(store, user_id, feedback_id, feedback)

    analysis = engine.analyze(_recipe_summary(recipe), feedback)

    # Read-modify-write without a lock: concurrent feedback for one user is last-write-wins
    profile = get_or_create_profile(store, user_id)
    merged = merge_delta(profile, analysis.extracted_preferences, analysis.negative_tags)
    saved = crud_user_profile.save_learned_profile(store, user_id, merged)

    logger.info(
        f"[Preference Service] Learned from feedback {feedback_id} on '{recipe.title}': "
        f"+{analysis.positive_tags} -{analysis.negative_tags} (total {saved.total_feedbacks})"
    )
    return LearningResult(
        feedback_id=feedback_id,
        analysis=analysis,
        delta=analysis.extracted_preferences,
        profile=saved,
    )


def update_disliked_ingredients(
    store: DocumentStore,
    user_id: str,
    add: List[str] = (),
    remove: List[str] = ()
) -> LearnedPreferenceProfile:
    """Explicit, user-maintained list. Order of first addition is kept."""
    profile = get_or_create_profile(store, user_id)
    removed = {name.strip() for name in remove if name.strip()}

    disliked = [name for name in profile.disliked_ingredients if name not in removed]
    for name in add:
        name = name.strip()
        if name and name not in disliked and name not in removed:
            disliked.append(name)

    return crud_user_profile.save_learned_profile(
        store, user_id, profile.model_copy(update={"disliked_ingredients": disliked})
    )


def add_to_favorites(store: DocumentStore, user_id: str, recipe_id: str) -> RecipeHistoryItem:
    item = crud_recipe_history.add_to_favorites(store, user_id, recipe_id)
    logger.info(f"[Preference Service] User {user_id} favorited '{item.title}'")
    return item
