import logging
import uuid
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Union

from config import CHEAP_INGREDIENTS, PLAN_TEMPERATURE
from app.crud import meal_plan as crud_meal_plan
from app.crud import recipe_history as crud_recipe_history
from app.crud import shopping_list as crud_shopping_list
from app.crud import user_profile as crud_user_profile
from app.crud.documents import DocumentStore, PLANS
from app.exceptions import GenerationFailure, InvalidInput, NotFound
from app.schemas.meal_plan import (
    MEAL_TYPES,
    PLAN_LENGTH_DAYS,
    DayPlan,
    FavoriteRecipe,
    GeneratedPlan,
    MealSlot,
    PlanDocument,
    PlanGenerationRequest,
    PlanGenerationResult,
    PlanPreferences,
    RecipeDetail,
)
from app.services import llm_service
from app.services.llm_service import Instruction
from app.services import nutrition_service
from app.services import shopping_list_service
from app.services.fixed_meal_service import FixedMealResolver
from app.utils.llm_prompts.plan_prompts import (
    PLAN_GENERATOR_SYSTEM_PROMPT,
    PLAN_GENERATION_USER_PROMPT,
    PLAN_FEEDBACK_BLOCK,
    RECIPE_DETAIL_SYSTEM_PROMPT,
    RECIPE_DETAIL_USER_PROMPT,
)

logger = logging.getLogger(__name__)

"""
Meal Plan Service
-----------------
Orchestrates the generation of 14-day Meal Plans.
1. Builds the generation instruction (targets, preferences, fixed slots, cheat days).
2. Calls the plan generator (LLM).
3. Validates the answer, with one repair pass.
4. Overlays the user's fixed meals.
5. Re-stamps dates and cheat days (the generator is not trusted with either).
6. Derives the shopping list from all 42 meals.

The plan lifecycle (pending -> active / archived, cook, swap) lives below the orchestrator.
"""

CHEAT_DAY_SCHEDULE = {
    "weekly": {7, 14},
    "biweekly": {14},
}


class PlanGenerator(Protocol):
    def generate(self, instruction: Instruction) -> Union[str, Dict[str, Any]]:
        ...


class LLMPlanGenerator:
    """Plan generator backed by the configured chat model in JSON mode."""

    def __init__(self, temperature: float = PLAN_TEMPERATURE, max_tokens: int = 16000):
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(self, instruction: Instruction) -> str:
        return llm_service.call_llm(
            system_prompt=instruction.system,
            user_prompt=instruction.user,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=True,
        )


def cheat_day_numbers(frequency: str) -> Set[int]:
    """Plan-relative (1-based) day numbers that are cheat days."""
    return CHEAT_DAY_SCHEDULE[frequency]


def _format_scores(scores: Dict[str, float], limit: int = 8) -> str:
    if not scores:
        return "none yet"
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:limit]
    return ", ".join(f"{label} ({score:+.1f})" for label, score in ranked)


class MealPlanOrchestrator:
    def __init__(self, generator: PlanGenerator):
        self.generator = generator

    def build_instruction(self, request: PlanGenerationRequest) -> Instruction:
        targets = request.targets
        meal_targets = nutrition_service.calculate_meal_targets(targets)

        meal_target_lines = "\n".join(
            f"- {meal_type}: {t['calories']} kcal, P {t['protein']} g, F {t['fat']} g, C {t['carbs']} g"
            for meal_type, t in meal_targets.items()
        )
        fixed_lines = "\n".join(
            f"- {meal_type}: {slot.title} (every day)" for meal_type, slot in request.fixed_meals.items()
        ) or "none"
        favorite_lines = "\n".join(
            f"- {recipe.title}" + (f" [{', '.join(recipe.tags)}]" if recipe.tags else "")
            for recipe in request.favorite_recipes
        ) or "none yet"
        feedback_block = ""
        if request.feedback_text:
            feedback_block = PLAN_FEEDBACK_BLOCK.format(feedback=request.feedback_text)

        user_prompt = PLAN_GENERATION_USER_PROMPT.format(
            days=PLAN_LENGTH_DAYS,
            start_date=request.start_date.isoformat(),
            target_calories=round(targets.target_calories),
            protein=targets.pfc.protein,
            fat=targets.pfc.fat,
            carbs=targets.pfc.carbs,
            strategy_summary=targets.strategy_summary or "-",
            meal_targets=meal_target_lines,
            cheat_days=", ".join(str(n) for n in sorted(cheat_day_numbers(request.cheat_day_frequency))),
            fixed_meals=fixed_lines,
            cuisines=_format_scores(request.preferences.cuisines),
            flavors=_format_scores(request.preferences.flavors),
            disliked=", ".join(request.preferences.disliked_ingredients) or "none",
            favorites=favorite_lines,
            cheap_ingredients=", ".join(request.cheap_ingredients) or "none",
            feedback_block=feedback_block,
        )
        return Instruction(
            system=PLAN_GENERATOR_SYSTEM_PROMPT.format(days=PLAN_LENGTH_DAYS),
            user=user_prompt,
        )

    def _invoke(self, instruction: Instruction):
        try:
            return self.generator.generate(instruction)
        except GenerationFailure:
            raise
        except Exception as e:
            logger.error(f"[Meal Service] Plan generator failed: {e}")
            raise GenerationFailure(f"Plan generator failed: {e}", stage="invoke") from e

    def _overlay_fixed_meals(self, days: List[DayPlan], fixed_meals: Dict[str, MealSlot]) -> List[DayPlan]:
        if not fixed_meals:
            return days
        overlaid = []
        for day in days:
            meals = day.meals.model_copy(update={
                meal_type: slot.model_copy(deep=True) for meal_type, slot in fixed_meals.items()
            })
            overlaid.append(day.model_copy(update={"meals": meals}))
        return overlaid

    def _restamp(self, days: List[DayPlan], start_date: date, frequency: str) -> List[DayPlan]:
        cheat_days = cheat_day_numbers(frequency)
        return [
            day.model_copy(update={
                "date": start_date + timedelta(days=index),
                "is_cheat_day": (index + 1) in cheat_days,
            })
            for index, day in enumerate(days)
        ]

    def _build_shopping_list(self, days: List[DayPlan]):
        usages = [
            shopping_list_service.parse_ingredient(text)
            for day in days
            for _, slot in day.meals.slots()
            for text in slot.ingredients
        ]
        return shopping_list_service.aggregate(usages)

    def generate(self, request: PlanGenerationRequest) -> PlanGenerationResult:
        logger.info(
            f"[Meal Service] Generating {PLAN_LENGTH_DAYS}-day plan from {request.start_date} "
            f"({request.cheat_day_frequency} cheat days, fixed: {list(request.fixed_meals)})"
        )
        instruction = self.build_instruction(request)
        raw = self._invoke(instruction)
        generated = llm_service.decode_with_repair(raw, GeneratedPlan, "Plan generation")

        days = self._overlay_fixed_meals(generated.days, request.fixed_meals)
        days = self._restamp(days, request.start_date, request.cheat_day_frequency)
        shopping_list = self._build_shopping_list(days)

        logger.info(f"[Meal Service] Plan ready: {len(days)} days, {len(shopping_list)} shopping items")
        return PlanGenerationResult(
            days=days,
            shopping_list=shopping_list,
            degraded_fixed_meals=request.degraded_fixed_meals,
        )

    def generate_recipe_detail(self, slot: MealSlot, disliked_ingredients: List[str]) -> RecipeDetail:
        """Ingredients and steps for one planned dish."""
        nutrition = slot.nutrition
        instruction = Instruction(
            system=RECIPE_DETAIL_SYSTEM_PROMPT,
            user=RECIPE_DETAIL_USER_PROMPT.format(
                title=slot.title,
                tags=", ".join(slot.tags) or "none",
                calories=round(nutrition.calories),
                protein=nutrition.protein,
                fat=nutrition.fat,
                carbs=nutrition.carbs,
                disliked=", ".join(disliked_ingredients) or "none",
            ),
        )
        raw = self._invoke(instruction)
        return llm_service.decode_with_repair(raw, RecipeDetail, "Recipe detail")


# ---------------------------------------------------------------------------
# Plan lifecycle
# ---------------------------------------------------------------------------

def _assign_recipe_ids(days: List[DayPlan], plan_id: str, fixed_meal_types: Iterable[str] = ()) -> List[DayPlan]:
    """Generated slots get pipeline-owned recipe ids; fixed slots stay unlinked."""
    fixed_meal_types = set(fixed_meal_types)
    stamped = []
    for day_number, day in enumerate(days, start=1):
        updates = {}
        for meal_type, slot in day.meals.slots():
            recipe_id = None if meal_type in fixed_meal_types else f"{plan_id}-d{day_number}-{meal_type}"
            updates[meal_type] = slot.model_copy(update={"recipe_id": recipe_id})
        stamped.append(day.model_copy(update={"meals": day.meals.model_copy(update=updates)}))
    return stamped


def _favorite_digest(store: DocumentStore, user_id: str) -> List[FavoriteRecipe]:
    return [
        FavoriteRecipe(id=item.id, title=item.title, tags=item.tags)
        for item in crud_recipe_history.get_favorites(store, user_id)
    ]


def _archive_plans(store: DocumentStore, user_id: str, status: str) -> None:
    for plan_id, _ in store.list(PLANS, userId=user_id, status=status):
        crud_meal_plan.update_plan_status(store, plan_id, "archived")
        logger.info(f"[Meal Service] Archived {status} plan {plan_id}")


def generate_plan_for_user(
    store: DocumentStore,
    orchestrator: MealPlanOrchestrator,
    user_id: str,
    start_date: Optional[date] = None
) -> PlanDocument:
    """
    Full pipeline: targets -> preferences -> fixed meals -> generation -> storage.
    The new plan is stored as `pending` until the user approves it.
    """
    user = crud_user_profile.get_user_or_404(store, user_id)
    if user.profile is None:
        raise InvalidInput(f"User {user_id} has no profile; complete onboarding first")

    targets = nutrition_service.compute_targets(user.profile, user.nutrition_preferences)
    crud_user_profile.save_nutrition(store, user_id, targets)

    learned = crud_user_profile.get_or_create_learned_profile(store, user_id)
    fixed_meals, degraded = FixedMealResolver().resolve_with_report(user.fixed_meals)

    request = PlanGenerationRequest(
        targets=targets,
        preferences=PlanPreferences(
            cuisines=learned.cuisines,
            flavors=learned.flavors,
            disliked_ingredients=learned.disliked_ingredients,
        ),
        favorite_recipes=_favorite_digest(store, user_id),
        cheap_ingredients=CHEAP_INGREDIENTS,
        cheat_day_frequency=user.cheat_day_frequency,
        start_date=start_date or date.today(),
        fixed_meals=fixed_meals,
        degraded_fixed_meals=degraded,
        feedback_text=user.plan_rejection_feedback,
    )
    result = orchestrator.generate(request)

    _archive_plans(store, user_id, "pending")

    plan_id = str(uuid.uuid4())
    plan = crud_meal_plan.save_plan(store, PlanDocument(
        id=plan_id,
        user_id=user_id,
        start_date=request.start_date,
        status="pending",
        days=_assign_recipe_ids(result.days, plan_id, request.fixed_meals),
        degraded_fixed_meals=result.degraded_fixed_meals,
    ))
    crud_shopping_list.create_shopping_list(store, plan_id, result.shopping_list)

    for day in plan.days:
        for _, slot in day.meals.slots():
            crud_recipe_history.record_recipe(store, user_id, slot)

    if user.plan_rejection_feedback:
        crud_user_profile.set_rejection_feedback(store, user_id, None)

    logger.info(f"[Meal Service] Stored pending plan {plan_id} for user {user_id}")
    return plan


def _get_pending_owned_plan(store: DocumentStore, user_id: str, plan_id: str) -> PlanDocument:
    plan = crud_meal_plan.get_plan(store, plan_id)
    if plan is None or plan.user_id != user_id:
        raise NotFound(f"Plan {plan_id} not found for user {user_id}")
    if plan.status != "pending":
        raise InvalidInput(f"Plan {plan_id} is {plan.status}, only pending plans can be approved or rejected")
    return plan


def approve_plan(store: DocumentStore, user_id: str, plan_id: str) -> PlanDocument:
    _get_pending_owned_plan(store, user_id, plan_id)
    _archive_plans(store, user_id, "active")
    plan = crud_meal_plan.update_plan_status(store, plan_id, "active")
    logger.info(f"[Meal Service] Plan {plan_id} approved")
    return plan


def reject_plan(store: DocumentStore, user_id: str, plan_id: str, feedback: Optional[str] = None) -> PlanDocument:
    """Archives the proposal; the feedback steers the next generation."""
    _get_pending_owned_plan(store, user_id, plan_id)
    plan = crud_meal_plan.update_plan_status(store, plan_id, "archived")
    if feedback and feedback.strip():
        crud_user_profile.set_rejection_feedback(store, user_id, feedback.strip())
    logger.info(f"[Meal Service] Plan {plan_id} rejected")
    return plan


def get_plan(store: DocumentStore, plan_id: str) -> PlanDocument:
    return crud_meal_plan.get_plan_or_404(store, plan_id)


def get_active_plan(store: DocumentStore, user_id: str) -> Optional[PlanDocument]:
    return crud_meal_plan.find_plan_by_status(store, user_id, "active")


def get_pending_plan(store: DocumentStore, user_id: str) -> Optional[PlanDocument]:
    return crud_meal_plan.find_plan_by_status(store, user_id, "pending")


def _locate_slot(plan: PlanDocument, day: date, meal_type: str) -> MealSlot:
    day_plan = plan.find_day(day)
    if day_plan is None:
        raise NotFound(f"Day {day} not found in plan {plan.id}")
    if meal_type not in MEAL_TYPES:
        raise NotFound(f"Meal slot '{meal_type}' not found on {day}")
    return getattr(day_plan.meals, meal_type)


def _replace_slot(plan: PlanDocument, day: date, meal_type: str, slot: MealSlot) -> PlanDocument:
    days = []
    for day_plan in plan.days:
        if day_plan.date == day:
            meals = day_plan.meals.model_copy(update={meal_type: slot})
            day_plan = day_plan.model_copy(update={"meals": meals})
        days.append(day_plan)
    return plan.model_copy(update={"days": days})


def mark_meal_cooked(store: DocumentStore, plan_id: str, day: date, meal_type: str) -> MealSlot:
    plan = crud_meal_plan.get_plan_or_404(store, plan_id)
    slot = _locate_slot(plan, day, meal_type).model_copy(update={"status": "cooked"})
    crud_meal_plan.save_plan(store, _replace_slot(plan, day, meal_type, slot))

    if slot.recipe_id and crud_recipe_history.get_history_item(store, plan.user_id, slot.recipe_id):
        crud_recipe_history.mark_as_cooked(store, plan.user_id, slot.recipe_id)

    logger.info(f"[Meal Service] Plan {plan_id}: {day} {meal_type} cooked")
    return slot


def swap_meal(store: DocumentStore, plan_id: str, day: date, meal_type: str, replacement: MealSlot) -> MealSlot:
    """Supersedes one slot; the old meal stays in the recipe history."""
    plan = crud_meal_plan.get_plan_or_404(store, plan_id)
    _locate_slot(plan, day, meal_type)

    slot = replacement.model_copy(update={
        "status": "swapped",
        "recipe_id": replacement.recipe_id or f"{plan_id}-{day.isoformat()}-{meal_type}-{uuid.uuid4().hex[:8]}",
    })
    crud_meal_plan.save_plan(store, _replace_slot(plan, day, meal_type, slot))
    crud_recipe_history.record_recipe(store, plan.user_id, slot)

    logger.info(f"[Meal Service] Plan {plan_id}: {day} {meal_type} swapped to '{slot.title}'")
    return slot


def get_recipe_detail(
    store: DocumentStore,
    orchestrator: MealPlanOrchestrator,
    plan_id: str,
    day: date,
    meal_type: str
) -> MealSlot:
    """
    Returns the slot with ingredients and steps, generating them on first request.
    Generated details are written back to the plan and the recipe history.
    """
    plan = crud_meal_plan.get_plan_or_404(store, plan_id)
    slot = _locate_slot(plan, day, meal_type)
    if slot.ingredients and slot.steps:
        return slot
    if not slot.recipe_id:
        raise InvalidInput(f"{day} {meal_type} is a fixed meal and has no recipe")

    learned = crud_user_profile.get_or_create_learned_profile(store, plan.user_id)
    detail = orchestrator.generate_recipe_detail(slot, learned.disliked_ingredients)

    slot = slot.model_copy(update={"ingredients": detail.ingredients, "steps": detail.steps})
    crud_meal_plan.save_plan(store, _replace_slot(plan, day, meal_type, slot))
    if crud_recipe_history.get_history_item(store, plan.user_id, slot.recipe_id):
        crud_recipe_history.save_recipe_details(store, plan.user_id, slot.recipe_id, slot.ingredients, slot.steps)

    logger.info(f"[Meal Service] Plan {plan_id}: generated recipe detail for {day} {meal_type}")
    return slot
