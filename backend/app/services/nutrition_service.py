import logging
from typing import Dict, Optional

from pydantic import ValidationError

from app.exceptions import InvalidInput
from app.schemas.user_profile import (
    CalculateNutritionRequest,
    NutritionPreferences,
    NutritionTargets,
    PFC,
    UserProfile,
)

logger = logging.getLogger(__name__)

"""
Nutrition Service
-----------------
Handles all the mathematical logic for nutrition planning.
This module is pure business logic and does not depend on the Database or Models directly.
"""

ACTIVITY_MULTIPLIERS = {
    'sedentary': 1.2,        # Little or no exercise
    'light': 1.375,          # Light exercise 1-3 days/week
    'moderate': 1.55,        # Moderate exercise 3-5 days/week
    'active': 1.725,         # Hard exercise 6-7 days/week
    'very_active': 1.9       # Very hard exercise & physical job
}

# Default daily calorie adjustment per goal (kcal/day)
GOAL_ADJUSTMENTS = {
    'lose': -500.0,
    'maintain': 0.0,
    'gain': 300.0,
}

GAIN_STRATEGY_MULTIPLIERS = {
    'lean': 0.75,
    'standard': 1.0,
    'aggressive': 1.25,
}

# Share of target calories coming from fat
FAT_SHARES = {
    'balanced': 0.25,
    'lowfat': 0.15,
    'highprotein': 0.20,
    'lowcarb': 0.35,
}

KCAL_PER_KG_BODY_FAT = 7700
DAYS_PER_MONTH = 30
PROTEIN_PER_KG = 2.0

# Share of the daily targets per meal
MEAL_SPLIT = {
    'breakfast': 0.2,
    'lunch': 0.4,
    'dinner': 0.4,
}


def calculate_bmr(profile: UserProfile) -> float:
    """Basal Metabolic Rate, Mifflin-St Jeor."""
    base = (10 * profile.weight_kg) + (6.25 * profile.height_cm) - (5 * profile.age)
    if profile.gender == 'male':
        return base + 5
    return base - 161


def _pace_to_daily_kcal(pace_kg_per_month: float) -> float:
    return pace_kg_per_month * KCAL_PER_KG_BODY_FAT / DAYS_PER_MONTH


def calculate_goal_adjustment(goal: str, preferences: Optional[NutritionPreferences] = None) -> float:
    """
    Daily calorie delta for the goal.
    Overrides only apply when they belong to the selected goal.
    """
    adjustment = GOAL_ADJUSTMENTS[goal]
    if preferences is None:
        return adjustment

    if goal == 'lose' and preferences.loss_pace_kg_per_month is not None:
        adjustment = -_pace_to_daily_kcal(preferences.loss_pace_kg_per_month)

    elif goal == 'maintain' and preferences.maintenance_adjust_kcal_per_day is not None:
        adjustment = preferences.maintenance_adjust_kcal_per_day

    elif goal == 'gain':
        if preferences.gain_pace_kg_per_month is not None:
            adjustment = _pace_to_daily_kcal(preferences.gain_pace_kg_per_month)
        adjustment *= GAIN_STRATEGY_MULTIPLIERS[preferences.gain_strategy or 'standard']

    return adjustment


def calculate_pfc(weight_kg: float, target_calories: float, macro_preset: str = 'balanced') -> PFC:
    """
    Protein first (2 g/kg), fat from the preset share, carbs take the remainder.
    Carbs are clamped at zero when protein and fat already exceed the target.
    """
    protein = weight_kg * PROTEIN_PER_KG
    fat = target_calories * FAT_SHARES[macro_preset] / 9
    carbs = max((target_calories - protein * 4 - fat * 9) / 4, 0.0)

    return PFC(
        protein=round(protein, 1),
        fat=round(fat, 1),
        carbs=round(carbs, 1),
    )


def _strategy_summary(profile: UserProfile, adjustment: float, preferences: Optional[NutritionPreferences]) -> str:
    preset = (preferences.macro_preset if preferences else None) or 'balanced'
    if profile.goal == 'lose':
        goal_text = f"Weight loss: {abs(adjustment):.0f} kcal/day deficit"
    elif profile.goal == 'gain':
        strategy = (preferences.gain_strategy if preferences else None) or 'standard'
        goal_text = f"Weight gain ({strategy}): {adjustment:.0f} kcal/day surplus"
    elif adjustment:
        goal_text = f"Maintenance: {adjustment:+.0f} kcal/day adjustment"
    else:
        goal_text = "Maintenance: no calorie adjustment"
    return f"{goal_text}, {preset} macros (protein {PROTEIN_PER_KG:g} g/kg, fat {FAT_SHARES[preset]:.0%})"


def compute_targets(profile: UserProfile, preferences: Optional[NutritionPreferences] = None) -> NutritionTargets:
    """
    Calculates daily calorie and macronutrient targets based on physical attributes.

    Algorithm:
    1. BMR (Mifflin-St Jeor)
    2. TDEE (Activity Multiplier)
    3. Goal Adjustment (default deficit/surplus, or goal-matched overrides)
    4. Macro Split (Protein first, Fat from preset, Carbs remainder)

    bmr, tdee and target_calories are returned unrounded; PFC grams to one decimal.
    """
    logger.info(
        f"[Nutrition Service] Calculating for: {profile.weight_kg}kg, {profile.height_cm}cm, "
        f"{profile.age}yrs, {profile.gender}, {profile.activity_level}, {profile.goal}"
    )

    bmr = calculate_bmr(profile)
    tdee = bmr * ACTIVITY_MULTIPLIERS[profile.activity_level]

    adjustment = calculate_goal_adjustment(profile.goal, preferences)
    target_calories = tdee + adjustment

    macro_preset = (preferences.macro_preset if preferences else None) or 'balanced'
    pfc = calculate_pfc(profile.weight_kg, target_calories, macro_preset)

    if pfc.carbs == 0:
        logger.warning(
            f"[Nutrition Service] Protein and fat exceed {target_calories:.0f} kcal; carbs clamped to 0"
        )

    return NutritionTargets(
        bmr=bmr,
        tdee=tdee,
        target_calories=target_calories,
        pfc=pfc,
        strategy_summary=_strategy_summary(profile, adjustment, preferences),
    )


def calculate_meal_targets(targets: NutritionTargets) -> Dict[str, Dict[str, int]]:
    """Splits the daily targets across breakfast / lunch / dinner (20 / 40 / 40)."""
    return {
        meal_type: {
            "calories": round(targets.target_calories * share),
            "protein": round(targets.pfc.protein * share),
            "fat": round(targets.pfc.fat * share),
            "carbs": round(targets.pfc.carbs * share),
        }
        for meal_type, share in MEAL_SPLIT.items()
    }


def parse_nutrition_request(payload: dict) -> CalculateNutritionRequest:
    """Validates a raw calculation payload, surfacing range errors as InvalidInput."""
    try:
        return CalculateNutritionRequest.model_validate(payload)
    except ValidationError as e:
        raise InvalidInput(f"Invalid profile: {e.errors(include_url=False)}") from e
