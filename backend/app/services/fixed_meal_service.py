import logging
import warnings
from typing import Dict, List, Optional, Tuple

from app.exceptions import ResolutionDegraded
from app.schemas.meal_plan import MEAL_TYPES, MealSlot, Nutrition
from app.schemas.user_profile import FixedMealTitles

logger = logging.getLogger(__name__)

"""
Fixed Meal Resolver
-------------------
Turns the meal titles a user has pinned (e.g. "プロテイン" every breakfast)
into nutrition-annotated meal slots using a small canonical food table.
Resolution never fails: unknown titles become zero-nutrition placeholders.
"""

# (calories, protein, fat, carbs); iteration order decides substring matches
FIXED_FOOD_TABLE: Dict[str, Tuple[float, float, float, float]] = {
    "プロテイン": (120, 24, 1, 3),
    "納豆ご飯": (350, 12, 5, 60),
    "ゆで卵": (80, 7, 5, 0.5),
    "サラダチキン": (120, 25, 2, 0),
    "オートミール": (110, 4, 2, 19),
    "コーヒー": (10, 0.5, 0, 1),
    "トースト": (200, 6, 3, 35),
    "ヨーグルト": (60, 4, 3, 5),
    "バナナ": (86, 1, 0.2, 22),
}

FIXED_TAG = "fixed"
UNRESOLVED_TAG = "unresolved"


def lookup_nutrition(title: str) -> Optional[Nutrition]:
    """Exact match first, then the first table key contained in the title."""
    values = FIXED_FOOD_TABLE.get(title)
    if values is None:
        for key, candidate in FIXED_FOOD_TABLE.items():
            if key in title:
                values = candidate
                break
    if values is None:
        return None

    calories, protein, fat, carbs = values
    return Nutrition(calories=calories, protein=protein, fat=fat, carbs=carbs)


class FixedMealResolver:
    def resolve_with_report(self, titles: FixedMealTitles) -> Tuple[Dict[str, MealSlot], List[str]]:
        """
        Returns the resolved slots and the names of slots that fell back to a
        zero-nutrition placeholder.
        """
        resolved: Dict[str, MealSlot] = {}
        degraded: List[str] = []

        for meal_type in MEAL_TYPES:
            title = (getattr(titles, meal_type) or "").strip()
            if not title:
                continue

            nutrition = lookup_nutrition(title)
            if nutrition is not None:
                resolved[meal_type] = MealSlot(title=title, nutrition=nutrition, tags=[FIXED_TAG])
                continue

            message = f"Fixed {meal_type} '{title}' not in food table; using zero nutrition"
            logger.warning(f"[FixedMealResolver] {message}")
            warnings.warn(message, ResolutionDegraded, stacklevel=2)
            resolved[meal_type] = MealSlot(title=title, tags=[FIXED_TAG, UNRESOLVED_TAG])
            degraded.append(meal_type)

        return resolved, degraded

    def resolve(self, titles: FixedMealTitles) -> Dict[str, MealSlot]:
        resolved, _ = self.resolve_with_report(titles)
        return resolved
