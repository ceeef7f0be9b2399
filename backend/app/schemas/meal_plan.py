from pydantic import Field, field_validator, model_validator
from typing import Dict, List, Literal, Optional
from datetime import date, datetime

from app.schemas.common import CamelModel
from app.schemas.user_profile import CheatDayFrequency, NutritionTargets

MealType = Literal["breakfast", "lunch", "dinner"]
MealStatus = Literal["planned", "swapped", "cooked"]
PlanStatus = Literal["pending", "active", "completed", "archived"]
ShoppingCategory = Literal["vegetable", "meat", "fish", "seasoning", "other"]

MEAL_TYPES = ("breakfast", "lunch", "dinner")
PLAN_LENGTH_DAYS = 14


class Nutrition(CamelModel):
    calories: float = 0.0
    protein: float = 0.0
    fat: float = 0.0
    carbs: float = 0.0

    def is_zero(self) -> bool:
        return not any((self.calories, self.protein, self.fat, self.carbs))


def _ingredient_to_text(value) -> str:
    # Models sometimes answer with {"name": ..., "amount": ...} objects
    if isinstance(value, dict):
        name = str(value.get("name", "")).strip()
        amount = str(value.get("amount", "")).strip()
        return f"{name} {amount}".strip()
    return str(value)


class MealSlot(CamelModel):
    recipe_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    status: MealStatus = "planned"
    nutrition: Nutrition = Field(default_factory=Nutrition)
    tags: List[str] = Field(default_factory=list)
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_as_set(cls, value):
        if value is None:
            return []
        return sorted({str(tag).strip() for tag in value if str(tag).strip()})

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients_as_text(cls, value):
        if value is None:
            return []
        return [_ingredient_to_text(item) for item in value]


class DayMeals(CamelModel):
    breakfast: MealSlot
    lunch: MealSlot
    dinner: MealSlot

    def slots(self):
        return [(meal_type, getattr(self, meal_type)) for meal_type in MEAL_TYPES]


class DayPlan(CamelModel):
    date: date
    is_cheat_day: bool = False
    meals: DayMeals

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_meals(cls, data):
        # Accept {"breakfast": ..., "lunch": ..., "dinner": ...} at day level
        if isinstance(data, dict) and "meals" not in data and all(m in data for m in MEAL_TYPES):
            data = dict(data)
            data["meals"] = {m: data.pop(m) for m in MEAL_TYPES}
        return data


class IngredientUsage(CamelModel):
    name: str
    amount: str = ""


class ShoppingListItem(CamelModel):
    ingredient: str
    amount: str = ""
    category: ShoppingCategory = "other"
    checked: bool = False


class GeneratedShoppingEntry(CamelModel):
    ingredient: str
    amount: str = ""
    category: Optional[str] = None


class RecipeDetail(CamelModel):
    """Shape the recipe-detail generator must return."""
    ingredients: List[str] = Field(..., min_length=1)
    steps: List[str] = Field(..., min_length=1)

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients_as_text(cls, value):
        return [_ingredient_to_text(item) for item in value] if isinstance(value, list) else value


class GeneratedPlan(CamelModel):
    """Shape the plan generator must return."""
    days: List[DayPlan] = Field(..., min_length=PLAN_LENGTH_DAYS, max_length=PLAN_LENGTH_DAYS)
    shopping_list: List[GeneratedShoppingEntry] = Field(default_factory=list)


class FavoriteRecipe(CamelModel):
    id: str
    title: str
    tags: List[str] = Field(default_factory=list)


class PlanPreferences(CamelModel):
    cuisines: Dict[str, float] = Field(default_factory=dict)
    flavors: Dict[str, float] = Field(default_factory=dict)
    disliked_ingredients: List[str] = Field(default_factory=list)


class PlanGenerationRequest(CamelModel):
    targets: NutritionTargets
    preferences: PlanPreferences = Field(default_factory=PlanPreferences)
    favorite_recipes: List[FavoriteRecipe] = Field(default_factory=list)
    cheap_ingredients: List[str] = Field(default_factory=list)
    cheat_day_frequency: CheatDayFrequency = "weekly"
    start_date: date
    fixed_meals: Dict[MealType, MealSlot] = Field(default_factory=dict)
    degraded_fixed_meals: List[MealType] = Field(default_factory=list)
    feedback_text: Optional[str] = None


class PlanGenerationResult(CamelModel):
    days: List[DayPlan]
    shopping_list: List[ShoppingListItem]
    degraded_fixed_meals: List[MealType] = Field(default_factory=list)


class PlanDocument(CamelModel):
    id: str
    user_id: str
    start_date: date
    status: PlanStatus = "pending"
    days: List[DayPlan]
    degraded_fixed_meals: List[MealType] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def find_day(self, day: date) -> Optional[DayPlan]:
        for day_plan in self.days:
            if day_plan.date == day:
                return day_plan
        return None


class ShoppingListDocument(CamelModel):
    plan_id: str
    items: List[ShoppingListItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class RecipeHistoryItem(CamelModel):
    id: str
    title: str
    tags: List[str] = Field(default_factory=list)
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    nutrition: Nutrition = Field(default_factory=Nutrition)
    proposed_at: datetime = Field(default_factory=datetime.utcnow)
    cooked_at: Optional[datetime] = None
    is_favorite: bool = False
    cooked_count: int = 0
    feedback_id: Optional[str] = None


# REQUESTS
class GeneratePlanRequest(CamelModel):
    start_date: Optional[date] = None


class RejectPlanRequest(CamelModel):
    feedback: Optional[str] = None


class SwapMealRequest(CamelModel):
    replacement: MealSlot


class ToggleItemRequest(CamelModel):
    checked: bool


# RESPONSES
class ShoppingListResponse(CamelModel):
    plan_id: str
    items: List[ShoppingListItem]
    unchecked_count: int
    grouped: Dict[ShoppingCategory, List[ShoppingListItem]] = Field(default_factory=dict)
