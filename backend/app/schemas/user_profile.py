# app/schemas/user_profile.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional

from app.schemas.common import CamelModel

Gender = Literal["male", "female"]
ActivityLevel = Literal["sedentary", "light", "moderate", "active", "very_active"]
Goal = Literal["lose", "maintain", "gain"]
GainStrategy = Literal["lean", "standard", "aggressive"]
MacroPreset = Literal["balanced", "lowfat", "lowcarb", "highprotein"]
CheatDayFrequency = Literal["weekly", "biweekly"]


class UserProfile(BaseModel):
    age: int = Field(..., ge=1, le=120, description="Age in years")
    gender: Gender
    height_cm: float = Field(..., ge=50, le=300, description="Height in cm")
    weight_kg: float = Field(..., ge=10, le=500, description="Current weight in kg")
    activity_level: ActivityLevel
    goal: Goal

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "age": 30,
                "gender": "male",
                "height_cm": 175.0,
                "weight_kg": 70.0,
                "activity_level": "moderate",
                "goal": "lose",
            }
        },
    )


class NutritionPreferences(CamelModel):
    loss_pace_kg_per_month: Optional[float] = Field(None, ge=0)
    maintenance_adjust_kcal_per_day: Optional[float] = None
    gain_pace_kg_per_month: Optional[float] = Field(None, ge=0)
    gain_strategy: Optional[GainStrategy] = None
    macro_preset: Optional[MacroPreset] = None


class PFC(CamelModel):
    protein: float
    fat: float
    carbs: float


class NutritionTargets(CamelModel):
    bmr: float
    tdee: float
    target_calories: float
    pfc: PFC
    strategy_summary: Optional[str] = None


class FixedMealTitles(CamelModel):
    breakfast: Optional[str] = None
    lunch: Optional[str] = None
    dinner: Optional[str] = None


class UserDocument(CamelModel):
    """Stored per user in the `users` collection."""
    profile: Optional[UserProfile] = None
    nutrition_preferences: Optional[NutritionPreferences] = None
    nutrition: Optional[NutritionTargets] = None
    cheat_day_frequency: CheatDayFrequency = "weekly"
    fixed_meals: FixedMealTitles = Field(default_factory=FixedMealTitles)
    plan_rejection_feedback: Optional[str] = None


# REQUESTS
class CalculateNutritionRequest(CamelModel):
    profile: UserProfile
    preferences: Optional[NutritionPreferences] = None


class UserSettingsUpdate(CamelModel):
    profile: Optional[UserProfile] = None
    nutrition_preferences: Optional[NutritionPreferences] = None
    cheat_day_frequency: Optional[CheatDayFrequency] = None
    fixed_meals: Optional[FixedMealTitles] = None
