import itertools
import unittest

from app.exceptions import InvalidInput
from app.schemas.user_profile import NutritionPreferences, UserProfile
from app.services.nutrition_service import (
    calculate_meal_targets,
    compute_targets,
    parse_nutrition_request,
)


def make_profile(**overrides):
    data = dict(
        age=30,
        gender="male",
        height_cm=175.0,
        weight_kg=70.0,
        activity_level="moderate",
        goal="lose",
    )
    data.update(overrides)
    return UserProfile(**data)


def pfc_kcal(targets):
    return targets.pfc.protein * 4 + targets.pfc.fat * 9 + targets.pfc.carbs * 4


class TestComputeTargets(unittest.TestCase):
    def test_reference_male_profile(self):
        targets = compute_targets(make_profile())

        self.assertAlmostEqual(targets.bmr, 1648.75)
        self.assertAlmostEqual(targets.tdee, 2555.5625)
        self.assertAlmostEqual(targets.target_calories, 2055.5625)
        self.assertEqual(targets.pfc.protein, 140.0)
        self.assertIsNotNone(targets.strategy_summary)

    def test_female_bmr_is_166_lower(self):
        male = compute_targets(make_profile())
        female = compute_targets(make_profile(gender="female"))
        self.assertAlmostEqual(male.bmr - female.bmr, 166)

    def test_default_goal_adjustments(self):
        maintain = compute_targets(make_profile(goal="maintain"))
        gain = compute_targets(make_profile(goal="gain"))

        self.assertAlmostEqual(maintain.target_calories, maintain.tdee)
        self.assertAlmostEqual(gain.target_calories, gain.tdee + 300)

    def test_loss_pace_override(self):
        prefs = NutritionPreferences(loss_pace_kg_per_month=1.5)
        targets = compute_targets(make_profile(), prefs)
        self.assertAlmostEqual(targets.target_calories, targets.tdee - 1.5 * 7700 / 30)

    def test_gain_pace_and_strategy(self):
        prefs = NutritionPreferences(gain_pace_kg_per_month=1.0, gain_strategy="lean")
        targets = compute_targets(make_profile(goal="gain"), prefs)
        self.assertAlmostEqual(targets.target_calories, targets.tdee + 7700 / 30 * 0.75)

        aggressive = compute_targets(make_profile(goal="gain"), NutritionPreferences(gain_strategy="aggressive"))
        self.assertAlmostEqual(aggressive.target_calories, aggressive.tdee + 300 * 1.25)

    def test_maintenance_adjustment(self):
        prefs = NutritionPreferences(maintenance_adjust_kcal_per_day=-150)
        targets = compute_targets(make_profile(goal="maintain"), prefs)
        self.assertAlmostEqual(targets.target_calories, targets.tdee - 150)

    def test_overrides_for_other_goals_are_ignored(self):
        prefs = NutritionPreferences(
            gain_pace_kg_per_month=2.0,
            maintenance_adjust_kcal_per_day=400,
            gain_strategy="aggressive",
        )
        targets = compute_targets(make_profile(goal="lose"), prefs)
        self.assertAlmostEqual(targets.target_calories, targets.tdee - 500)

    def test_macro_presets_change_fat_share(self):
        lowfat = compute_targets(make_profile(), NutritionPreferences(macro_preset="lowfat"))
        lowcarb = compute_targets(make_profile(), NutritionPreferences(macro_preset="lowcarb"))

        self.assertAlmostEqual(lowfat.pfc.fat, round(lowfat.target_calories * 0.15 / 9, 1))
        self.assertAlmostEqual(lowcarb.pfc.fat, round(lowcarb.target_calories * 0.35 / 9, 1))
        self.assertGreater(lowfat.pfc.carbs, lowcarb.pfc.carbs)

    def test_pfc_energy_matches_target_across_profiles(self):
        grid = itertools.product(
            ["male", "female"],
            [18, 45, 80],
            [150.0, 175.0, 195.0],
            [45.0, 70.0, 120.0],
            ["sedentary", "moderate", "very_active"],
            ["lose", "maintain", "gain"],
            ["balanced", "lowfat", "lowcarb", "highprotein"],
        )
        for gender, age, height, weight, activity, goal, preset in grid:
            profile = make_profile(
                gender=gender, age=age, height_cm=height, weight_kg=weight,
                activity_level=activity, goal=goal,
            )
            targets = compute_targets(profile, NutritionPreferences(macro_preset=preset))
            self.assertGreaterEqual(targets.pfc.carbs, 0)
            if targets.pfc.carbs > 0:
                self.assertLessEqual(abs(pfc_kcal(targets) - targets.target_calories), 1.0)

    def test_carbs_clamped_to_zero(self):
        # Heavy, old, sedentary, aggressive loss: protein + fat exceed the target
        profile = make_profile(
            age=90, gender="female", height_cm=150.0, weight_kg=200.0,
            activity_level="sedentary", goal="lose",
        )
        prefs = NutritionPreferences(loss_pace_kg_per_month=5.0, macro_preset="lowcarb")
        targets = compute_targets(profile, prefs)
        self.assertEqual(targets.pfc.carbs, 0)


class TestMealTargets(unittest.TestCase):
    def test_split_20_40_40(self):
        targets = compute_targets(make_profile())
        meals = calculate_meal_targets(targets)

        self.assertEqual(list(meals), ["breakfast", "lunch", "dinner"])
        self.assertEqual(meals["breakfast"]["calories"], round(targets.target_calories * 0.2))
        self.assertEqual(meals["lunch"]["protein"], round(140 * 0.4))
        self.assertEqual(meals["lunch"], meals["dinner"])


class TestParseNutritionRequest(unittest.TestCase):
    def test_out_of_range_profile_is_invalid_input(self):
        payload = {"profile": {
            "age": 0, "gender": "male", "height_cm": 175, "weight_kg": 70,
            "activity_level": "moderate", "goal": "lose",
        }}
        with self.assertRaises(InvalidInput):
            parse_nutrition_request(payload)

    def test_valid_payload_with_camel_case_preferences(self):
        payload = {
            "profile": {
                "age": 30, "gender": "female", "height_cm": 160, "weight_kg": 55,
                "activity_level": "light", "goal": "gain",
            },
            "preferences": {"gainStrategy": "lean"},
        }
        request = parse_nutrition_request(payload)
        self.assertEqual(request.preferences.gain_strategy, "lean")


if __name__ == "__main__":
    unittest.main()
