import json
import unittest
import warnings
from datetime import date, timedelta
from unittest.mock import MagicMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.crud import recipe_history as crud_recipe_history
from app.crud import user_profile as crud_user_profile
from app.crud.documents import DocumentStore, PLANS, USERS
from app.exceptions import GenerationFailure, InvalidInput, NotFound, ResolutionDegraded
from app.schemas.meal_plan import MealSlot, PlanGenerationRequest
from app.schemas.user_profile import FixedMealTitles, UserProfile, UserSettingsUpdate
from app.services import meal_service, shopping_list_service
from app.services.fixed_meal_service import FixedMealResolver
from app.services.meal_service import MealPlanOrchestrator, cheat_day_numbers
from app.services.nutrition_service import compute_targets

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles

# Use an in-memory SQLite DB
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Fix JSONB for SQLite
@compiles(JSONB, 'sqlite')
def compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

START = date(2030, 1, 7)

PROFILE = UserProfile(
    age=30, gender="male", height_cm=175.0, weight_kg=70.0,
    activity_level="moderate", goal="lose",
)


def make_meal(day, meal_type):
    return {
        "title": f"day{day}-{meal_type}",
        "nutrition": {"calories": 500, "protein": 35, "fat": 15, "carbs": 55},
        "tags": ["和食"],
        "ingredients": ["鶏むね肉 100g", "醤油 大さじ1"],
        "steps": ["焼く"],
    }


def make_generated_plan(days=14):
    """What a well-behaved generator returns; dates and cheat flags are deliberately wrong."""
    return {
        "days": [
            {
                "date": "1999-01-01",
                "isCheatDay": True,
                "meals": {m: make_meal(i + 1, m) for m in ("breakfast", "lunch", "dinner")},
            }
            for i in range(days)
        ],
        "shoppingList": [{"ingredient": "ignored", "amount": "1"}],
    }


def make_request(**overrides):
    data = dict(
        targets=compute_targets(PROFILE),
        start_date=START,
        cheap_ingredients=["キャベツ", "もやし"],
    )
    data.update(overrides)
    return PlanGenerationRequest(**data)


class TestMealPlanOrchestrator(unittest.TestCase):
    def setUp(self):
        self.generator = MagicMock()
        self.generator.generate.return_value = make_generated_plan()
        self.orchestrator = MealPlanOrchestrator(self.generator)

    def test_cheat_day_schedule(self):
        self.assertEqual(cheat_day_numbers("weekly"), {7, 14})
        self.assertEqual(cheat_day_numbers("biweekly"), {14})

    def test_weekly_cheat_days_are_reflagged(self):
        result = self.orchestrator.generate(make_request(cheat_day_frequency="weekly"))

        self.assertEqual(len(result.days), 14)
        cheat = [i + 1 for i, day in enumerate(result.days) if day.is_cheat_day]
        self.assertEqual(cheat, [7, 14])

    def test_biweekly_cheat_day(self):
        result = self.orchestrator.generate(make_request(cheat_day_frequency="biweekly"))
        cheat = [i + 1 for i, day in enumerate(result.days) if day.is_cheat_day]
        self.assertEqual(cheat, [14])

    def test_dates_are_restamped_from_start_date(self):
        result = self.orchestrator.generate(make_request())
        self.assertEqual([d.date for d in result.days], [START + timedelta(days=i) for i in range(14)])

    def test_fixed_meals_overlay_every_day(self):
        fixed = FixedMealResolver().resolve(FixedMealTitles(breakfast="プロテイン"))
        result = self.orchestrator.generate(make_request(fixed_meals=fixed))

        for day in result.days:
            self.assertEqual(day.meals.breakfast.title, "プロテイン")
            self.assertEqual(day.meals.breakfast.nutrition.calories, 120)
            self.assertIn("fixed", day.meals.breakfast.tags)
            self.assertTrue(day.meals.lunch.title.startswith("day"))

    def test_unresolved_fixed_meal_keeps_zero_nutrition(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ResolutionDegraded)
            fixed, degraded = FixedMealResolver().resolve_with_report(FixedMealTitles(dinner="謎の定食"))
        result = self.orchestrator.generate(make_request(fixed_meals=fixed, degraded_fixed_meals=degraded))

        self.assertTrue(all(day.meals.dinner.nutrition.is_zero() for day in result.days))
        self.assertEqual(result.degraded_fixed_meals, ["dinner"])

    def test_shopping_list_flattens_all_meals(self):
        result = self.orchestrator.generate(make_request())

        # 42 meals x 2 ingredients, duplicates kept, generator's own list ignored
        self.assertEqual(len(result.shopping_list), 84)
        grouped = shopping_list_service.group_by_category(result.shopping_list)
        self.assertEqual(len(grouped["meat"]), 42)
        self.assertEqual(len(grouped["seasoning"]), 42)

    def test_fixed_meals_contribute_no_ingredients(self):
        fixed = FixedMealResolver().resolve(FixedMealTitles(breakfast="ゆで卵"))
        result = self.orchestrator.generate(make_request(fixed_meals=fixed))
        self.assertEqual(len(result.shopping_list), 56)

    def test_repairs_plan_embedded_in_text(self):
        self.generator.generate.return_value = "Here is your plan:\n" + json.dumps(make_generated_plan()) + "\nEnjoy!"
        result = self.orchestrator.generate(make_request())
        self.assertEqual(len(result.days), 14)

    def test_repairs_wrapped_structured_payload(self):
        self.generator.generate.return_value = {"plan": make_generated_plan()}
        result = self.orchestrator.generate(make_request())
        self.assertEqual(len(result.days), 14)

    def test_malformed_response_raises(self):
        self.generator.generate.return_value = "Sorry, I cannot create a plan today."
        with self.assertRaises(GenerationFailure):
            self.orchestrator.generate(make_request())

    def test_wrong_day_count_is_not_padded(self):
        self.generator.generate.return_value = make_generated_plan(days=13)
        with self.assertRaises(GenerationFailure):
            self.orchestrator.generate(make_request())

    def test_boundary_exception_is_chained(self):
        self.generator.generate.side_effect = ConnectionError("refused")
        with self.assertRaises(GenerationFailure) as ctx:
            self.orchestrator.generate(make_request())
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)
        self.assertEqual(self.generator.generate.call_count, 1)

    def test_instruction_carries_constraints(self):
        request = make_request(
            cheat_day_frequency="weekly",
            preferences={"cuisines": {"和食": 1.2}, "dislikedIngredients": ["セロリ", "パクチー"]},
            feedback_text="もっと魚料理を",
        )
        instruction = self.orchestrator.build_instruction(request)

        self.assertIn("40%", instruction.system)
        self.assertIn("consecutive days", instruction.system)
        self.assertIn("セロリ, パクチー", instruction.user)
        self.assertIn("7, 14", instruction.user)
        self.assertIn("和食 (+1.2)", instruction.user)
        self.assertIn("キャベツ, もやし", instruction.user)
        self.assertIn("もっと魚料理を", instruction.user)
        self.assertIn("2030-01-07", instruction.user)


class TestPlanLifecycle(unittest.TestCase):
    def setUp(self):
        Base.metadata.create_all(bind=engine)
        self.db = TestingSessionLocal()
        self.store = DocumentStore(self.db)

        generator = MagicMock()
        generator.generate.return_value = make_generated_plan()
        self.generator = generator
        self.orchestrator = MealPlanOrchestrator(generator)

        crud_user_profile.update_user_settings(
            self.store, "u1", UserSettingsUpdate(profile=PROFILE, cheat_day_frequency="biweekly")
        )

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=engine)

    def _generate(self):
        return meal_service.generate_plan_for_user(self.store, self.orchestrator, "u1", START)

    def test_generate_stores_pending_plan_with_shopping_list_and_history(self):
        plan = self._generate()

        self.assertEqual(plan.status, "pending")
        self.assertEqual(meal_service.get_pending_plan(self.store, "u1").id, plan.id)
        self.assertEqual(len(shopping_list_service.get_shopping_list(self.store, plan.id).items), 84)

        slot = plan.days[0].meals.lunch
        self.assertEqual(slot.recipe_id, f"{plan.id}-d1-lunch")
        self.assertIsNotNone(crud_recipe_history.get_history_item(self.store, "u1", slot.recipe_id))
        self.assertEqual(len(crud_recipe_history.get_recipe_history(self.store, "u1", limit=100)), 42)

        user = crud_user_profile.get_user(self.store, "u1")
        self.assertAlmostEqual(user.nutrition.target_calories, 2055.5625)

    def test_generate_requires_profile(self):
        self.store.set(USERS, "u2", {})
        with self.assertRaises(InvalidInput):
            meal_service.generate_plan_for_user(self.store, self.orchestrator, "u2", START)

    def test_generate_unknown_user(self):
        with self.assertRaises(NotFound):
            meal_service.generate_plan_for_user(self.store, self.orchestrator, "ghost", START)

    def test_generation_failure_stores_nothing(self):
        self.generator.generate.return_value = "nope"
        with self.assertRaises(GenerationFailure):
            self._generate()
        self.assertEqual(self.store.list(PLANS), [])

    def test_new_generation_archives_previous_pending(self):
        first = self._generate()
        second = self._generate()

        self.assertEqual(meal_service.get_plan(self.store, first.id).status, "archived")
        self.assertEqual(meal_service.get_pending_plan(self.store, "u1").id, second.id)

    def test_approve_archives_previous_active(self):
        first = self._generate()
        meal_service.approve_plan(self.store, "u1", first.id)
        second = self._generate()
        meal_service.approve_plan(self.store, "u1", second.id)

        self.assertEqual(meal_service.get_plan(self.store, first.id).status, "archived")
        self.assertEqual(meal_service.get_active_plan(self.store, "u1").id, second.id)

    def test_approve_rejects_non_pending_or_foreign(self):
        plan = self._generate()
        meal_service.approve_plan(self.store, "u1", plan.id)

        with self.assertRaises(InvalidInput):
            meal_service.approve_plan(self.store, "u1", plan.id)
        with self.assertRaises(NotFound):
            meal_service.approve_plan(self.store, "someone-else", plan.id)

    def test_reject_feedback_feeds_next_generation(self):
        plan = self._generate()
        meal_service.reject_plan(self.store, "u1", plan.id, "  魚をもっと増やして  ")

        self.assertEqual(meal_service.get_plan(self.store, plan.id).status, "archived")
        self.assertEqual(crud_user_profile.get_user(self.store, "u1").plan_rejection_feedback, "魚をもっと増やして")

        self._generate()
        instruction = self.generator.generate.call_args[0][0]
        self.assertIn("魚をもっと増やして", instruction.user)
        self.assertIsNone(crud_user_profile.get_user(self.store, "u1").plan_rejection_feedback)

    def test_mark_meal_cooked(self):
        plan = self._generate()
        day = plan.days[2].date

        slot = meal_service.mark_meal_cooked(self.store, plan.id, day, "dinner")

        self.assertEqual(slot.status, "cooked")
        stored = meal_service.get_plan(self.store, plan.id)
        self.assertEqual(stored.find_day(day).meals.dinner.status, "cooked")
        history = crud_recipe_history.get_history_item(self.store, "u1", slot.recipe_id)
        self.assertEqual(history.cooked_count, 1)
        self.assertIsNotNone(history.cooked_at)

    def test_mark_meal_cooked_missing_day(self):
        plan = self._generate()
        with self.assertRaises(NotFound):
            meal_service.mark_meal_cooked(self.store, plan.id, date(2000, 1, 1), "dinner")
        with self.assertRaises(NotFound):
            meal_service.mark_meal_cooked(self.store, "missing-plan", START, "dinner")

    def test_swap_meal(self):
        plan = self._generate()
        replacement = MealSlot(title="鮭の塩焼き", ingredients=["鮭 1切れ"])

        slot = meal_service.swap_meal(self.store, plan.id, START, "lunch", replacement)

        self.assertEqual(slot.status, "swapped")
        stored = meal_service.get_plan(self.store, plan.id)
        self.assertEqual(stored.find_day(START).meals.lunch.title, "鮭の塩焼き")
        self.assertIsNotNone(crud_recipe_history.get_history_item(self.store, "u1", slot.recipe_id))

    def test_swap_meal_unknown_slot(self):
        plan = self._generate()
        with self.assertRaises(NotFound):
            meal_service.swap_meal(self.store, plan.id, START, "snack", MealSlot(title="x"))

    def test_recipe_detail_is_generated_once_for_swapped_meal(self):
        plan = self._generate()
        slot = meal_service.swap_meal(self.store, plan.id, START, "lunch", MealSlot(title="鮭の塩焼き"))
        self.generator.generate.reset_mock()
        self.generator.generate.return_value = json.dumps({
            "ingredients": [{"name": "鮭", "amount": "1切れ"}, "塩 少々"],
            "steps": ["鮭に塩をふる", "焼く"],
        })

        detailed = meal_service.get_recipe_detail(self.store, self.orchestrator, plan.id, START, "lunch")
        again = meal_service.get_recipe_detail(self.store, self.orchestrator, plan.id, START, "lunch")

        self.assertEqual(detailed.steps, ["鮭に塩をふる", "焼く"])
        self.assertEqual(len(detailed.ingredients), 2)
        self.assertEqual(again, detailed)
        self.generator.generate.assert_called_once()
        self.assertIn("鮭の塩焼き", self.generator.generate.call_args[0][0].user)
        history = crud_recipe_history.get_history_item(self.store, "u1", slot.recipe_id)
        self.assertEqual(history.steps, detailed.steps)

    def test_recipe_detail_failure_leaves_plan_unchanged(self):
        plan = self._generate()
        meal_service.swap_meal(self.store, plan.id, START, "lunch", MealSlot(title="鮭の塩焼き"))
        self.generator.generate.return_value = "no recipe today"

        with self.assertRaises(GenerationFailure):
            meal_service.get_recipe_detail(self.store, self.orchestrator, plan.id, START, "lunch")
        self.assertEqual(meal_service.get_plan(self.store, plan.id).find_day(START).meals.lunch.steps, [])

    def test_generated_recipe_ids_ignore_boundary_values(self):
        generated = make_generated_plan()
        for day in generated["days"]:
            day["meals"]["breakfast"].update(tags=["fixed"], recipeId="other-users-recipe")
            day["meals"]["lunch"]["recipeId"] = "other-users-recipe"
        self.generator.generate.return_value = generated

        plan = self._generate()

        self.assertEqual(plan.days[0].meals.breakfast.recipe_id, f"{plan.id}-d1-breakfast")
        self.assertEqual(plan.days[1].meals.lunch.recipe_id, f"{plan.id}-d2-lunch")
        self.assertIsNone(crud_recipe_history.get_history_item(self.store, "u1", "other-users-recipe"))

    def test_fixed_slots_stay_unlinked(self):
        crud_user_profile.update_user_settings(
            self.store, "u1", UserSettingsUpdate(fixed_meals=FixedMealTitles(breakfast="プロテイン"))
        )

        plan = self._generate()

        self.assertIsNone(plan.days[0].meals.breakfast.recipe_id)
        self.assertEqual(plan.days[0].meals.dinner.recipe_id, f"{plan.id}-d1-dinner")
        self.assertEqual(len(crud_recipe_history.get_recipe_history(self.store, "u1", limit=100)), 28)
        with self.assertRaises(InvalidInput):
            meal_service.get_recipe_detail(self.store, self.orchestrator, plan.id, START, "breakfast")


if __name__ == "__main__":
    unittest.main()
