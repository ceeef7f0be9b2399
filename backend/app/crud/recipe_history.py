from datetime import datetime
from typing import List, Optional

from app.crud.documents import DocumentStore, RECIPE_HISTORY, FEEDBACKS
from app.exceptions import NotFound
from app.schemas.meal_plan import MealSlot, RecipeHistoryItem
from app.schemas.preferences import FeedbackRecord


def _key(user_id: str, recipe_id: str) -> str:
    return f"{user_id}:{recipe_id}"


def record_recipe(store: DocumentStore, user_id: str, meal: MealSlot) -> Optional[RecipeHistoryItem]:
    """Adds a served meal to the user's history. Existing entries keep their cooking/favorite state."""
    if not meal.recipe_id:
        return None

    existing = get_history_item(store, user_id, meal.recipe_id)
    if existing:
        return existing

    item = RecipeHistoryItem(
        id=meal.recipe_id,
        title=meal.title,
        tags=meal.tags,
        ingredients=meal.ingredients,
        steps=meal.steps,
        nutrition=meal.nutrition,
    )
    store.set(RECIPE_HISTORY, _key(user_id, meal.recipe_id), {**item.to_document(), "userId": user_id})
    return item


def get_history_item(store: DocumentStore, user_id: str, recipe_id: str) -> Optional[RecipeHistoryItem]:
    data = store.get(RECIPE_HISTORY, _key(user_id, recipe_id))
    return RecipeHistoryItem.model_validate(data) if data is not None else None


def get_history_item_or_404(store: DocumentStore, user_id: str, recipe_id: str) -> RecipeHistoryItem:
    item = get_history_item(store, user_id, recipe_id)
    if item is None:
        raise NotFound(f"Recipe {recipe_id} not found in history of user {user_id}")
    return item


def get_recipe_history(store: DocumentStore, user_id: str, limit: int = 50) -> List[RecipeHistoryItem]:
    items = [RecipeHistoryItem.model_validate(data) for _, data in store.list(RECIPE_HISTORY, userId=user_id)]
    items.sort(key=lambda item: item.proposed_at, reverse=True)
    return items[:limit]


def get_favorites(store: DocumentStore, user_id: str) -> List[RecipeHistoryItem]:
    return [
        RecipeHistoryItem.model_validate(data)
        for _, data in store.list(RECIPE_HISTORY, userId=user_id, isFavorite=True)
    ]


def _update(store: DocumentStore, user_id: str, recipe_id: str, fields: dict) -> RecipeHistoryItem:
    get_history_item_or_404(store, user_id, recipe_id)
    data = store.update(RECIPE_HISTORY, _key(user_id, recipe_id), fields)
    return RecipeHistoryItem.model_validate(data)


def add_to_favorites(store: DocumentStore, user_id: str, recipe_id: str) -> RecipeHistoryItem:
    return _update(store, user_id, recipe_id, {"isFavorite": True})


def mark_as_cooked(store: DocumentStore, user_id: str, recipe_id: str) -> RecipeHistoryItem:
    item = get_history_item_or_404(store, user_id, recipe_id)
    return _update(store, user_id, recipe_id, {
        "cookedAt": datetime.utcnow().isoformat(),
        "cookedCount": item.cooked_count + 1,
    })


def save_recipe_details(store: DocumentStore, user_id: str, recipe_id: str, ingredients: List[str], steps: List[str]) -> RecipeHistoryItem:
    return _update(store, user_id, recipe_id, {"ingredients": ingredients, "steps": steps})


def save_feedback(store: DocumentStore, user_id: str, feedback_id: str, feedback: FeedbackRecord) -> None:
    store.set(FEEDBACKS, feedback_id, {
        **feedback.to_document(),
        "userId": user_id,
        "createdAt": datetime.utcnow().isoformat(),
    })
    _update(store, user_id, feedback.recipe_id, {"feedbackId": feedback_id})


def get_feedback(store: DocumentStore, feedback_id: str) -> Optional[FeedbackRecord]:
    data = store.get(FEEDBACKS, feedback_id)
    if data is None:
        return None
    data = {k: v for k, v in data.items() if k not in ("userId", "createdAt")}
    return FeedbackRecord.model_validate(data)
