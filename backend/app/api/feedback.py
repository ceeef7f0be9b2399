from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_learning_engine, get_store
from app.crud import recipe_history as crud_recipe_history
from app.crud.documents import DocumentStore
from app.schemas.meal_plan import RecipeHistoryItem
from app.schemas.preferences import (
    DislikedIngredientsUpdate,
    FeedbackRecord,
    LearnedPreferenceProfile,
    LearningResult,
)
from app.services import preference_service
from app.services.preference_service import PreferenceLearningEngine

router = APIRouter(prefix="/users/{user_id}", tags=["Preferences"])


@router.post("/feedback", response_model=LearningResult, status_code=201)
def submit_feedback(
    user_id: str,
    feedback: FeedbackRecord,
    store: DocumentStore = Depends(get_store),
    engine: PreferenceLearningEngine = Depends(get_learning_engine)
):
    return preference_service.submit_feedback(store, engine, user_id, feedback)


@router.get("/preferences", response_model=LearnedPreferenceProfile)
def get_preferences(user_id: str, store: DocumentStore = Depends(get_store)):
    return preference_service.get_or_create_profile(store, user_id)


@router.patch("/preferences/disliked-ingredients", response_model=LearnedPreferenceProfile)
def update_disliked_ingredients(
    user_id: str,
    update: DislikedIngredientsUpdate,
    store: DocumentStore = Depends(get_store)
):
    return preference_service.update_disliked_ingredients(store, user_id, update.add, update.remove)


@router.get("/recipes", response_model=List[RecipeHistoryItem])
def get_recipe_history(user_id: str, limit: int = 50, store: DocumentStore = Depends(get_store)):
    return crud_recipe_history.get_recipe_history(store, user_id, limit)


@router.get("/recipes/favorites", response_model=List[RecipeHistoryItem])
def get_favorites(user_id: str, store: DocumentStore = Depends(get_store)):
    return crud_recipe_history.get_favorites(store, user_id)


@router.post("/recipes/{recipe_id}/favorite", response_model=RecipeHistoryItem)
def add_to_favorites(user_id: str, recipe_id: str, store: DocumentStore = Depends(get_store)):
    return preference_service.add_to_favorites(store, user_id, recipe_id)
