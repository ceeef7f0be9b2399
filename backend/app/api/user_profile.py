# app/api/user_profile.py
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_store
from app.crud import user_profile as crud_user_profile
from app.crud.documents import DocumentStore
from app.schemas.user_profile import (
    CalculateNutritionRequest,
    NutritionTargets,
    UserDocument,
    UserSettingsUpdate,
)
from app.services import nutrition_service


router = APIRouter(prefix="/users", tags=["users"])


# POST - Stateless target calculation
@router.post("/nutrition/calculate", response_model=NutritionTargets)
def calculate_nutrition(request: CalculateNutritionRequest):
    return nutrition_service.compute_targets(request.profile, request.preferences)


# GET - User document
@router.get("/{user_id}", response_model=UserDocument)
def read_user(user_id: str, store: DocumentStore = Depends(get_store)):
    user = crud_user_profile.get_user(store, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# PUT - Onboarding / settings
@router.put("/{user_id}", response_model=UserDocument)
def update_user(user_id: str, update: UserSettingsUpdate, store: DocumentStore = Depends(get_store)):
    """
    Updates profile, nutrition preferences, cheat-day frequency and fixed meals.
    Targets are recomputed whenever a profile is present.
    """
    user = crud_user_profile.update_user_settings(store, user_id, update)
    if user.profile is not None:
        targets = nutrition_service.compute_targets(user.profile, user.nutrition_preferences)
        crud_user_profile.save_nutrition(store, user_id, targets)
        user = user.model_copy(update={"nutrition": targets})
    return user


# POST - Calculate and store targets for a user
@router.post("/{user_id}/nutrition", response_model=NutritionTargets)
def calculate_user_nutrition(
    user_id: str,
    request: CalculateNutritionRequest,
    store: DocumentStore = Depends(get_store)
):
    crud_user_profile.update_user_settings(
        store,
        user_id,
        UserSettingsUpdate(profile=request.profile, nutrition_preferences=request.preferences),
    )
    targets = nutrition_service.compute_targets(request.profile, request.preferences)
    crud_user_profile.save_nutrition(store, user_id, targets)
    return targets
