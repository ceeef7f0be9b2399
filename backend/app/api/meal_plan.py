from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from langfuse import observe

from app.api.deps import get_orchestrator, get_store
from app.crud.documents import DocumentStore
from app.schemas.meal_plan import (
    GeneratePlanRequest,
    MealSlot,
    MealType,
    PlanDocument,
    RejectPlanRequest,
    SwapMealRequest,
)
from app.services import meal_service
from app.services.meal_service import MealPlanOrchestrator

router = APIRouter(tags=["Meal Plans"])


@router.post("/users/{user_id}/plans", response_model=PlanDocument, status_code=201)
@observe(name="generate_meal_plan")
def generate_meal_plan_endpoint(
    user_id: str,
    request: GeneratePlanRequest = None,
    store: DocumentStore = Depends(get_store),
    orchestrator: MealPlanOrchestrator = Depends(get_orchestrator)
):
    start_date = request.start_date if request else None
    return meal_service.generate_plan_for_user(store, orchestrator, user_id, start_date)


@router.get("/users/{user_id}/plans/active", response_model=PlanDocument)
def get_active_plan(user_id: str, store: DocumentStore = Depends(get_store)):
    plan = meal_service.get_active_plan(store, user_id)
    if not plan:
        raise HTTPException(status_code=404, detail="No active meal plan")
    return plan


@router.get("/users/{user_id}/plans/pending", response_model=PlanDocument)
def get_pending_plan(user_id: str, store: DocumentStore = Depends(get_store)):
    plan = meal_service.get_pending_plan(store, user_id)
    if not plan:
        raise HTTPException(status_code=404, detail="No pending meal plan")
    return plan


@router.post("/users/{user_id}/plans/{plan_id}/approve", response_model=PlanDocument)
def approve_plan(user_id: str, plan_id: str, store: DocumentStore = Depends(get_store)):
    return meal_service.approve_plan(store, user_id, plan_id)


@router.post("/users/{user_id}/plans/{plan_id}/reject", response_model=PlanDocument)
def reject_plan(
    user_id: str,
    plan_id: str,
    request: RejectPlanRequest = None,
    store: DocumentStore = Depends(get_store)
):
    feedback = request.feedback if request else None
    return meal_service.reject_plan(store, user_id, plan_id, feedback)


@router.get("/plans/{plan_id}", response_model=PlanDocument)
def get_plan(plan_id: str, store: DocumentStore = Depends(get_store)):
    return meal_service.get_plan(store, plan_id)


@router.post("/plans/{plan_id}/days/{day}/meals/{meal_type}/cook", response_model=MealSlot)
def mark_meal_cooked(plan_id: str, day: date, meal_type: MealType, store: DocumentStore = Depends(get_store)):
    return meal_service.mark_meal_cooked(store, plan_id, day, meal_type)


@router.put("/plans/{plan_id}/days/{day}/meals/{meal_type}", response_model=MealSlot)
def swap_meal(
    plan_id: str,
    day: date,
    meal_type: MealType,
    request: SwapMealRequest,
    store: DocumentStore = Depends(get_store)
):
    return meal_service.swap_meal(store, plan_id, day, meal_type, request.replacement)


@router.get("/plans/{plan_id}/days/{day}/meals/{meal_type}/recipe", response_model=MealSlot)
@observe(name="get_recipe_detail")
def get_recipe_detail(
    plan_id: str,
    day: date,
    meal_type: MealType,
    store: DocumentStore = Depends(get_store),
    orchestrator: MealPlanOrchestrator = Depends(get_orchestrator)
):
    return meal_service.get_recipe_detail(store, orchestrator, plan_id, day, meal_type)
