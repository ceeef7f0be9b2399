from datetime import datetime
from typing import Optional

from app.crud.documents import DocumentStore, PLANS
from app.exceptions import NotFound
from app.schemas.meal_plan import PlanDocument

"""
Meal Plan CRUD
--------------
Pure data access for plan documents.
Business logic for generation lives in app.services.meal_service.
"""


def save_plan(store: DocumentStore, plan: PlanDocument) -> PlanDocument:
    plan = plan.model_copy(update={"updated_at": datetime.utcnow()})
    store.set(PLANS, plan.id, plan.to_document())
    return plan


def get_plan(store: DocumentStore, plan_id: str) -> Optional[PlanDocument]:
    data = store.get(PLANS, plan_id)
    return PlanDocument.model_validate(data) if data is not None else None


def get_plan_or_404(store: DocumentStore, plan_id: str) -> PlanDocument:
    plan = get_plan(store, plan_id)
    if plan is None:
        raise NotFound(f"Plan {plan_id} not found")
    return plan


def find_plan_by_status(store: DocumentStore, user_id: str, status: str) -> Optional[PlanDocument]:
    """Most recently stored plan of a user with the given status."""
    match = store.find_one(PLANS, userId=user_id, status=status)
    if not match:
        return None
    return PlanDocument.model_validate(match[1])


def update_plan_status(store: DocumentStore, plan_id: str, status: str) -> PlanDocument:
    plan = get_plan_or_404(store, plan_id)
    return save_plan(store, plan.model_copy(update={"status": status}))
