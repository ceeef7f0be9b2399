from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.crud.documents import DocumentStore
from app.services.meal_service import MealPlanOrchestrator
from app.services.preference_service import PreferenceLearningEngine


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


# Built once in app.main at startup
def get_orchestrator(request: Request) -> MealPlanOrchestrator:
    return request.app.state.orchestrator


def get_learning_engine(request: Request) -> PreferenceLearningEngine:
    return request.app.state.learning_engine
