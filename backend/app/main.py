import logging
import warnings
# Suppress Pydantic V1 compatibility warnings
warnings.filterwarnings("ignore", category=UserWarning, module="langchain_core._api.deprecation")
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic.v1")

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import LOG_LEVEL
from app.database import engine, Base
import app.models
from app.api import user_profile, meal_plan, shopping_list, feedback
from app.exceptions import GenerationFailure, InvalidInput, NotFound
from app.services.meal_service import LLMPlanGenerator, MealPlanOrchestrator
from app.services.preference_service import LLMFeedbackAnalyzer, PreferenceLearningEngine

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

logger.info(f"[Startup] Database: {engine.url}")
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Meal Planner API")

# Boundary clients are process-wide; routes get them through app.api.deps
app.state.orchestrator = MealPlanOrchestrator(LLMPlanGenerator())
app.state.learning_engine = PreferenceLearningEngine(LLMFeedbackAnalyzer())

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidInput)
def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(NotFound)
def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(GenerationFailure)
def generation_failure_handler(request: Request, exc: GenerationFailure):
    logger.error(f"[API] Generation failed at {exc.stage}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "stage": exc.stage})


app.include_router(user_profile.router)
app.include_router(meal_plan.router)
app.include_router(shopping_list.router)
app.include_router(feedback.router)


# Root endpoint
@app.get("/")
def root():
    return {
        "message": "Welcome to Meal Planner API",
        "docs": "/docs",
        "redoc": "/redoc"
    }


# Health check endpoint
@app.get("/health")
def health_check():
    return {"status": "healthy", "message": "API is running"}
