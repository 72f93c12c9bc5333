from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from slotwise.api.deps import get_db
from slotwise.schemas.generator import (
    GenerationFailureOut,
    GenerationMetricsResponse,
    GenerationSettingsOut,
    GenerationSettingsUpdate,
    MethodPerformance,
    MethodRecommendation,
)
from slotwise.services.generation_metrics import GenerationMonitor
from slotwise.services.generation_service import load_generation_settings, save_generation_settings

router = APIRouter()


@router.get("/settings", response_model=GenerationSettingsOut)
def get_generation_settings(db: Session = Depends(get_db)) -> GenerationSettingsOut:
    return load_generation_settings(db)


@router.put("/settings", response_model=GenerationSettingsOut)
def update_generation_settings(
    payload: GenerationSettingsUpdate,
    db: Session = Depends(get_db),
) -> GenerationSettingsOut:
    return save_generation_settings(db, payload)


@router.get("/metrics", response_model=GenerationMetricsResponse)
def get_generation_metrics(
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> GenerationMetricsResponse:
    monitor = GenerationMonitor(db)
    performance = monitor.get_performance_metrics()
    return GenerationMetricsResponse(
        performance={method: MethodPerformance(**values) for method, values in performance.items()},
        recent_failures=[GenerationFailureOut(**item) for item in monitor.get_recent_failures(limit=limit)],
    )


@router.get("/recommendation", response_model=MethodRecommendation)
def get_method_recommendation(
    academic_year: str = Query(min_length=4, max_length=20),
    semester: int = Query(ge=1, le=3),
    db: Session = Depends(get_db),
) -> MethodRecommendation:
    recommended = GenerationMonitor(db).recommend_method(academic_year, semester)
    return MethodRecommendation(academic_year=academic_year, semester=semester, recommended_method=recommended)
