"""
Triage Controllers (API Routes)
================================

AI endpoints under /incidents. Every endpoint answers even when the
inference API is down; responses say whether the model was used.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import ForbiddenException, ResourceNotFoundException
from src.identity.domain import Principal
from src.identity.interfaces import get_current_user
from src.infrastructure.database import get_session
from src.shared.infrastructure.logging import get_logger, log_latency
from src.triage.application import (
    AIInsightsResponse,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    DuplicateMatchResponse,
    GenerateSolutionsRequest,
    GenerateSolutionsResponse,
    IncidentInsights,
    PredictTriageRequest,
    PredictTriageResponse,
    SolutionMatchResponse,
    SummarizeRequest,
    SummarizeResponse,
    TriagePipeline,
    TriagePredictionResponse,
)
from src.triage.interfaces.dependencies import get_triage_pipeline

logger = get_logger(__name__)
router = APIRouter(prefix="/incidents", tags=["AI Triage"])


# ========== Example payloads for Swagger ==========

PREDICT_REQUEST_EXAMPLE = {
    "title": "Database connection timeout",
    "description": "Production app cannot reach postgres, queries time out after 30s"
}

PREDICT_RESPONSE_EXAMPLE = {
    "success": True,
    "prediction": {
        "category": "database",
        "severity": "high",
        "suggestedCategory": "IT",
        "suggestedSeverity": "High",
        "categoryConfidence": 87,
        "severityConfidence": 75,
        "assignedTeam": "Database",
        "optimalAssigneeId": None,
        "aiPowered": True
    }
}


# ========== Endpoints ==========

@router.post(
    "/check-duplicate",
    response_model=DuplicateCheckResponse,
    summary="Find open incidents similar to a draft"
)
async def check_duplicate(
    payload: DuplicateCheckRequest,
    _: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    pipeline: TriagePipeline = Depends(get_triage_pipeline),
):
    with log_latency(logger, "check_duplicate"):
        result = await pipeline.find_duplicates(payload.title, payload.description)
    # Persist any embeddings backfilled during the search
    await db.commit()
    return DuplicateCheckResponse.from_domain(result)


@router.post(
    "/ai/predict-triage",
    response_model=PredictTriageResponse,
    summary="Predict category, severity and team",
    responses={200: {"content": {"application/json": {"example": PREDICT_RESPONSE_EXAMPLE}}}},
    openapi_extra={"requestBody": {"content": {"application/json": {"example": PREDICT_REQUEST_EXAMPLE}}}}
)
async def predict_triage(
    payload: PredictTriageRequest,
    _: Principal = Depends(get_current_user),
    pipeline: TriagePipeline = Depends(get_triage_pipeline),
):
    with log_latency(logger, "predict_triage"):
        prediction = await pipeline.predict_triage(payload.title, payload.description)
    return PredictTriageResponse(prediction=TriagePredictionResponse.from_domain(prediction))


@router.post(
    "/ai/generate-solutions",
    response_model=GenerateSolutionsResponse,
    summary="Generate candidate solutions"
)
async def generate_solutions(
    payload: GenerateSolutionsRequest,
    _: Principal = Depends(get_current_user),
    pipeline: TriagePipeline = Depends(get_triage_pipeline),
):
    solutions, ai_powered = await pipeline.generate_solutions(
        payload.title, payload.description, payload.category
    )
    return GenerateSolutionsResponse(solutions=solutions, ai_powered=ai_powered)


@router.post(
    "/ai/summarize",
    response_model=SummarizeResponse,
    summary="One-sentence summary of incident text"
)
async def summarize(
    payload: SummarizeRequest,
    _: Principal = Depends(get_current_user),
    pipeline: TriagePipeline = Depends(get_triage_pipeline),
):
    summary, ai_powered = await pipeline.summarize(payload.text)
    return SummarizeResponse(summary=summary, ai_powered=ai_powered)


@router.get(
    "/{incident_id}/ai-insights",
    response_model=AIInsightsResponse,
    summary="Similar incidents, solutions and anomaly score for an incident"
)
async def get_ai_insights(
    incident_id: str,
    user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    pipeline: TriagePipeline = Depends(get_triage_pipeline),
):
    incident = await pipeline.corpus.get(incident_id)
    if incident is None:
        raise ResourceNotFoundException("Incident", incident_id)
    if not (user.is_admin or user.user_id in (incident.reported_by, incident.assigned_to)):
        raise ForbiddenException("Forbidden")

    with log_latency(logger, "ai_insights", incident_id=incident_id):
        duplicates, solutions, anomaly = await pipeline.insights_for(incident)
    await db.commit()

    return AIInsightsResponse(
        insights=IncidentInsights(
            similar_incidents=[DuplicateMatchResponse.from_domain(d) for d in duplicates.duplicates],
            has_similar=duplicates.has_duplicates,
            solutions=[SolutionMatchResponse.from_domain(m) for m in solutions.matches],
            ai_generated_solutions=solutions.generated,
            has_solutions=solutions.has_solutions,
            anomaly_score=anomaly.score,
            is_anomalous=anomaly.is_anomaly,
            anomaly_flags=anomaly.flags,
            recommendation=anomaly.recommendation
        ),
        ai_powered=pipeline.ai_available
    )


triage_router = router
