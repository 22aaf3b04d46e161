"""
Triage Application Layer
=========================

Application layer for the AI triage pipeline.

Contains:
- Services: Pipeline orchestration and embedding cache
- DTOs: Data transfer objects for API serialization
"""

from src.triage.application.dto import (
    DuplicateCheckRequest,
    PredictTriageRequest,
    GenerateSolutionsRequest,
    SummarizeRequest,
    DuplicateMatchResponse,
    DuplicateWarningResponse,
    SolutionMatchResponse,
    TriageDataResponse,
    AnomalyResponse,
    ForecastResponse,
    DuplicateCheckResponse,
    TriagePredictionResponse,
    PredictTriageResponse,
    GenerateSolutionsResponse,
    SummarizeResponse,
    IncidentInsights,
    AIInsightsResponse,
)
from src.triage.application.services import (
    IIncidentCorpus,
    IResponderDirectory,
    EmbeddingCache,
    EmbeddingService,
    TriagePipeline,
)

__all__ = [
    # DTOs
    "DuplicateCheckRequest",
    "PredictTriageRequest",
    "GenerateSolutionsRequest",
    "SummarizeRequest",
    "DuplicateMatchResponse",
    "DuplicateWarningResponse",
    "SolutionMatchResponse",
    "TriageDataResponse",
    "AnomalyResponse",
    "ForecastResponse",
    "DuplicateCheckResponse",
    "TriagePredictionResponse",
    "PredictTriageResponse",
    "GenerateSolutionsResponse",
    "SummarizeResponse",
    "IncidentInsights",
    "AIInsightsResponse",
    # Services
    "IIncidentCorpus",
    "IResponderDirectory",
    "EmbeddingCache",
    "EmbeddingService",
    "TriagePipeline",
]
