"""
Triage Domain Layer
===================

Domain layer for the AI triage pipeline.

Contains:
- Entities: prediction, duplicate, solution, anomaly and forecast results
- Heuristics: keyword fallbacks, fallback embedding, similarity, scoring

This layer is framework-agnostic and contains pure business logic.
"""

from src.triage.domain.entities import (
    CorpusIncident,
    ClassificationResult,
    TriagePrediction,
    DuplicateMatch,
    DuplicateCheck,
    SolutionMatch,
    SolutionSuggestions,
    AnomalyReport,
    VolumeForecast,
    TriageInsights,
)
from src.triage.domain.heuristics import (
    CATEGORY_LABELS,
    SEVERITY_LABELS,
    SolutionPromptBuilder,
    classify_category_fallback,
    classify_severity_fallback,
    cosine_similarity,
    default_solutions,
    fallback_embedding,
    forecast_volume,
    map_category_to_domain,
    map_severity_to_domain,
    parse_solutions,
    round_half_up,
    route_to_team,
    score_anomaly,
)

__all__ = [
    "CorpusIncident",
    "ClassificationResult",
    "TriagePrediction",
    "DuplicateMatch",
    "DuplicateCheck",
    "SolutionMatch",
    "SolutionSuggestions",
    "AnomalyReport",
    "VolumeForecast",
    "TriageInsights",
    "CATEGORY_LABELS",
    "SEVERITY_LABELS",
    "SolutionPromptBuilder",
    "classify_category_fallback",
    "classify_severity_fallback",
    "cosine_similarity",
    "default_solutions",
    "fallback_embedding",
    "forecast_volume",
    "map_category_to_domain",
    "map_severity_to_domain",
    "parse_solutions",
    "round_half_up",
    "route_to_team",
    "score_anomaly",
]
