"""
Triage Application DTOs
=======================

Request/response models for the AI endpoints, and the AI insight blocks
embedded in incident responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from src.shared.api.schemas import CamelModel
from src.triage.domain import (
    AnomalyReport,
    DuplicateCheck,
    DuplicateMatch,
    SolutionMatch,
    TriagePrediction,
    VolumeForecast,
    round_half_up,
)


def _check_text_length(v: str) -> str:
    if len(v) > 10000:
        raise ValueError("Text too long (max 10000 characters)")
    return v


# ========== Request DTOs ==========

class DuplicateCheckRequest(CamelModel):
    """Live duplicate check while the user types."""
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)

    @field_validator("description")
    @classmethod
    def validate_length(cls, v: str) -> str:
        return _check_text_length(v)


class PredictTriageRequest(CamelModel):
    """Either field may be empty, not both."""
    title: str = ""
    description: str = ""

    @model_validator(mode="after")
    def require_some_text(self) -> "PredictTriageRequest":
        if not self.title.strip() and not self.description.strip():
            raise ValueError("Title or description required")
        return self


class GenerateSolutionsRequest(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: Optional[str] = None


class SummarizeRequest(CamelModel):
    text: str = Field(..., min_length=1)

    @field_validator("text")
    @classmethod
    def validate_length(cls, v: str) -> str:
        return _check_text_length(v)


# ========== Insight blocks ==========

class DuplicateMatchResponse(CamelModel):
    incident_id: str
    title: str
    description: str
    status: str
    severity: str
    similarity: float
    reporter_name: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, match: DuplicateMatch) -> "DuplicateMatchResponse":
        return cls(
            incident_id=match.incident_id,
            title=match.title,
            description=match.description,
            status=match.status,
            severity=match.severity,
            similarity=match.similarity,
            reporter_name=match.reporter_name,
            updated_at=match.updated_at
        )


class DuplicateWarningResponse(CamelModel):
    message: Optional[str]
    duplicates: List[DuplicateMatchResponse]
    ai_powered: bool

    @classmethod
    def from_domain(cls, check: DuplicateCheck) -> Optional["DuplicateWarningResponse"]:
        if not check.has_duplicates:
            return None
        return cls(
            message=check.recommendation,
            duplicates=[DuplicateMatchResponse.from_domain(d) for d in check.duplicates],
            ai_powered=check.ai_powered
        )


class SolutionMatchResponse(CamelModel):
    source_incident_id: str
    source_title: str
    similarity: float
    solutions: List[str] = []
    resolution: Optional[str] = None

    @classmethod
    def from_domain(cls, match: SolutionMatch) -> "SolutionMatchResponse":
        return cls(
            source_incident_id=match.source_incident_id,
            source_title=match.source_title,
            similarity=match.similarity,
            solutions=match.solutions,
            resolution=match.resolution
        )


class TriageDataResponse(CamelModel):
    """Triage block returned with a newly created incident."""
    predicted_category: Optional[str] = None
    predicted_severity: Optional[str] = None
    category_confidence: Optional[float] = None
    severity_confidence: Optional[float] = None
    triage_confidence: Optional[float] = None
    assigned_team: Optional[str] = None
    ai_powered: bool = False
    timestamp: Optional[datetime] = None


class AnomalyResponse(CamelModel):
    anomaly_score: float
    is_anomaly: bool
    flags: List[str]
    recommendation: Optional[str] = None

    @classmethod
    def from_domain(cls, report: AnomalyReport) -> "AnomalyResponse":
        return cls(
            anomaly_score=report.score,
            is_anomaly=report.is_anomaly,
            flags=report.flags,
            recommendation=report.recommendation
        )


class ForecastResponse(CamelModel):
    next_days: List[int]
    trend: str
    avg_historical: int
    confidence: float

    @classmethod
    def from_domain(cls, forecast: VolumeForecast) -> "ForecastResponse":
        return cls(
            next_days=forecast.forecast,
            trend=forecast.trend,
            avg_historical=forecast.avg_historical_volume,
            confidence=forecast.confidence
        )


# ========== Endpoint responses ==========

class DuplicateCheckResponse(CamelModel):
    has_duplicates: bool
    duplicates: List[DuplicateMatchResponse]
    recommendation: Optional[str] = None

    @classmethod
    def from_domain(cls, check: DuplicateCheck) -> "DuplicateCheckResponse":
        return cls(
            has_duplicates=check.has_duplicates,
            duplicates=[DuplicateMatchResponse.from_domain(d) for d in check.duplicates],
            recommendation=check.recommendation
        )


class TriagePredictionResponse(CamelModel):
    category: str
    severity: str
    suggested_category: Optional[str] = None
    suggested_severity: Optional[str] = None
    category_confidence: int
    severity_confidence: int
    assigned_team: str
    optimal_assignee_id: Optional[str] = None
    ai_powered: bool

    @classmethod
    def from_domain(cls, prediction: TriagePrediction) -> "TriagePredictionResponse":
        return cls(
            category=prediction.predicted_category,
            severity=prediction.predicted_severity,
            suggested_category=prediction.suggested_category,
            suggested_severity=prediction.suggested_severity,
            category_confidence=round_half_up(prediction.category_confidence * 100),
            severity_confidence=round_half_up(prediction.severity_confidence * 100),
            assigned_team=prediction.assigned_team,
            optimal_assignee_id=prediction.optimal_assignee_id,
            ai_powered=prediction.ai_powered
        )


class PredictTriageResponse(CamelModel):
    success: bool = True
    prediction: TriagePredictionResponse


class GenerateSolutionsResponse(CamelModel):
    success: bool = True
    solutions: List[str]
    ai_powered: bool


class SummarizeResponse(CamelModel):
    success: bool = True
    summary: str
    ai_powered: bool


class IncidentInsights(CamelModel):
    similar_incidents: List[DuplicateMatchResponse]
    has_similar: bool
    solutions: List[SolutionMatchResponse]
    ai_generated_solutions: List[str]
    has_solutions: bool
    anomaly_score: float
    is_anomalous: bool
    anomaly_flags: List[str]
    recommendation: Optional[str] = None


class AIInsightsResponse(CamelModel):
    success: bool = True
    insights: IncidentInsights
    ai_powered: bool
