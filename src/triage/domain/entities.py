"""
Triage Domain Entities
======================

Result objects produced by the AI triage pipeline, and the read-only view
of stored incidents the pipeline compares against.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class CorpusIncident:
    """
    A stored incident as seen by similarity search.

    `embedding` is None until one has been computed and persisted.
    """
    id: str
    title: str
    description: str
    status: str
    severity: str
    category: str
    reported_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    reporter_name: Optional[str] = None
    assigned_to: Optional[str] = None
    embedding: Optional[List[float]] = None
    resolution: Optional[str] = None
    solutions: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return f"{self.title}. {self.description or ''}"


@dataclass
class ClassificationResult:
    """
    A category or severity prediction.

    `label` is the raw pipeline label (e.g. "application", "high");
    `ai_powered` is False when it came from keyword heuristics.
    """
    label: str
    confidence: float
    ai_powered: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")


@dataclass
class TriagePrediction:
    """Predicted category, severity and routing for incident text."""
    predicted_category: str
    predicted_severity: str
    category_confidence: float
    severity_confidence: float
    assigned_team: str
    ai_powered: bool
    suggested_category: Optional[str] = None
    suggested_severity: Optional[str] = None
    optimal_assignee_id: Optional[str] = None

    @property
    def confidence(self) -> float:
        return (self.category_confidence + self.severity_confidence) / 2


@dataclass
class DuplicateMatch:
    incident_id: str
    title: str
    description: str
    status: str
    severity: str
    similarity: float
    reporter_name: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass
class DuplicateCheck:
    duplicates: List[DuplicateMatch]
    recommendation: Optional[str] = None
    ai_powered: bool = False

    @property
    def has_duplicates(self) -> bool:
        return len(self.duplicates) > 0


@dataclass
class SolutionMatch:
    """A similar resolved incident and what fixed it."""
    source_incident_id: str
    source_title: str
    similarity: float
    solutions: List[str] = field(default_factory=list)
    resolution: Optional[str] = None


@dataclass
class SolutionSuggestions:
    matches: List[SolutionMatch]
    generated: List[str] = field(default_factory=list)
    ai_powered: bool = False

    @property
    def has_solutions(self) -> bool:
        return bool(self.matches) or bool(self.generated)

    @property
    def message(self) -> str:
        if self.matches:
            return f"Found {len(self.matches)} similar resolved issue(s) with solutions."
        if self.generated:
            return "AI generated suggestions based on the incident description."
        return "No similar resolved issues found. A responder will assist shortly."


@dataclass
class AnomalyReport:
    score: float
    is_anomaly: bool
    flags: List[str] = field(default_factory=list)
    recommendation: Optional[str] = None


@dataclass
class VolumeForecast:
    forecast: List[int]
    trend: str
    avg_historical_volume: int
    confidence: float
    recent_average: Optional[int] = None
    volatility: Optional[float] = None


@dataclass
class TriageInsights:
    """
    Everything the pipeline contributes to a new incident.

    `embedding` is only set when the vector came from the embedding model;
    fallback vectors are never persisted.
    """
    triage: TriagePrediction
    category: str
    severity: str
    embedding: Optional[List[float]]
    duplicates: DuplicateCheck
    solutions: SolutionSuggestions
    anomaly: AnomalyReport
