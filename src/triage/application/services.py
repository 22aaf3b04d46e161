"""
Triage Application Services
============================

The AI triage pipeline: classification, embeddings, duplicate detection,
solution suggestion, anomaly detection, forecasting and summarization.

Every step degrades to a heuristic when the inference API is missing or
failing; inference errors never escape this module.
"""

import asyncio
import random
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Dict, List, Optional, Tuple, TypeVar

from src.config import (
    IncidentCategory,
    Settings,
    Severity,
    settings as default_settings,
)
from src.infrastructure.inference import IInferenceClient
from src.shared.infrastructure.logging import get_logger
from src.triage.domain import (
    CATEGORY_LABELS,
    SEVERITY_LABELS,
    AnomalyReport,
    ClassificationResult,
    CorpusIncident,
    DuplicateCheck,
    DuplicateMatch,
    SolutionMatch,
    SolutionPromptBuilder,
    SolutionSuggestions,
    TriageInsights,
    TriagePrediction,
    VolumeForecast,
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

logger = get_logger(__name__)

T = TypeVar("T")


# ========== Repository Interfaces ==========

class IIncidentCorpus(ABC):
    """Read access to stored incidents for similarity search."""

    @abstractmethod
    async def get(self, incident_id: str) -> Optional[CorpusIncident]:
        """Get one incident by ID."""

    @abstractmethod
    async def list_active(self) -> List[CorpusIncident]:
        """Open and Investigating incidents."""

    @abstractmethod
    async def list_resolved(self, category: Optional[str], limit: int) -> List[CorpusIncident]:
        """Most recently updated Resolved incidents, optionally of one category."""

    @abstractmethod
    async def list_created_since(self, since: datetime) -> List[CorpusIncident]:
        """Incidents created at or after `since`."""

    @abstractmethod
    async def daily_counts_since(self, since: datetime) -> List[int]:
        """Per-day creation counts, oldest day first, days without incidents omitted."""

    @abstractmethod
    async def save_embedding(self, incident_id: str, embedding: List[float]) -> None:
        """Persist a computed embedding."""


class IResponderDirectory(ABC):
    """Lookup of responders for assignee suggestions."""

    @abstractmethod
    async def least_loaded_in_department(self, department: str) -> Optional[str]:
        """Responder in the department with the fewest active incidents."""

    @abstractmethod
    async def least_loaded(self) -> Optional[str]:
        """Any responder, fewest active incidents first."""


# ========== Embeddings ==========

class EmbeddingCache:
    """
    Process-wide embedding cache keyed by the first characters of the text.

    Flushed wholesale once it grows past `max_size` entries.
    Safe to share between concurrent requests.
    """

    def __init__(self, max_size: int = 1000, key_length: int = 100):
        self._max_size = max_size
        self._key_length = key_length
        self._entries: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def _key(self, text: str) -> str:
        return text[:self._key_length]

    def get(self, text: str) -> Optional[List[float]]:
        with self._lock:
            return self._entries.get(self._key(text))

    def put(self, text: str, vector: List[float]) -> None:
        with self._lock:
            if len(self._entries) > self._max_size:
                self._entries.clear()
            self._entries[self._key(text)] = vector

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class EmbeddingService:
    """Embeds text with the model, falling back to the deterministic vector."""

    def __init__(
        self,
        client: Optional[IInferenceClient],
        cache: EmbeddingCache,
        dimension: int = 384
    ):
        self._client = client
        self._cache = cache
        self._dimension = dimension

    async def embed(self, text: str) -> Tuple[List[float], bool]:
        """
        Returns:
            (vector, ai_powered). Only model vectors are cached.
        """
        cached = self._cache.get(text)
        if cached is not None:
            return cached, True

        if self._client is None:
            return fallback_embedding(text, self._dimension), False

        try:
            result = await self._client.feature_extraction(text)
        except Exception as e:
            logger.warning(
                "Embedding failed, using fallback vector",
                extra={"error": str(e)}
            )
            return fallback_embedding(text, self._dimension), False

        self._cache.put(text, result.values)
        return result.values, True


# ========== Pipeline ==========

def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _incident_text(title: str, description: str) -> str:
    return f"{title}. {description or ''}"


class TriagePipeline:
    """
    Orchestrates every AI feature over the inference client and the
    stored incident corpus.
    """

    def __init__(
        self,
        client: Optional[IInferenceClient],
        embeddings: EmbeddingService,
        corpus: IIncidentCorpus,
        directory: Optional[IResponderDirectory] = None,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None
    ):
        self._client = client
        self._embeddings = embeddings
        self._corpus = corpus
        self._directory = directory
        self._config = config or default_settings
        self._rng = rng

    @property
    def ai_available(self) -> bool:
        return self._client is not None

    @property
    def corpus(self) -> IIncidentCorpus:
        return self._corpus

    # ---------- classification ----------

    async def _classify(
        self,
        text: str,
        labels: Dict[str, str],
        default_label: str,
        fallback
    ) -> ClassificationResult:
        if self._client is None:
            return fallback(text)

        try:
            result = await self._client.zero_shot_classification(text, list(labels))
        except Exception as e:
            logger.warning(
                "Zero-shot classification failed, using keywords",
                extra={"error": str(e)}
            )
            return fallback(text)

        return ClassificationResult(
            label=labels.get(result.top_label, default_label),
            confidence=_clamp(result.top_score),
            ai_powered=True
        )

    async def classify_category(self, text: str) -> ClassificationResult:
        return await self._classify(text, CATEGORY_LABELS, "other", classify_category_fallback)

    async def classify_severity(self, text: str) -> ClassificationResult:
        return await self._classify(text, SEVERITY_LABELS, "medium", classify_severity_fallback)

    async def _optimal_assignee(self, team: str) -> Optional[str]:
        if self._directory is None:
            return None
        try:
            assignee = await self._directory.least_loaded_in_department(team)
            return assignee or await self._directory.least_loaded()
        except Exception as e:
            logger.warning("Assignee suggestion failed", extra={"error": str(e)})
            return None

    async def predict_triage(self, title: str, description: str) -> TriagePrediction:
        """Predict category, severity, team and a suggested assignee."""
        text = _incident_text(title, description)

        category, severity = await asyncio.gather(
            self.classify_category(text),
            self.classify_severity(text)
        )
        team = route_to_team(category.label)

        return TriagePrediction(
            predicted_category=category.label,
            predicted_severity=severity.label,
            category_confidence=category.confidence,
            severity_confidence=severity.confidence,
            assigned_team=team,
            ai_powered=category.ai_powered and severity.ai_powered,
            suggested_category=map_category_to_domain(category.label),
            suggested_severity=map_severity_to_domain(severity.label),
            optimal_assignee_id=await self._optimal_assignee(team)
        )

    # ---------- similarity ----------

    async def _embedding_for(self, item: CorpusIncident) -> List[float]:
        """Stored embedding, or compute one and persist it if the model produced it."""
        if item.embedding:
            return item.embedding

        vector, ai_powered = await self._embeddings.embed(item.text)
        if ai_powered:
            await self._corpus.save_embedding(item.id, vector)
            item.embedding = vector
        return vector

    async def find_duplicates(
        self,
        title: str,
        description: str,
        embedding: Optional[List[float]] = None,
        exclude_id: Optional[str] = None,
        embedding_ai_powered: bool = True
    ) -> DuplicateCheck:
        """Open or Investigating incidents above the duplicate threshold, top 3."""
        ai_powered = embedding_ai_powered
        if embedding is None:
            embedding, ai_powered = await self._embeddings.embed(_incident_text(title, description))

        matches: List[DuplicateMatch] = []
        for item in await self._corpus.list_active():
            if item.id == exclude_id:
                continue
            similarity = cosine_similarity(embedding, await self._embedding_for(item))
            if similarity >= self._config.duplicate_threshold:
                matches.append(DuplicateMatch(
                    incident_id=item.id,
                    title=item.title,
                    description=(item.description or "")[:200],
                    status=item.status,
                    severity=item.severity,
                    similarity=round_half_up(similarity * 100) / 100,
                    reporter_name=item.reporter_name,
                    updated_at=item.updated_at
                ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        matches = matches[:3]

        recommendation = None
        if matches:
            recommendation = (
                f"AI found {len(matches)} similar issue(s) with "
                f"{round_half_up(matches[0].similarity * 100)}% similarity. "
                "Please review before submitting."
            )

        return DuplicateCheck(
            duplicates=matches,
            recommendation=recommendation,
            ai_powered=ai_powered and self.ai_available
        )

    async def generate_solutions(
        self,
        title: str,
        description: str,
        category: Optional[str] = None
    ) -> Tuple[List[str], bool]:
        """
        Ask the generation model for three numbered solutions.

        Returns:
            (solutions, ai_powered). Falls back to the category defaults
            when generation is unavailable or yields nothing usable.
        """
        if self._client is None:
            return default_solutions(category), False

        prompt = SolutionPromptBuilder.solutions(title, description, category)
        try:
            result = await self._client.text_generation(
                prompt,
                max_new_tokens=500,
                temperature=0.7,
                top_p=0.9,
                do_sample=True
            )
        except Exception as e:
            logger.warning("Solution generation failed", extra={"error": str(e)})
            return default_solutions(category), False

        solutions = parse_solutions(result.text)
        if not solutions:
            return default_solutions(category), False
        return solutions, True

    async def suggest_solutions(
        self,
        title: str,
        description: str,
        category: Optional[str] = None,
        ai_category: Optional[str] = None,
        embedding: Optional[List[float]] = None,
        exclude_id: Optional[str] = None,
        embedding_ai_powered: bool = True
    ) -> SolutionSuggestions:
        """
        Solutions from similar resolved incidents, generated ones otherwise.

        Args:
            category: Incident category used to filter resolved incidents
            ai_category: Pipeline category label passed to generation
            embedding_ai_powered: Whether a supplied `embedding` came from the model
        """
        ai_powered = embedding_ai_powered
        if embedding is None:
            embedding, ai_powered = await self._embeddings.embed(_incident_text(title, description))

        matches: List[SolutionMatch] = []
        for item in await self._corpus.list_resolved(category, limit=10):
            if item.id == exclude_id:
                continue
            similarity = cosine_similarity(embedding, await self._embedding_for(item))
            if similarity >= self._config.solution_threshold:
                matches.append(SolutionMatch(
                    source_incident_id=item.id,
                    source_title=item.title,
                    similarity=round_half_up(similarity * 100) / 100,
                    solutions=list(item.solutions),
                    resolution=item.resolution
                ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        if matches:
            return SolutionSuggestions(
                matches=matches[:3],
                ai_powered=ai_powered and self.ai_available
            )

        generated, generated_by_ai = await self.generate_solutions(title, description, ai_category)
        return SolutionSuggestions(matches=[], generated=generated, ai_powered=generated_by_ai)

    # ---------- anomaly / forecast ----------

    async def detect_anomalies(
        self,
        title: str,
        description: str,
        severity: Optional[str],
        embedding: Optional[List[float]] = None,
        exclude_id: Optional[str] = None
    ) -> AnomalyReport:
        """Score the incident against those created in the anomaly window."""
        text = _incident_text(title, description)
        since = datetime.now(timezone.utc) - timedelta(days=self._config.anomaly_window_days)
        recent = [i for i in await self._corpus.list_created_since(since) if i.id != exclude_id]

        max_similarity = None
        critical = [i for i in recent if (i.severity or "").lower() == "critical"]
        if critical:
            if embedding is None:
                embedding, _ = await self._embeddings.embed(text)
            max_similarity = 0.0
            for item in critical:
                similarity = cosine_similarity(embedding, await self._embedding_for(item))
                max_similarity = max(max_similarity, similarity)

        return score_anomaly(
            text,
            severity,
            recent,
            max_critical_similarity=max_similarity,
            threshold=self._config.anomaly_threshold
        )

    async def forecast(self, days: int = 7) -> VolumeForecast:
        """Forecast daily volume from the last 30 days of creations."""
        since = datetime.now(timezone.utc) - timedelta(days=30)
        counts = await self._corpus.daily_counts_since(since)
        return forecast_volume(counts, days=days, rng=self._rng)

    # ---------- summarization ----------

    @staticmethod
    def _truncate(text: str) -> str:
        return text[:200] + "..."

    async def summarize(self, text: str) -> Tuple[str, bool]:
        if self._client is None:
            return self._truncate(text), False

        try:
            result = await self._client.text_generation(
                SolutionPromptBuilder.summary(text),
                max_new_tokens=100,
                temperature=0.3
            )
        except Exception as e:
            logger.warning("Summarization failed", extra={"error": str(e)})
            return self._truncate(text), False

        summary = result.text.strip()
        if not summary:
            return self._truncate(text), False
        return summary, True

    # ---------- new incidents ----------

    async def _guarded(self, operation: str, step: Awaitable[T], default: T) -> T:
        try:
            return await step
        except Exception as e:
            logger.warning(
                f"Triage step '{operation}' failed",
                extra={"operation": operation, "error": str(e)}
            )
            return default

    def _heuristic_prediction(self, title: str, description: str) -> TriagePrediction:
        text = _incident_text(title, description)
        category = classify_category_fallback(text)
        severity = classify_severity_fallback(text)
        return TriagePrediction(
            predicted_category=category.label,
            predicted_severity=severity.label,
            category_confidence=category.confidence,
            severity_confidence=severity.confidence,
            assigned_team=route_to_team(category.label),
            ai_powered=False,
            suggested_category=map_category_to_domain(category.label),
            suggested_severity=map_severity_to_domain(severity.label)
        )

    async def analyze_new_incident(
        self,
        title: str,
        description: str,
        category: Optional[str] = None,
        severity: Optional[str] = None
    ) -> TriageInsights:
        """
        Run the full pipeline for an incident about to be created.

        Caller-supplied category and severity win over predictions.
        """
        triage = await self._guarded(
            "predict_triage",
            self.predict_triage(title, description),
            self._heuristic_prediction(title, description)
        )

        final_category = category or triage.suggested_category or IncidentCategory.IT
        final_severity = severity or triage.suggested_severity or Severity.LOW

        embedding, embedding_by_ai = await self._embeddings.embed(
            _incident_text(title, description)
        )

        duplicates = await self._guarded(
            "find_duplicates",
            self.find_duplicates(
                title, description,
                embedding=embedding, embedding_ai_powered=embedding_by_ai
            ),
            DuplicateCheck(duplicates=[])
        )
        solutions = await self._guarded(
            "suggest_solutions",
            self.suggest_solutions(
                title,
                description,
                category=final_category,
                ai_category=triage.predicted_category,
                embedding=embedding,
                embedding_ai_powered=embedding_by_ai
            ),
            SolutionSuggestions(matches=[], generated=default_solutions(triage.predicted_category))
        )
        anomaly = await self._guarded(
            "detect_anomalies",
            self.detect_anomalies(title, description, final_severity, embedding=embedding),
            AnomalyReport(score=0.0, is_anomaly=False)
        )

        logger.info(
            "Incident triaged",
            extra={
                "predicted_category": triage.predicted_category,
                "predicted_severity": triage.predicted_severity,
                "duplicates": len(duplicates.duplicates),
                "anomaly": anomaly.is_anomaly,
                "ai_powered": triage.ai_powered
            }
        )

        return TriageInsights(
            triage=triage,
            category=final_category,
            severity=final_severity,
            embedding=embedding if embedding_by_ai else None,
            duplicates=duplicates,
            solutions=solutions,
            anomaly=anomaly
        )

    async def insights_for(self, incident: CorpusIncident) -> Tuple[DuplicateCheck, SolutionSuggestions, AnomalyReport]:
        """Duplicates, solutions and anomaly score for an existing incident."""
        embedding = await self._embedding_for(incident)
        # only model vectors are kept on the incident
        embedding_by_ai = bool(incident.embedding)

        duplicates = await self._guarded(
            "find_duplicates",
            self.find_duplicates(
                incident.title, incident.description,
                embedding=embedding, embedding_ai_powered=embedding_by_ai,
                exclude_id=incident.id
            ),
            DuplicateCheck(duplicates=[])
        )
        solutions = await self._guarded(
            "suggest_solutions",
            self.suggest_solutions(
                incident.title,
                incident.description,
                category=incident.category,
                embedding=embedding,
                embedding_ai_powered=embedding_by_ai,
                exclude_id=incident.id
            ),
            SolutionSuggestions(matches=[], generated=default_solutions(None))
        )
        anomaly = await self._guarded(
            "detect_anomalies",
            self.detect_anomalies(
                incident.title, incident.description, incident.severity,
                embedding=embedding, exclude_id=incident.id
            ),
            AnomalyReport(score=0.0, is_anomaly=False)
        )
        return duplicates, solutions, anomaly
