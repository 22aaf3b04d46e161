"""Tests for the triage pipeline against an in-memory corpus and a stub model."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import Settings
from src.core import InferenceException
from src.infrastructure.inference import EmbeddingVector, GeneratedText, ZeroShotResult
from src.triage.application import (
    EmbeddingCache,
    EmbeddingService,
    IIncidentCorpus,
    IResponderDirectory,
    TriagePipeline,
)
from src.triage.domain import CorpusIncident


class InMemoryCorpus(IIncidentCorpus):
    def __init__(self, items: Optional[List[CorpusIncident]] = None, daily_counts: Optional[List[int]] = None):
        self.items: Dict[str, CorpusIncident] = {i.id: i for i in items or []}
        self.saved: Dict[str, List[float]] = {}
        self.daily_counts = daily_counts or []

    async def get(self, incident_id):
        return self.items.get(incident_id)

    async def list_active(self):
        return [i for i in self.items.values() if i.status in ("Open", "Investigating")]

    async def list_resolved(self, category, limit):
        resolved = [
            i for i in self.items.values()
            if i.status == "Resolved" and (category is None or i.category == category)
        ]
        return resolved[:limit]

    async def list_created_since(self, since):
        return [i for i in self.items.values() if i.created_at >= since]

    async def daily_counts_since(self, since):
        return list(self.daily_counts)

    async def save_embedding(self, incident_id, embedding):
        self.saved[incident_id] = embedding


class StubDirectory(IResponderDirectory):
    def __init__(self, by_department=None, any_responder=None):
        self._by_department = by_department or {}
        self._any = any_responder

    async def least_loaded_in_department(self, department):
        return self._by_department.get(department)

    async def least_loaded(self):
        return self._any


def item(incident_id, title, description="", status="Open", severity="Low", embedding=None, **kwargs):
    return CorpusIncident(
        id=incident_id,
        title=title,
        description=description,
        status=status,
        severity=severity,
        category=kwargs.pop("category", "IT"),
        reported_by="emp-1",
        created_at=kwargs.pop("created_at", datetime.now(timezone.utc)),
        embedding=embedding,
        **kwargs
    )


def stub_client(vectors: Dict[str, List[float]] = None, default_vector=None) -> MagicMock:
    """Model stub: embeddings looked up by text prefix, zero-shot picks the first label."""
    vectors = vectors or {}
    client = MagicMock()

    async def embed(text):
        for prefix, vector in vectors.items():
            if text.startswith(prefix):
                return EmbeddingVector(values=vector, model="stub")
        return EmbeddingVector(values=default_vector or [0.0, 0.0, 1.0], model="stub")

    async def classify(text, labels):
        return ZeroShotResult(labels=list(labels), scores=[0.8] + [0.05] * (len(labels) - 1))

    client.feature_extraction = AsyncMock(side_effect=embed)
    client.zero_shot_classification = AsyncMock(side_effect=classify)
    client.text_generation = AsyncMock(return_value=GeneratedText(
        text="1. Restart the VPN client service\n2. Reinstall the VPN profile from IT\n3. Check the token expiry date"
    ))
    return client


def make_pipeline(client=None, corpus=None, directory=None, **overrides) -> TriagePipeline:
    config = Settings(**{"duplicate_threshold": 0.75, "solution_threshold": 0.6, **overrides})
    cache = EmbeddingCache(max_size=10)
    return TriagePipeline(
        client=client,
        embeddings=EmbeddingService(client, cache, dimension=config.embedding_dimension),
        corpus=corpus or InMemoryCorpus(),
        directory=directory,
        config=config
    )


class TestEmbeddingCache:
    def test_keyed_by_prefix(self):
        cache = EmbeddingCache(max_size=5, key_length=4)
        cache.put("abcdXYZ", [1.0])
        assert cache.get("abcd-other") == [1.0]

    def test_flushed_once_past_max_size(self):
        cache = EmbeddingCache(max_size=2)
        cache.put("a", [1.0])
        cache.put("b", [2.0])
        cache.put("c", [3.0])
        assert len(cache) == 3
        assert cache.get("a") == [1.0]

        cache.put("d", [4.0])
        assert len(cache) == 1
        assert cache.get("a") is None
        assert cache.get("d") == [4.0]

    def test_full_cache_keeps_entries(self):
        cache = EmbeddingCache(max_size=2)
        cache.put("a", [1.0])
        cache.put("b", [2.0])
        assert len(cache) == 2
        assert cache.get("a") == [1.0]
        assert cache.get("b") == [2.0]


class TestEmbeddingService:
    @pytest.mark.asyncio
    async def test_without_client_uses_fallback(self):
        service = EmbeddingService(None, EmbeddingCache(), dimension=8)
        vector, ai_powered = await service.embed("hello")
        assert ai_powered is False
        assert len(vector) == 8

    @pytest.mark.asyncio
    async def test_model_vectors_cached(self):
        client = stub_client(default_vector=[1.0, 2.0])
        cache = EmbeddingCache()
        service = EmbeddingService(client, cache)

        await service.embed("same text")
        vector, ai_powered = await service.embed("same text")

        assert vector == [1.0, 2.0]
        assert ai_powered is True
        assert client.feature_extraction.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_falls_back_and_is_not_cached(self):
        client = MagicMock()
        client.feature_extraction = AsyncMock(side_effect=InferenceException("down"))
        cache = EmbeddingCache()
        service = EmbeddingService(client, cache, dimension=4)

        vector, ai_powered = await service.embed("text")
        assert ai_powered is False
        assert len(vector) == 4
        assert len(cache) == 0


class TestPredictTriage:
    @pytest.mark.asyncio
    async def test_heuristic_mode(self):
        pipeline = make_pipeline()
        prediction = await pipeline.predict_triage("Database backup failed", "The nightly postgres backup errored")
        assert prediction.predicted_category == "database"
        assert prediction.suggested_category == "IT"
        assert prediction.assigned_team == "Database"
        assert prediction.ai_powered is False

    @pytest.mark.asyncio
    async def test_model_labels_mapped(self):
        pipeline = make_pipeline(client=stub_client())
        prediction = await pipeline.predict_triage("anything", "at all")
        # stub ranks the first candidate label highest
        assert prediction.predicted_category == "infrastructure"
        assert prediction.predicted_severity == "critical"
        assert prediction.suggested_severity == "Critical"
        assert prediction.category_confidence == pytest.approx(0.8)
        assert prediction.ai_powered is True

    @pytest.mark.asyncio
    async def test_partial_failure_not_ai_powered(self):
        client = stub_client()
        client.zero_shot_classification = AsyncMock(side_effect=[
            ZeroShotResult(labels=["security incident"], scores=[0.9]),
            InferenceException("timeout"),
        ])
        pipeline = make_pipeline(client=client)
        prediction = await pipeline.predict_triage("Phishing email", "Someone clicked a link")
        assert prediction.ai_powered is False

    @pytest.mark.asyncio
    async def test_optimal_assignee_prefers_department(self):
        directory = StubDirectory(by_department={"Database": "resp-db"}, any_responder="resp-any")
        pipeline = make_pipeline(directory=directory)

        db_prediction = await pipeline.predict_triage("SQL query slow", "database query timing out")
        assert db_prediction.optimal_assignee_id == "resp-db"

        other = await pipeline.predict_triage("Need a chair", "mine is wobbly")
        assert other.optimal_assignee_id == "resp-any"


class TestDuplicates:
    @pytest.mark.asyncio
    async def test_threshold_and_order(self):
        corpus = InMemoryCorpus([
            item("a", "VPN keeps dropping", embedding=[1.0, 0.0, 0.0]),
            item("b", "VPN disconnects", embedding=[0.9, 0.3, 0.0]),
            item("c", "Printer jam", embedding=[0.0, 1.0, 0.0]),
            item("d", "VPN fixed last week", status="Resolved", embedding=[1.0, 0.0, 0.0]),
            # cosine 0.76 and 0.74 against the query, either side of 0.75
            item("e", "VPN slow", status="Investigating", embedding=[0.76, 0.65, 0.0]),
            item("f", "VPN login page", embedding=[0.74, 0.67, 0.0]),
        ])
        pipeline = make_pipeline(client=stub_client(default_vector=[1.0, 0.0, 0.0]), corpus=corpus)

        result = await pipeline.find_duplicates("VPN drops", "Every hour")

        assert [d.incident_id for d in result.duplicates] == ["a", "b", "e"]
        assert result.duplicates[0].similarity == 1.0
        assert result.duplicates[2].similarity == 0.76
        assert result.recommendation == (
            "AI found 3 similar issue(s) with 100% similarity. Please review before submitting."
        )
        assert result.ai_powered is True

    @pytest.mark.asyncio
    async def test_at_most_three(self):
        corpus = InMemoryCorpus([item(str(n), f"Same {n}", embedding=[1.0, 0.0]) for n in range(5)])
        pipeline = make_pipeline(client=stub_client(default_vector=[1.0, 0.0]), corpus=corpus)
        result = await pipeline.find_duplicates("Same", "Same")
        assert len(result.duplicates) == 3

    @pytest.mark.asyncio
    async def test_backfilled_model_embedding_persisted(self):
        corpus = InMemoryCorpus([item("a", "Laptop overheating", "fan noise")])
        client = stub_client(vectors={"Laptop": [0.0, 1.0]}, default_vector=[0.0, 1.0])
        pipeline = make_pipeline(client=client, corpus=corpus)

        result = await pipeline.find_duplicates("Laptop hot", "fan")

        assert corpus.saved == {"a": [0.0, 1.0]}
        assert result.has_duplicates

    @pytest.mark.asyncio
    async def test_fallback_embeddings_never_persisted(self):
        corpus = InMemoryCorpus([item("a", "Laptop overheating", "fan noise")])
        pipeline = make_pipeline(corpus=corpus)

        await pipeline.find_duplicates("Laptop overheating", "fan noise")

        assert corpus.saved == {}
        assert corpus.items["a"].embedding is None

    @pytest.mark.asyncio
    async def test_identical_text_matches_in_heuristic_mode(self):
        corpus = InMemoryCorpus([item("a", "Laptop overheating", "fan noise")])
        pipeline = make_pipeline(corpus=corpus)
        result = await pipeline.find_duplicates("Laptop overheating", "fan noise")
        assert [d.incident_id for d in result.duplicates] == ["a"]
        assert result.ai_powered is False


    @pytest.mark.asyncio
    async def test_existing_incident_with_fallback_vector_not_ai_powered(self):
        corpus = InMemoryCorpus([
            item("a", "Laptop overheating", "fan noise"),
            item("b", "Laptop overheating", "fan noise"),
        ])
        client = stub_client()
        client.feature_extraction = AsyncMock(side_effect=InferenceException("down"))
        pipeline = make_pipeline(client=client, corpus=corpus)

        duplicates, _, _ = await pipeline.insights_for(corpus.items["a"])

        assert [d.incident_id for d in duplicates.duplicates] == ["b"]
        assert duplicates.ai_powered is False


class TestSolutions:
    @pytest.mark.asyncio
    async def test_resolved_matches_win(self):
        corpus = InMemoryCorpus([
            item("r1", "VPN drop", status="Resolved", embedding=[1.0, 0.0],
                 resolution="Rotated the certificate", solutions=["Rotate cert"]),
        ])
        client = stub_client(default_vector=[1.0, 0.0])
        pipeline = make_pipeline(client=client, corpus=corpus)

        suggestions = await pipeline.suggest_solutions("VPN drops", "hourly", category="IT")

        assert [m.source_incident_id for m in suggestions.matches] == ["r1"]
        assert suggestions.matches[0].resolution == "Rotated the certificate"
        assert suggestions.generated == []
        client.text_generation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generated_when_no_match(self):
        client = stub_client()
        pipeline = make_pipeline(client=client)
        suggestions = await pipeline.suggest_solutions("VPN drops", "hourly", category="IT")
        assert suggestions.matches == []
        assert suggestions.generated[0] == "Restart the VPN client service"
        assert suggestions.ai_powered is True

        kwargs = client.text_generation.await_args.kwargs
        assert kwargs["max_new_tokens"] == 500
        assert kwargs["top_p"] == 0.9

    @pytest.mark.asyncio
    async def test_unparseable_generation_uses_defaults(self):
        client = stub_client()
        client.text_generation = AsyncMock(return_value=GeneratedText(text="Try turning it off"))
        pipeline = make_pipeline(client=client)
        solutions, ai_powered = await pipeline.generate_solutions("t", "d", "security")
        assert ai_powered is False
        assert solutions[0] == "Immediately isolate affected systems"


class TestSummarize:
    @pytest.mark.asyncio
    async def test_fallback_truncates(self):
        pipeline = make_pipeline()
        summary, ai_powered = await pipeline.summarize("x" * 300)
        assert summary == "x" * 200 + "..."
        assert ai_powered is False

    @pytest.mark.asyncio
    async def test_model_summary(self):
        client = stub_client()
        client.text_generation = AsyncMock(return_value=GeneratedText(text="  VPN drops hourly.  "))
        pipeline = make_pipeline(client=client)
        assert await pipeline.summarize("long text") == ("VPN drops hourly.", True)


class TestAnomalyAndForecast:
    @pytest.mark.asyncio
    async def test_similarity_to_recent_critical(self):
        corpus = InMemoryCorpus([
            item("crit", "Datacenter outage", severity="Critical", embedding=[1.0, 0.0]),
            item("old", "Old outage", severity="Critical", embedding=[1.0, 0.0],
                 created_at=datetime.now(timezone.utc) - timedelta(days=30)),
        ])
        pipeline = make_pipeline(client=stub_client(default_vector=[1.0, 0.0]), corpus=corpus)

        report = await pipeline.detect_anomalies("Datacenter outage again", "everything down", "Low")

        assert report.is_anomaly is True
        assert "100% similar to a recent critical incident" in report.flags

    @pytest.mark.asyncio
    async def test_forecast_without_history(self):
        result = await make_pipeline().forecast()
        assert result.forecast == [5] * 7
        assert result.trend == "stable"


class TestAnalyzeNewIncident:
    @pytest.mark.asyncio
    async def test_heuristic_defaults(self):
        pipeline = make_pipeline()
        insights = await pipeline.analyze_new_incident("Need a new chair", "mine is wobbly")
        assert insights.category == "IT"
        assert insights.severity == "Low"
        assert insights.embedding is None
        assert insights.triage.ai_powered is False
        assert insights.solutions.generated

    @pytest.mark.asyncio
    async def test_caller_values_win(self):
        pipeline = make_pipeline(client=stub_client())
        insights = await pipeline.analyze_new_incident("Broken door", "badge reader", "Facility", "High")
        assert insights.category == "Facility"
        assert insights.severity == "High"
        assert insights.embedding == [0.0, 0.0, 1.0]

    @pytest.mark.asyncio
    async def test_embedding_failure_not_ai_powered(self):
        corpus = InMemoryCorpus([item("a", "VPN keeps dropping", "Disconnects every hour")])
        client = stub_client()
        client.feature_extraction = AsyncMock(side_effect=InferenceException("model loading"))
        pipeline = make_pipeline(client=client, corpus=corpus)

        insights = await pipeline.analyze_new_incident("VPN keeps dropping", "Disconnects every hour")

        # the local vector still matches identical text
        assert [d.incident_id for d in insights.duplicates.duplicates] == ["a"]
        assert insights.duplicates.ai_powered is False
        assert insights.solutions.matches == []
        assert insights.embedding is None
        assert corpus.saved == {}

    @pytest.mark.asyncio
    async def test_corpus_failure_degrades(self):
        corpus = InMemoryCorpus()
        corpus.list_active = AsyncMock(side_effect=RuntimeError("db gone"))
        pipeline = make_pipeline(corpus=corpus)
        insights = await pipeline.analyze_new_incident("Printer jam", "floor 3")
        assert insights.duplicates.duplicates == []
