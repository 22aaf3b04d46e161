"""
Inference Client Infrastructure
===============================

Client for the hosted inference REST API (feature extraction, zero-shot
classification, text generation).

Every endpoint is `POST {base_url}/{model}` with a JSON body of
`{"inputs": ..., "parameters": {...}}`. The API answers either with a JSON
array or with a bare JSON object depending on model and task; responses are
tagged as one of the two shapes and normalized into a single result type per
task before they leave this module.
"""

import hashlib
import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

import httpx

from src.config import Settings, settings
from src.core import InferenceException
from src.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Response shapes ==========

@dataclass(frozen=True)
class ArrayResponse:
    """Top-level JSON array."""
    items: List[Any]


@dataclass(frozen=True)
class ObjectResponse:
    """Top-level JSON object."""
    body: dict


InferenceResponse = Union[ArrayResponse, ObjectResponse]


def tag_response(payload: Any) -> InferenceResponse:
    """Tag a decoded JSON payload with its shape."""
    if isinstance(payload, list):
        return ArrayResponse(items=payload)
    if isinstance(payload, dict):
        return ObjectResponse(body=payload)
    raise InferenceException(f"Unexpected response type: {type(payload).__name__}")


# ========== Normalized results ==========

@dataclass
class EmbeddingVector:
    """Sentence embedding."""
    values: List[float]
    model: str

    @property
    def dimension(self) -> int:
        return len(self.values)


@dataclass
class ZeroShotResult:
    """Zero-shot classification, labels sorted by descending score."""
    labels: List[str]
    scores: List[float]
    model: str = ""

    @property
    def top_label(self) -> str:
        return self.labels[0]

    @property
    def top_score(self) -> float:
        return self.scores[0]


@dataclass
class GeneratedText:
    """Text generation output."""
    text: str
    model: str = ""
    parameters: dict = field(default_factory=dict)


def _is_number_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0 and all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in value
    )


def _mean_pool(rows: List[List[float]]) -> List[float]:
    width = min(len(row) for row in rows)
    return [sum(row[i] for row in rows) / len(rows) for i in range(width)]


def normalize_embedding(response: InferenceResponse, model: str) -> EmbeddingVector:
    """
    Normalize a feature-extraction response.

    Accepted shapes:
        [0.1, 0.2, ...]                  sentence embedding
        [[0.1, 0.2, ...]]                batch of one
        [[...], [...], ...]              token embeddings, mean-pooled
        [[[...], [...]]]                 batch of one, token embeddings
        {"embedding": [...]}             object form
    """
    if isinstance(response, ObjectResponse):
        values = response.body.get("embedding")
        if not _is_number_list(values):
            raise InferenceException("Embedding object has no numeric 'embedding' field")
        return EmbeddingVector(values=[float(v) for v in values], model=model)

    items = response.items
    if _is_number_list(items):
        return EmbeddingVector(values=[float(v) for v in items], model=model)

    # Unwrap single-element batches
    while isinstance(items, list) and len(items) == 1 and isinstance(items[0], list):
        items = items[0]
        if _is_number_list(items):
            return EmbeddingVector(values=[float(v) for v in items], model=model)

    if isinstance(items, list) and items and all(_is_number_list(row) for row in items):
        return EmbeddingVector(values=_mean_pool(items), model=model)

    raise InferenceException("Unrecognized embedding response shape")


def normalize_zero_shot(response: InferenceResponse, model: str) -> ZeroShotResult:
    """
    Normalize a zero-shot classification response.

    Accepted shapes:
        {"labels": [...], "scores": [...]}
        [{"labels": [...], "scores": [...]}]
        [{"label": "...", "score": 0.9}, ...]
    """
    if isinstance(response, ArrayResponse):
        if not response.items:
            raise InferenceException("Empty classification response")
        first = response.items[0]
        if isinstance(first, dict) and "label" in first:
            pairs = [
                (str(item["label"]), float(item["score"]))
                for item in response.items
                if isinstance(item, dict) and "label" in item and "score" in item
            ]
            pairs.sort(key=lambda pair: pair[1], reverse=True)
            labels = [label for label, _ in pairs]
            scores = [score for _, score in pairs]
            body = {"labels": labels, "scores": scores}
        elif isinstance(first, dict):
            body = first
        else:
            raise InferenceException("Unrecognized classification response shape")
    else:
        body = response.body

    labels = body.get("labels")
    scores = body.get("scores")
    if not labels or not scores or len(labels) != len(scores):
        raise InferenceException("Classification response missing labels or scores")

    return ZeroShotResult(
        labels=[str(label) for label in labels],
        scores=[float(score) for score in scores],
        model=model
    )


def normalize_generation(response: InferenceResponse, model: str) -> GeneratedText:
    """
    Normalize a text-generation response.

    Accepted shapes:
        [{"generated_text": "..."}]
        {"generated_text": "..."}
    """
    if isinstance(response, ArrayResponse):
        first = response.items[0] if response.items else {}
        body = first if isinstance(first, dict) else {}
    else:
        body = response.body

    text = body.get("generated_text")
    if text is None:
        raise InferenceException("Generation response has no 'generated_text'")
    return GeneratedText(text=str(text), model=model)


# ========== Client interface ==========

class IInferenceClient(ABC):
    """
    Interface for the inference operations the triage pipeline uses.
    """

    @abstractmethod
    async def feature_extraction(self, text: str) -> EmbeddingVector:
        """Embed text."""

    @abstractmethod
    async def zero_shot_classification(
        self,
        text: str,
        candidate_labels: List[str]
    ) -> ZeroShotResult:
        """Classify text against candidate labels."""

    @abstractmethod
    async def text_generation(
        self,
        prompt: str,
        max_new_tokens: int = 200,
        temperature: float = 0.7,
        top_p: Optional[float] = None,
        do_sample: Optional[bool] = None
    ) -> GeneratedText:
        """Generate a completion for the prompt."""

    async def aclose(self) -> None:
        """Release network resources."""


class HTTPInferenceClient(IInferenceClient):
    """
    httpx implementation against the hosted inference API.

    All calls share one AsyncClient and are bounded by the configured
    timeout. Transport, HTTP and decoding failures raise InferenceException.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        embedding_model: Optional[str] = None,
        classification_model: Optional[str] = None,
        text_generation_model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._embedding_model = embedding_model or settings.embedding_model
        self._classification_model = classification_model or settings.classification_model
        self._text_generation_model = text_generation_model or settings.text_generation_model

        headers = {"Content-Type": "application/json"}
        key = api_key or settings.inference_api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"

        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.inference_base_url).rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds or settings.inference_timeout_seconds),
            transport=transport
        )

    async def _post(self, model: str, payload: dict, operation: str) -> InferenceResponse:
        try:
            with log_latency(logger, operation, model=model):
                response = await self._client.post(f"/{model}", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise InferenceException(f"{operation} timed out", {"model": model}) from e
        except httpx.HTTPStatusError as e:
            raise InferenceException(
                f"{operation} failed with status {e.response.status_code}",
                {"model": model}
            ) from e
        except httpx.HTTPError as e:
            raise InferenceException(f"{operation} failed: {e}", {"model": model}) from e
        except ValueError as e:
            raise InferenceException(f"{operation} returned invalid JSON", {"model": model}) from e

        if isinstance(data, dict) and "error" in data and len(data) <= 2:
            raise InferenceException(f"{operation} error: {data['error']}", {"model": model})

        return tag_response(data)

    async def feature_extraction(self, text: str) -> EmbeddingVector:
        response = await self._post(
            self._embedding_model,
            {"inputs": text},
            "feature_extraction"
        )
        return normalize_embedding(response, self._embedding_model)

    async def zero_shot_classification(
        self,
        text: str,
        candidate_labels: List[str]
    ) -> ZeroShotResult:
        response = await self._post(
            self._classification_model,
            {"inputs": text, "parameters": {"candidate_labels": candidate_labels}},
            "zero_shot_classification"
        )
        return normalize_zero_shot(response, self._classification_model)

    async def text_generation(
        self,
        prompt: str,
        max_new_tokens: int = 200,
        temperature: float = 0.7,
        top_p: Optional[float] = None,
        do_sample: Optional[bool] = None
    ) -> GeneratedText:
        parameters: dict = {
            "max_new_tokens": max_new_tokens,
            "temperature": temperature,
            "return_full_text": False,
        }
        if top_p is not None:
            parameters["top_p"] = top_p
        if do_sample is not None:
            parameters["do_sample"] = do_sample

        response = await self._post(
            self._text_generation_model,
            {"inputs": prompt, "parameters": parameters},
            "text_generation"
        )
        result = normalize_generation(response, self._text_generation_model)
        result.parameters = parameters
        return result

    async def aclose(self) -> None:
        await self._client.aclose()


class MockInferenceClient(IInferenceClient):
    """
    Mock inference client for local development and testing.

    Returns deterministic responses without calling external APIs.
    """

    _WORD = re.compile(r"[a-z]+")

    def __init__(self, dimension: int = 384):
        self._dimension = dimension

    async def feature_extraction(self, text: str) -> EmbeddingVector:
        # Deterministic pseudo-embedding seeded by the text hash
        seed = int(hashlib.sha256(text.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)
        values = [rng.uniform(-1, 1) for _ in range(self._dimension)]
        return EmbeddingVector(values=values, model="mock-embedding")

    async def zero_shot_classification(
        self,
        text: str,
        candidate_labels: List[str]
    ) -> ZeroShotResult:
        words = set(self._WORD.findall(text.lower()))
        raw = [
            1.0 + sum(1 for w in self._WORD.findall(label.lower()) if w in words)
            for label in candidate_labels
        ]
        total = sum(raw)
        ranked = sorted(
            zip(candidate_labels, (r / total for r in raw)),
            key=lambda pair: pair[1],
            reverse=True
        )
        return ZeroShotResult(
            labels=[label for label, _ in ranked],
            scores=[score for _, score in ranked],
            model="mock-classifier"
        )

    async def text_generation(
        self,
        prompt: str,
        max_new_tokens: int = 200,
        temperature: float = 0.7,
        top_p: Optional[float] = None,
        do_sample: Optional[bool] = None
    ) -> GeneratedText:
        text = (
            "1. Reproduce the problem and capture the exact error message\n"
            "2. Check recent changes to the affected system and roll back if needed\n"
            "3. Escalate to the owning team with logs and reproduction steps"
        )
        return GeneratedText(text=text, model="mock-generator")


def create_inference_client(config: Optional[Settings] = None) -> Optional[IInferenceClient]:
    """
    Build the configured inference client.

    Returns None when no API key is configured and mock mode is off; the
    triage pipeline then runs on local heuristics only.
    """
    config = config or settings

    if config.mock_inference:
        logger.info("Using mock inference client")
        return MockInferenceClient(dimension=config.embedding_dimension)

    if config.inference_api_key:
        logger.info(
            "Using hosted inference API",
            extra={"base_url": config.inference_base_url}
        )
        return HTTPInferenceClient(
            api_key=config.inference_api_key,
            base_url=config.inference_base_url,
            embedding_model=config.embedding_model,
            classification_model=config.classification_model,
            text_generation_model=config.text_generation_model,
            timeout_seconds=config.inference_timeout_seconds
        )

    logger.warning("Inference API key not configured - triage runs in heuristic mode")
    return None


__all__ = [
    "ArrayResponse",
    "ObjectResponse",
    "InferenceResponse",
    "tag_response",
    "EmbeddingVector",
    "ZeroShotResult",
    "GeneratedText",
    "normalize_embedding",
    "normalize_zero_shot",
    "normalize_generation",
    "IInferenceClient",
    "HTTPInferenceClient",
    "MockInferenceClient",
    "create_inference_client",
]
