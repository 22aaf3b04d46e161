"""Tests for inference response normalization and the httpx client."""

import json

import httpx
import pytest

from src.core import InferenceException
from src.infrastructure.inference import (
    ArrayResponse,
    HTTPInferenceClient,
    MockInferenceClient,
    ObjectResponse,
    create_inference_client,
    normalize_embedding,
    normalize_generation,
    normalize_zero_shot,
    tag_response,
)
from src.config import Settings


class TestTagResponse:
    def test_array_and_object(self):
        assert isinstance(tag_response([1, 2]), ArrayResponse)
        assert isinstance(tag_response({"a": 1}), ObjectResponse)

    def test_scalar_rejected(self):
        with pytest.raises(InferenceException):
            tag_response("nope")


class TestNormalizeEmbedding:
    def test_flat_vector(self):
        result = normalize_embedding(tag_response([0.1, 0.2, 0.3]), "m")
        assert result.values == [0.1, 0.2, 0.3]
        assert result.dimension == 3

    def test_batch_of_one(self):
        assert normalize_embedding(tag_response([[0.5, 0.5]]), "m").values == [0.5, 0.5]

    def test_token_embeddings_mean_pooled(self):
        result = normalize_embedding(tag_response([[[1.0, 3.0], [3.0, 5.0]]]), "m")
        assert result.values == [2.0, 4.0]

    def test_object_form(self):
        assert normalize_embedding(tag_response({"embedding": [1, 2]}), "m").values == [1.0, 2.0]

    def test_unrecognized_shape(self):
        with pytest.raises(InferenceException):
            normalize_embedding(tag_response([{"x": 1}]), "m")


class TestNormalizeZeroShot:
    def test_object_form(self):
        result = normalize_zero_shot(
            tag_response({"labels": ["high priority", "low priority"], "scores": [0.8, 0.2]}), "m"
        )
        assert result.top_label == "high priority"
        assert result.top_score == pytest.approx(0.8)

    def test_wrapped_object(self):
        result = normalize_zero_shot(tag_response([{"labels": ["a"], "scores": [1.0]}]), "m")
        assert result.labels == ["a"]

    def test_label_score_pairs_sorted(self):
        payload = [{"label": "low", "score": 0.1}, {"label": "high", "score": 0.7}]
        result = normalize_zero_shot(tag_response(payload), "m")
        assert result.labels == ["high", "low"]
        assert result.scores == [0.7, 0.1]

    def test_mismatched_lengths(self):
        with pytest.raises(InferenceException):
            normalize_zero_shot(tag_response({"labels": ["a", "b"], "scores": [1.0]}), "m")


class TestNormalizeGeneration:
    def test_list_form(self):
        assert normalize_generation(tag_response([{"generated_text": "hi"}]), "m").text == "hi"

    def test_object_form(self):
        assert normalize_generation(tag_response({"generated_text": "hi"}), "m").text == "hi"

    def test_missing_text(self):
        with pytest.raises(InferenceException):
            normalize_generation(tag_response([{}]), "m")


def _client(handler) -> HTTPInferenceClient:
    return HTTPInferenceClient(
        api_key="test-key",
        base_url="https://inference.test/models",
        embedding_model="embed",
        classification_model="classify",
        text_generation_model="generate",
        timeout_seconds=1.0,
        transport=httpx.MockTransport(handler)
    )


class TestHTTPInferenceClient:
    @pytest.mark.asyncio
    async def test_feature_extraction_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[[0.1, 0.2]])

        client = _client(handler)
        result = await client.feature_extraction("disk full")
        await client.aclose()

        assert result.values == [0.1, 0.2]
        assert seen["path"] == "/models/embed"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"] == {"inputs": "disk full"}

    @pytest.mark.asyncio
    async def test_zero_shot_sends_candidate_labels(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            labels = body["parameters"]["candidate_labels"]
            return httpx.Response(200, json={"labels": labels, "scores": [0.9] + [0.1] * (len(labels) - 1)})

        client = _client(handler)
        result = await client.zero_shot_classification("text", ["x", "y"])
        await client.aclose()
        assert result.top_label == "x"

    @pytest.mark.asyncio
    async def test_generation_parameters(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["parameters"] = json.loads(request.content)["parameters"]
            return httpx.Response(200, json=[{"generated_text": "1. Do the thing properly"}])

        client = _client(handler)
        result = await client.text_generation("prompt", max_new_tokens=500, top_p=0.9, do_sample=True)
        await client.aclose()

        assert result.text == "1. Do the thing properly"
        assert seen["parameters"]["max_new_tokens"] == 500
        assert seen["parameters"]["top_p"] == 0.9
        assert seen["parameters"]["do_sample"] is True
        assert seen["parameters"]["return_full_text"] is False

    @pytest.mark.asyncio
    async def test_http_error_raises_inference_exception(self):
        client = _client(lambda request: httpx.Response(503, json={"error": "loading"}))
        with pytest.raises(InferenceException):
            await client.feature_extraction("x")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_error_body_raises(self):
        client = _client(lambda request: httpx.Response(200, json={"error": "Model is loading"}))
        with pytest.raises(InferenceException):
            await client.feature_extraction("x")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_raises_inference_exception(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = _client(handler)
        with pytest.raises(InferenceException):
            await client.text_generation("prompt")
        await client.aclose()


class TestClientFactory:
    def test_no_key_means_heuristic_mode(self):
        assert create_inference_client(Settings(inference_api_key=None, mock_inference=False)) is None

    def test_mock_mode(self):
        client = create_inference_client(Settings(mock_inference=True, embedding_dimension=8))
        assert isinstance(client, MockInferenceClient)

    @pytest.mark.asyncio
    async def test_mock_client_deterministic(self):
        client = MockInferenceClient(dimension=8)
        a = await client.feature_extraction("same text")
        b = await client.feature_extraction("same text")
        assert a.values == b.values
        assert len(a.values) == 8
