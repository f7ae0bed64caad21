import json

import httpx
import pytest
from pydantic import ValidationError

from conftest import make_embedding_config
from rag_engine.constants.embedding_models import EMBEDDING_PROVIDER_TYPES
from rag_engine.core.exceptions.provider_errors import ApiError, ConfigurationError, RateLimitError
from rag_engine.modules.embedding.client import EMBEDDING_ADAPTERS, EmbeddingClient, get_embedding_adapter
from rag_engine.modules.embedding.cohere import CohereEmbeddingAdapter
from rag_engine.modules.embedding.ollama import OllamaEmbeddingAdapter
from rag_engine.modules.embedding.openai import OpenAIEmbeddingAdapter
from rag_engine.schemas.provider import EmbeddingProviderCreate


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class Recorder:
    """Collects requests and replays queued responses."""

    def __init__(self, *responses):
        self.requests = []
        self.responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if callable(response):
            return response(request)
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    def payload(self, i: int = 0) -> dict:
        return json.loads(self.requests[i].content)


@pytest.mark.asyncio
async def test_openai_sorts_results_by_index():
    recorder = Recorder(httpx.Response(200, json={"data": [
        {"index": 1, "embedding": [0.0, 1.0]},
        {"index": 0, "embedding": [1.0, 0.0]},
    ]}))
    config = make_embedding_config(dimensions=2)
    adapter = OpenAIEmbeddingAdapter(config, http_client=client_for(recorder))

    vectors = await adapter.embed(["first", "second"])

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    request = recorder.requests[0]
    assert request.url == "https://api.openai.com/v1/embeddings"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert recorder.payload() == {
        "model": "text-embedding-3-small",
        "input": ["first", "second"],
        "dimensions": 2,
    }


@pytest.mark.asyncio
async def test_cohere_v3_reads_float_envelope():
    recorder = Recorder(httpx.Response(200, json={"embeddings": {"float": [[0.5, 0.5]]}}))
    config = make_embedding_config(provider_type="cohere", model="embed-english-v3.0", dimensions=2)
    adapter = CohereEmbeddingAdapter(config, http_client=client_for(recorder))

    vectors = await adapter.embed(["hello"])

    assert vectors == [[0.5, 0.5]]
    assert recorder.requests[0].url == "https://api.cohere.com/v1/embed"
    payload = recorder.payload()
    assert payload["texts"] == ["hello"]
    assert payload["input_type"] == "search_document"
    assert payload["embedding_types"] == ["float"]


@pytest.mark.asyncio
async def test_cohere_legacy_model_reads_plain_list():
    recorder = Recorder(httpx.Response(200, json={"embeddings": [[0.1, 0.2]]}))
    config = make_embedding_config(provider_type="cohere", model="embed-english-v2.0", dimensions=2)
    adapter = CohereEmbeddingAdapter(config, http_client=client_for(recorder))

    assert await adapter.embed(["hello"]) == [[0.1, 0.2]]
    assert "embedding_types" not in recorder.payload()


@pytest.mark.asyncio
async def test_ollama_sends_one_request_per_text_in_order():
    def handler(request: httpx.Request) -> httpx.Response:
        text = json.loads(request.content)["input"]
        return httpx.Response(200, json={"embeddings": [[float(len(text)), 0.0]]})

    recorder = Recorder(handler)
    config = make_embedding_config(provider_type="ollama", model="nomic-embed-text",
                                   dimensions=2, api_key=None)
    adapter = OllamaEmbeddingAdapter(config, http_client=client_for(recorder), concurrency=2)

    vectors = await adapter.embed(["a", "bbb", "cc"])

    assert vectors == [[1.0, 0.0], [3.0, 0.0], [2.0, 0.0]]
    assert len(recorder.requests) == 3
    assert all(r.url == "http://localhost:11434/api/embed" for r in recorder.requests)
    assert "Authorization" not in recorder.requests[0].headers


@pytest.mark.asyncio
async def test_ollama_missing_model_is_configuration_error():
    recorder = Recorder(httpx.Response(404, json={"error": "model not found"}))
    config = make_embedding_config(provider_type="ollama", model="nomic-embed-text",
                                   dimensions=2, api_key=None)
    adapter = OllamaEmbeddingAdapter(config, http_client=client_for(recorder))

    with pytest.raises(ConfigurationError, match="ollama pull"):
        await adapter.embed(["hello"])


@pytest.mark.asyncio
async def test_rate_limit_is_retried_then_succeeds():
    recorder = Recorder(
        httpx.Response(429, json={"error": {"message": "slow down"}}),
        httpx.Response(429, json={"error": {"message": "slow down"}}),
        httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0]}]}),
    )
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder), base_delay=0)

    assert await adapter.embed(["hello"]) == [[1.0, 0.0]]
    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_rate_limit_gives_up_after_max_attempts():
    recorder = Recorder(httpx.Response(429, json={"error": {"message": "slow down"}}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder),
                                     max_attempts=3, base_delay=0)

    with pytest.raises(RateLimitError):
        await adapter.embed(["hello"])
    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_server_error_is_not_retried():
    recorder = Recorder(httpx.Response(500, json={"error": {"message": "boom"}}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder), base_delay=0)

    with pytest.raises(ApiError) as exc_info:
        await adapter.embed(["hello"])
    assert not isinstance(exc_info.value, RateLimitError)
    assert exc_info.value.status_code == 500
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_invalid_credentials_are_configuration_error():
    recorder = Recorder(httpx.Response(401, json={"error": {"message": "bad key"}}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder))

    with pytest.raises(ConfigurationError, match="bad key"):
        await adapter.embed(["hello"])


@pytest.mark.asyncio
async def test_dimension_mismatch_is_api_error():
    recorder = Recorder(httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder))

    with pytest.raises(ApiError, match="dimensions"):
        await adapter.embed(["hello"])


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_any_request():
    recorder = Recorder(httpx.Response(200, json={"data": []}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2, api_key=None),
                                     http_client=client_for(recorder))

    with pytest.raises(ConfigurationError, match="API key"):
        await adapter.embed(["hello"])
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_long_input_is_truncated_with_marker():
    recorder = Recorder(httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0]}]}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder))
    limit = adapter.max_input_chars

    await adapter.embed(["z" * (limit + 500)])

    sent = recorder.payload()["input"][0]
    assert len(sent) == limit
    assert sent.endswith("...")


@pytest.mark.asyncio
async def test_empty_input_makes_no_request():
    recorder = Recorder(httpx.Response(200, json={"data": []}))
    adapter = OpenAIEmbeddingAdapter(make_embedding_config(dimensions=2),
                                     http_client=client_for(recorder))

    assert await adapter.embed([]) == []
    assert recorder.requests == []


def test_unknown_provider_type_is_rejected_at_construction():
    config = make_embedding_config(provider_type="word2vec")

    with pytest.raises(ConfigurationError, match="word2vec"):
        get_embedding_adapter(config)


def test_registry_picks_adapter_by_type():
    assert isinstance(get_embedding_adapter(make_embedding_config()), OpenAIEmbeddingAdapter)
    assert isinstance(
        get_embedding_adapter(make_embedding_config(provider_type="ollama"), concurrency=2),
        OllamaEmbeddingAdapter,
    )


@pytest.mark.asyncio
async def test_client_batches_preserve_input_order():
    def handler(request: httpx.Request) -> httpx.Response:
        texts = json.loads(request.content)["input"]
        data = [{"index": i, "embedding": [float(t), 0.0]} for i, t in enumerate(texts)]
        return httpx.Response(200, json={"data": data})

    recorder = Recorder(handler)
    client = EmbeddingClient(make_embedding_config(dimensions=2), http_client=client_for(recorder),
                             batch_size=3, concurrency=2)
    texts = [str(i) for i in range(10)]

    vectors = await client.embed(texts)

    assert [v[0] for v in vectors] == [float(i) for i in range(10)]
    assert len(recorder.requests) == 4


def test_every_accepted_provider_type_has_an_adapter():
    assert set(EMBEDDING_PROVIDER_TYPES) == set(EMBEDDING_ADAPTERS)


@pytest.mark.parametrize("provider_type", ["bedrock", "azure_openai", "huggingface"])
def test_provider_types_without_adapter_are_rejected(provider_type):
    with pytest.raises(ValidationError, match="unknown embedding provider type"):
        EmbeddingProviderCreate(name="Unsupported", provider_type=provider_type,
                                model="custom-model", dimensions=768)
