import asyncio

import pytest

from conftest import VOCABULARY, bag_of_words, make_embedder, make_snapshot
from rag_engine.schemas.chunk import ChunkRecord, ParentRef
from rag_engine.schemas.document import DocumentType
from rag_engine.schemas.result import FailureReason
from rag_engine.services.document_embedding import DocumentEmbeddingService
from rag_engine.services.vector_search import VectorSearchService, failure_reason
from rag_engine.core.exceptions.provider_errors import (
    ApiError,
    ConfigurationError,
    ProviderError,
    RateLimitError,
)


@pytest.fixture
def search_service(chunk_store, catalog):
    return VectorSearchService(chunk_store, catalog)


@pytest.fixture
async def indexed(chunk_store, catalog, embedder):
    documents = [
        make_snapshot("q1", title="Ruby authentication", body="Devise login for rails", scope_id="s1"),
        make_snapshot("q2", title="Rails password reset", body="Devise password emails", scope_id="s2"),
        make_snapshot("q3", title="Cooking pasta", body="Boil the pasta"),
        make_snapshot("q4", title="Rails login help", body="devise", scope_id="s1"),
        make_snapshot("a1", title="Rails authentication guide", body="Devise and login",
                      doc_type=DocumentType.ARTICLE, scope_id="s1"),
    ]
    await DocumentEmbeddingService(chunk_store, catalog).embed_many(documents, embedder)
    return documents


def vector_for(*words):
    return [1.0 if term in words else 0.0 for term in VOCABULARY]


class SlowEmbedder:
    provider_id = "provider-1"
    similarity_threshold = 0.5

    async def embed_one(self, text):
        await asyncio.sleep(1)
        return bag_of_words(text)


class BrokenStore:
    async def nearest(self, *args, **kwargs):
        raise RuntimeError("index unavailable")


@pytest.mark.asyncio
async def test_search_returns_related_documents_by_score(search_service, embedder, indexed):
    outcome = await search_service.search("rails authentication with devise", embedder)

    assert outcome.ok
    ids = [hit.id for hit in outcome.value]
    assert "q3" not in ids
    assert set(ids) >= {"q1", "a1"}
    scores = [hit.score for hit in outcome.value]
    assert scores == sorted(scores, reverse=True)
    assert all(score >= 0.5 for score in scores)


@pytest.mark.asyncio
async def test_search_collapses_chunks_to_best_per_parent(search_service, chunk_store, embedder):
    parent = ParentRef("question", "q1")
    await chunk_store.replace_chunks(parent, [
        ChunkRecord(parent_type="question", parent_id="q1", chunk_index=0, content="weak",
                    embedding=vector_for("ruby", "rails"), embedding_provider_id="provider-1"),
        ChunkRecord(parent_type="question", parent_id="q1", chunk_index=1, content="strong",
                    embedding=vector_for("ruby"), embedding_provider_id="provider-1"),
    ])

    outcome = await search_service.search("ruby", embedder)

    assert len(outcome.value) == 1
    hit = outcome.value[0]
    assert hit.score == pytest.approx(1.0, abs=1e-5)
    strong = (await chunk_store.get_for_parent(parent))[1]
    assert hit.chunk_id == strong.id


@pytest.mark.asyncio
async def test_search_ignores_chunks_from_other_providers(search_service, chunk_store, embedder):
    await chunk_store.replace_chunks(ParentRef("question", "q1"), [
        ChunkRecord(parent_type="question", parent_id="q1", chunk_index=0, content="ruby",
                    embedding=vector_for("ruby"), embedding_provider_id="someone-else"),
    ])

    outcome = await search_service.search("ruby", embedder)

    assert outcome.ok and outcome.value == []


@pytest.mark.asyncio
async def test_blank_query_is_an_empty_success(search_service):
    outcome = await search_service.search("   ", None)

    assert outcome.ok and outcome.value == []


@pytest.mark.asyncio
async def test_missing_provider_is_reported(search_service):
    outcome = await search_service.search("ruby", None)

    assert not outcome.ok
    assert outcome.failure == FailureReason.NO_PROVIDER


@pytest.mark.asyncio
async def test_search_filters_by_scope_and_type(search_service, embedder, indexed):
    scoped = await search_service.search("rails devise authentication", embedder, scope_id="s1")
    assert {hit.id for hit in scoped.value} <= {"q1", "q4", "a1"}
    assert scoped.value

    articles = await search_service.search("rails devise authentication", embedder, types=["article"])
    assert [hit.type for hit in articles.value] == ["article"]


@pytest.mark.asyncio
async def test_threshold_override_and_pagination(search_service, embedder, indexed):
    everything = await search_service.search("rails devise", embedder, threshold=0.0)
    strict = await search_service.search("rails devise", embedder, threshold=0.99)
    assert len(strict.value) < len(everything.value)

    first = await search_service.search("rails devise", embedder, threshold=0.0, limit=1)
    second = await search_service.search("rails devise", embedder, threshold=0.0, limit=1, offset=1)
    assert [first.value[0].id, second.value[0].id] == [hit.id for hit in everything.value[:2]]


@pytest.mark.asyncio
async def test_query_embedding_timeout(search_service):
    outcome = await search_service.search("ruby", SlowEmbedder(), timeout=0.01)

    assert outcome.failure == FailureReason.TIMEOUT


@pytest.mark.asyncio
async def test_query_embedding_failure_is_classified(search_service):
    outcome = await search_service.search("ruby rails", make_embedder(fail_on="ruby"))

    assert outcome.failure == FailureReason.API
    assert "HTTP 500" in outcome.message


@pytest.mark.asyncio
async def test_store_failure_is_internal(catalog, embedder):
    service = VectorSearchService(BrokenStore(), catalog)

    outcome = await service.search("ruby", embedder)

    assert outcome.failure == FailureReason.INTERNAL


@pytest.mark.parametrize("error, reason", [
    (RateLimitError("slow down", 429), FailureReason.RATE_LIMITED),
    (ConfigurationError("no key"), FailureReason.CONFIGURATION),
    (ApiError("boom", 500), FailureReason.API),
    (ProviderError("unknown"), FailureReason.INTERNAL),
])
def test_failure_reason(error, reason):
    assert failure_reason(error) == reason


@pytest.mark.asyncio
async def test_find_similar_excludes_the_document_itself(search_service, embedder, indexed):
    question = indexed[0]

    outcome = await search_service.find_similar(question, embedder, limit=3, threshold=0.0)

    assert outcome.ok
    # same type and scope only, never the document itself
    assert [hit.id for hit in outcome.value] == ["q4"]
