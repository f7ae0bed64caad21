import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage

from conftest import make_embedder, make_snapshot
from rag_engine.schemas.chunk import ChunkRecord
from rag_engine.schemas.document import DocumentType
from rag_engine.schemas.provider import LlmProviderConfig
from rag_engine.services.answer_service import EXCERPT_LENGTH, AnswerService
from rag_engine.services.document_embedding import DocumentEmbeddingService
from rag_engine.services.llm_client import LlmClient


LLM_CONFIG = LlmProviderConfig(id="llm-1", provider_type="openai", model="gpt-4o-mini")


def make_llm(*responses: dict) -> LlmClient:
    return LlmClient(LLM_CONFIG, chat_model=FakeListChatModel(
        responses=[json.dumps(response) for response in responses]
    ))


def recording_llm(response: dict):
    model = MagicMock()
    model.ainvoke = AsyncMock(return_value=AIMessage(content=json.dumps(response)))
    return LlmClient(LLM_CONFIG, chat_model=model), model


@pytest.fixture
async def service(chunk_store, catalog, embedder):
    documents = [
        make_snapshot("q1", title="Ruby authentication", body="Devise login for rails apps. "
                      + "Configure the devise initializer and mount the routes. " * 6, scope_id="s1"),
        make_snapshot("a1", title="Rails login guide", body="Devise login walkthrough",
                      doc_type=DocumentType.ARTICLE, scope_id="s1"),
        make_snapshot("q2", title="Cooking pasta", body="Boil the pasta", scope_id="s2"),
    ]
    await DocumentEmbeddingService(chunk_store, catalog).embed_many(documents, embedder)
    return AnswerService(chunk_store, catalog)


@pytest.mark.asyncio
async def test_no_language_model_returns_empty_result(service, embedder):
    result = await service.answer("How do I log in?", None, embedder)

    assert result.answer is None
    assert result.sources == []
    assert not result.from_knowledge_base
    assert result.query == "How do I log in?"


@pytest.mark.asyncio
async def test_blank_query_gets_a_general_answer(service, embedder):
    result = await service.answer("   ", make_llm({"answer": "Ask me anything."}), embedder)

    assert result.answer == "Ask me anything."
    assert not result.from_knowledge_base
    assert result.chunks_used == 0


@pytest.mark.asyncio
async def test_unknown_topic_gets_a_general_answer(service, embedder):
    llm, model = recording_llm({"answer": "Kubernetes schedules containers."})

    result = await service.answer("what is kubernetes", llm, embedder)

    assert result.answer == "Kubernetes schedules containers."
    assert not result.from_knowledge_base
    assert result.sources == []
    prompt = model.ainvoke.call_args.args[0][-1].content
    assert "No matching content was found" in prompt


@pytest.mark.asyncio
async def test_grounded_answer_formats_numbered_sources(service, embedder):
    llm, model = recording_llm({"answer": "Use devise.", "sources": []})

    result = await service.answer("rails devise login", llm, embedder)

    assert result.from_knowledge_base
    assert result.chunks_used > 0
    prompt = model.ainvoke.call_args.args[0][-1].content
    assert "[Source 1]\nType: " in prompt
    assert "Title: " in prompt
    assert "\n\n---\n\n" in prompt or result.chunks_used == 1
    assert "rails devise login" in prompt


@pytest.mark.asyncio
async def test_citations_resolve_against_chunks_storage_and_raw_ids(service, catalog, embedder):
    await catalog.upsert(make_snapshot("a9", title="Unembedded article", slug="unembedded-article",
                                       doc_type=DocumentType.ARTICLE))
    llm = make_llm({
        "answer": "Use devise [Source 1].",
        "sources": [
            {"number": 1, "type": "Question", "id": "q1", "excerpt": "Devise login"},
            {"number": 2, "id": "a1"},
            {"number": 3, "type": "article", "id": "a9"},
            {"number": 4, "type": "question", "id": "ghost"},
            {"number": 5, "type": "question"},
            "not a citation",
        ],
    })

    result = await service.answer("rails devise login", llm, embedder)

    assert [(s.number, s.type, s.id, s.slug) for s in result.sources] == [
        (1, "question", "q1", "question-q1"),
        (2, "article", "a1", "article-a1"),
        (3, "article", "a9", "unembedded-article"),
        (4, "question", "ghost", "ghost"),
    ]
    assert result.sources[0].title == "Ruby authentication"
    assert result.sources[0].excerpt == "Devise login"
    assert result.sources[2].title == "Unembedded article"
    assert result.sources[3].title is None


@pytest.mark.asyncio
async def test_missing_citations_fall_back_to_retrieved_parents(service, embedder):
    result = await service.answer("rails devise login", make_llm({"answer": "Use devise."}), embedder)

    ids = [source.id for source in result.sources]
    assert len(ids) == len(set(ids))
    assert "q1" in ids
    assert [source.number for source in result.sources] == list(range(1, len(ids) + 1))
    assert all(len(source.excerpt) <= EXCERPT_LENGTH for source in result.sources)


@pytest.mark.asyncio
async def test_language_model_failure_returns_empty_result(service, embedder):
    llm = LlmClient(LLM_CONFIG, chat_model=FakeListChatModel(responses=["this is not json"]))

    result = await service.answer("rails devise login", llm, embedder)

    assert result.answer is None
    assert result.sources == []


@pytest.mark.asyncio
async def test_storage_failure_returns_empty_result(chunk_store, catalog):
    chunk_store.search_content = AsyncMock(side_effect=RuntimeError("connection reset by peer"))
    service = AnswerService(chunk_store, catalog)

    result = await service.answer("how do I log in", make_llm({"answer": "unused"}), None)

    assert result.answer is None
    assert result.sources == []
    assert result.query == "how do I log in"


@pytest.mark.asyncio
async def test_catalog_failure_during_grounding_returns_empty_result(service, catalog, embedder):
    catalog.get_many = AsyncMock(side_effect=RuntimeError("catalog unavailable"))

    result = await service.answer("rails devise login", make_llm({"answer": "unused"}), embedder)

    assert result.answer is None
    assert not result.from_knowledge_base


@pytest.mark.asyncio
async def test_lexical_retrieval_without_embedder(service):
    chunks = await service.retrieve("devise login", None, None, 10)

    assert chunks
    assert all("devise login" in chunk.content.lower() for chunk in chunks)


@pytest.mark.asyncio
async def test_lexical_retrieval_when_query_embedding_fails(service):
    chunks = await service.retrieve("devise login", make_embedder(fail_on="devise"), None, 10)

    assert {chunk.parent_id for chunk in chunks} <= {"q1", "a1"}
    assert chunks


@pytest.mark.asyncio
async def test_retrieval_is_limited_to_scope(service, embedder):
    in_scope = await service.retrieve("rails devise login", embedder, "s1", 10)
    assert in_scope and {chunk.parent_id for chunk in in_scope} <= {"q1", "a1"}

    assert await service.retrieve("rails devise login", embedder, "s2", 10) == []
    assert await service.retrieve("rails devise login", embedder, "empty-scope", 10) == []


@pytest.mark.asyncio
async def test_retrieval_respects_chunk_limit(service, embedder):
    chunks = await service.retrieve("rails devise login", embedder, None, 1)

    assert len(chunks) == 1


def test_chunk_sources_deduplicates_parents():
    chunks = [
        ChunkRecord(parent_type="question", parent_id="q1", chunk_index=i, content="x" * 500)
        for i in range(3)
    ]

    sources = AnswerService.chunk_sources(chunks, {})

    assert len(sources) == 1
    assert sources[0].slug == "q1"
    assert len(sources[0].excerpt) == EXCERPT_LENGTH
