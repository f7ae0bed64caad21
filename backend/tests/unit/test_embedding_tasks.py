import pytest

from conftest import FakeResolver, make_embedder, make_snapshot
from rag_engine.dependencies.injector import create_injector
from rag_engine.modules.store.memory import InMemoryChunkStore
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.tasks import embedding_tasks


@pytest.fixture
def task_injector(monkeypatch):
    test_injector = create_injector()
    test_injector.binder.bind(ProviderResolver, to=FakeResolver(make_embedder()))
    monkeypatch.setattr(embedding_tasks, "injector", test_injector)
    return test_injector


@pytest.mark.asyncio
async def test_embed_document_task_body(task_injector):
    document = make_snapshot("q1", title="Rails login", body="devise")

    result = await embedding_tasks.embed_document_async_with_scope(document.model_dump(mode="json"))

    assert result["status"] == "success"
    assert result["result"]["success"] is True
    store = task_injector.get(InMemoryChunkStore)
    assert await store.get_for_parent(document.ref)


@pytest.mark.asyncio
async def test_content_changed_task_body(task_injector):
    document = make_snapshot("q1", title="Rails login", body="devise")
    await embedding_tasks.embed_document_async_with_scope(document.model_dump(mode="json"))

    result = await embedding_tasks.content_changed_async_with_scope(
        {"id": "q1", "type": "question", "change_kind": "deleted"}
    )

    assert result["status"] == "success"
    store = task_injector.get(InMemoryChunkStore)
    assert await store.get_for_parent(document.ref) == []


@pytest.mark.asyncio
async def test_invalid_payload_is_reported(task_injector):
    result = await embedding_tasks.embed_document_async_with_scope({"id": "q1"})

    assert result["status"] == "failed"
    assert result["error"]


@pytest.mark.asyncio
async def test_regenerate_without_provider_is_skipped(task_injector):
    task_injector.binder.bind(ProviderResolver, to=FakeResolver())

    result = await embedding_tasks.regenerate_all_async_with_scope()

    assert result["status"] == "skipped"


@pytest.mark.asyncio
async def test_regenerate_task_body(task_injector):
    document = make_snapshot("q1", title="Rails login", body="devise")
    await embedding_tasks.embed_document_async_with_scope(document.model_dump(mode="json"))

    result = await embedding_tasks.regenerate_all_async_with_scope()

    assert result["status"] == "success"
    assert result["result"]["succeeded"] == 1
