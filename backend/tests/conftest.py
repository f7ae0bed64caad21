import json
import re
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

# Add the backend directory to the Python path
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

from rag_engine.modules.embedding.client import EmbeddingClient
from rag_engine.modules.store.memory import InMemoryChunkStore, InMemoryDocumentCatalog
from rag_engine.schemas.document import AnswerSnapshot, DocumentSnapshot, DocumentType
from rag_engine.schemas.provider import EmbeddingProviderConfig


# Every word outside the vocabulary is ignored, so texts sharing vocabulary
# words end up close together.
VOCABULARY = [
    "ruby", "rails", "authentication", "devise", "login", "password",
    "python", "django", "database", "postgres", "cooking", "pasta",
]

_WORD_RE = re.compile(r"\w+")


def bag_of_words(text: str) -> list[float]:
    words = _WORD_RE.findall(text.lower())
    return [float(words.count(term)) for term in VOCABULARY]


def openai_handler(fail_on: str | None = None):
    """OpenAI-shaped embeddings endpoint; returns data in reverse order."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        texts = body["input"]
        if fail_on and any(fail_on in text for text in texts):
            return httpx.Response(500, json={"error": {"message": "upstream exploded"}})
        data = [
            {"object": "embedding", "index": i, "embedding": bag_of_words(text)}
            for i, text in enumerate(texts)
        ]
        return httpx.Response(200, json={"data": list(reversed(data))})
    return handler


def make_embedding_config(**overrides) -> EmbeddingProviderConfig:
    values = {
        "id": "provider-1",
        "name": "Test OpenAI",
        "provider_type": "openai",
        "model": "text-embedding-3-small",
        "dimensions": len(VOCABULARY),
        "chunk_size_tokens": 512,
        "chunk_overlap_fraction": 0.1,
        "similarity_threshold": 0.5,
        "api_key": "sk-test",
    }
    values.update(overrides)
    return EmbeddingProviderConfig(**values)


def make_embedder(fail_on: str | None = None, **overrides) -> EmbeddingClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(openai_handler(fail_on)))
    return EmbeddingClient(make_embedding_config(**overrides), http_client=http_client,
                           base_delay=0)


_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_snapshot(doc_id: str, title: str = "", body: str = "",
                  doc_type: DocumentType = DocumentType.QUESTION, age_days: int = 0,
                  answers: list[AnswerSnapshot] | None = None, **extra) -> DocumentSnapshot:
    created = _BASE_TIME + timedelta(days=age_days)
    return DocumentSnapshot(
        type=doc_type,
        id=doc_id,
        slug=extra.pop("slug", f"{doc_type.value}-{doc_id}"),
        title=title,
        body=body,
        answers=answers or [],
        created_at=created,
        updated_at=extra.pop("updated_at", created),
        **extra,
    )


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def embedder():
    return make_embedder()


@pytest.fixture
def chunk_store():
    return InMemoryChunkStore()


@pytest.fixture
def catalog():
    return InMemoryDocumentCatalog()


class FakeResolver:
    """Stands in for the database-backed provider lookup."""

    def __init__(self, embedder=None, llm=None):
        self.embedder = embedder
        self.llm = llm

    async def embedding_client(self):
        return self.embedder

    async def llm_client(self):
        return self.llm
