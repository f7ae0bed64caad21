from .base import BaseChunkStore, BaseDocumentCatalog
from .memory import InMemoryChunkStore, InMemoryDocumentCatalog

__all__ = [
    "BaseChunkStore",
    "BaseDocumentCatalog",
    "InMemoryChunkStore",
    "InMemoryDocumentCatalog",
]
