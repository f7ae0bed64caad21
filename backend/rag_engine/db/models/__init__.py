from .chunk import ChunkModel
from .providers import EmbeddingProviderModel, LlmProviderModel
from .search import SearchDocumentModel, SearchSettingModel

__all__ = [
    "ChunkModel",
    "EmbeddingProviderModel",
    "LlmProviderModel",
    "SearchDocumentModel",
    "SearchSettingModel",
]
