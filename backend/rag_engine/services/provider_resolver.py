import logging
from typing import Optional

from injector import inject

from rag_engine.core.exceptions.provider_errors import ConfigurationError
from rag_engine.modules.embedding.client import EmbeddingClient
from rag_engine.services.embedding_providers import EmbeddingProviderService
from rag_engine.services.llm_client import LlmClient
from rag_engine.services.llm_providers import LlmProviderService


logger = logging.getLogger(__name__)


@inject
class ProviderResolver:
    """
    Builds clients for the currently enabled embedding provider and the
    default language model. A provider that cannot be used is treated as absent.
    """

    def __init__(self,
                 embedding_providers: EmbeddingProviderService,
                 llm_providers: LlmProviderService):
        self.embedding_providers = embedding_providers
        self.llm_providers = llm_providers

    async def embedding_client(self) -> Optional[EmbeddingClient]:
        config = await self.embedding_providers.get_active()
        if config is None:
            return None
        try:
            client = EmbeddingClient.from_settings(config)
            client.validate()
        except ConfigurationError as e:
            logger.warning(f"Embedding provider '{config.name}' is unusable: {e}")
            return None
        return client

    async def llm_client(self) -> Optional[LlmClient]:
        config = await self.llm_providers.get_default()
        if config is None:
            return None
        client = LlmClient(config)
        try:
            client.chat_model
        except ConfigurationError as e:
            logger.warning(f"LLM provider '{config.name}' is unusable: {e}")
            return None
        return client
