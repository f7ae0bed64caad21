import asyncio
import json
import logging
from typing import Any, Optional

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from rag_engine.core.exceptions.provider_errors import (
    ApiError,
    ConfigurationError,
    ProviderError,
    RateLimitError,
)
from rag_engine.core.utils.llm_utils import clean_json_response, message_text
from rag_engine.schemas.provider import LlmProviderConfig


logger = logging.getLogger(__name__)

# provider_type -> langchain model_provider
MODEL_PROVIDERS = {
    "openai": "openai",
    "anthropic": "anthropic",
    "ollama": "ollama",
    "azure_openai": "azure_openai",
    "bedrock": "bedrock_converse",
    "cohere": "cohere",
}

JSON_INSTRUCTION = "Respond with valid JSON only. Do not include any text outside the JSON object."


def build_chat_model(config: LlmProviderConfig) -> BaseChatModel:
    provider = MODEL_PROVIDERS.get(config.provider_type)
    if provider is None:
        raise ConfigurationError(f"Unsupported LLM provider type: {config.provider_type}")

    model_kwargs: dict[str, Any] = {
        "model_provider": provider,
        "model": config.model,
        "temperature": config.temperature,
    }
    if provider == "ollama":
        model_kwargs["num_predict"] = config.max_tokens
    else:
        model_kwargs["max_tokens"] = config.max_tokens
    if config.api_key and provider not in ("ollama", "bedrock_converse"):
        model_kwargs["api_key"] = config.api_key
    if config.endpoint:
        model_kwargs["base_url"] = config.endpoint

    try:
        return init_chat_model(**model_kwargs)
    except (ImportError, ValueError) as e:
        raise ConfigurationError(f"Cannot initialize {config.provider_type} model: {e}") from e


def classify_llm_error(error: Exception) -> ProviderError:
    message = str(error)
    lowered = message.lower()
    if "rate limit" in lowered or "429" in lowered:
        return RateLimitError(message, 429)
    if "invalid" in lowered and "key" in lowered:
        return ConfigurationError(message)
    if "not found" in lowered:
        return ConfigurationError(message)
    return ApiError(message)


class LlmClient:
    """Chat completions against the configured default language model."""

    def __init__(self, config: LlmProviderConfig, chat_model: Optional[BaseChatModel] = None):
        self.config = config
        self._chat_model = chat_model

    @property
    def chat_model(self) -> BaseChatModel:
        if self._chat_model is None:
            self._chat_model = build_chat_model(self.config)
        return self._chat_model

    async def generate(self, prompt: str, system: Optional[str] = None,
                       timeout: Optional[float] = None) -> str:
        messages = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        timeout = timeout or self.config.timeout_seconds
        try:
            response = await asyncio.wait_for(self.chat_model.ainvoke(messages), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ApiError(f"{self.config.provider_type}: no response within {timeout}s") from e
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"LLM call failed ({self.config.provider_type}/{self.config.model}): {e}")
            raise classify_llm_error(e) from e
        return message_text(response.content)

    async def generate_json(self, prompt: str, system: Optional[str] = None,
                            schema: Optional[dict] = None,
                            timeout: Optional[float] = None) -> dict:
        full_prompt = f"{prompt}\n\n{JSON_INSTRUCTION}"
        if schema:
            full_prompt += f"\n\nUse this JSON schema:\n{json.dumps(schema, indent=2)}"

        text = await self.generate(full_prompt, system=system, timeout=timeout)
        try:
            parsed = json.loads(clean_json_response(text))
        except json.JSONDecodeError as e:
            logger.warning(f"LLM returned invalid JSON: {text[:200]}")
            raise ApiError(f"Invalid JSON from language model: {e}") from e
        if not isinstance(parsed, dict):
            raise ApiError("Language model JSON response is not an object")
        return parsed
