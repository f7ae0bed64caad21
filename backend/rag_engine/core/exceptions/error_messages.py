import logging
from enum import Enum
from typing import Optional, Sequence

from fastapi import Request

from rag_engine.core.config.settings import settings


logger = logging.getLogger(__name__)


class ErrorKey(Enum):
    INTERNAL_ERROR = "error_500"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    EMBEDDING_PROVIDER_NOT_FOUND = "EMBEDDING_PROVIDER_NOT_FOUND"
    LLM_PROVIDER_NOT_FOUND = "LLM_PROVIDER_NOT_FOUND"
    PROVIDER_NOT_SUPPORTED = "PROVIDER_NOT_SUPPORTED"
    INVALID_DIMENSIONS = "INVALID_DIMENSIONS"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    NO_EMBEDDING_PROVIDER = "NO_EMBEDDING_PROVIDER"
    NO_LLM_PROVIDER = "NO_LLM_PROVIDER"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    LLM_FAILED_JSON_PARSING = "LLM_FAILED_JSON_PARSING"


ERROR_MESSAGES = {
    "en": {
        ErrorKey.INTERNAL_ERROR: "An internal server error occurred. Please try again later.",
        ErrorKey.NOT_FOUND: "The requested resource was not found.",
        ErrorKey.VALIDATION_ERROR: "The request is invalid: {0}",
        ErrorKey.EMBEDDING_PROVIDER_NOT_FOUND: "Embedding provider not found.",
        ErrorKey.LLM_PROVIDER_NOT_FOUND: "LLM provider not found.",
        ErrorKey.PROVIDER_NOT_SUPPORTED: "Provider type '{0}' is not supported.",
        ErrorKey.INVALID_DIMENSIONS: "Dimensions must be between 1 and {0}.",
        ErrorKey.DOCUMENT_NOT_FOUND: "Document not found.",
        ErrorKey.NO_EMBEDDING_PROVIDER: "No embedding provider is enabled.",
        ErrorKey.NO_LLM_PROVIDER: "No language model provider is enabled.",
        ErrorKey.EMBEDDING_FAILED: "Embedding failed: {0}",
        ErrorKey.LLM_FAILED_JSON_PARSING: "The language model returned invalid JSON.",
    }
}


def get_error_message(
    error_key: ErrorKey,
    request: Optional[Request] = None,
    lang: str = "en",
    error_variables: Sequence[str] = (),
):
    """
    Retrieves an error message based on the caller's language preference.
    Falls back to DEFAULT_LANGUAGE if no valid language is found.
    """
    if not isinstance(error_key, ErrorKey):
        raise ValueError(f"Invalid error key: {error_key}")

    user_lang = (
        (request.query_params.get("lang") or request.headers.get("Accept-Language"))
        if request
        else lang
    )
    lang = (
        user_lang
        if user_lang in settings.SUPPORTED_LANGUAGES
        else settings.DEFAULT_LANGUAGE
    )

    return (
        ERROR_MESSAGES[lang].get(error_key, error_key.value)
    ).format(*error_variables)
