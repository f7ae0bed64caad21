import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from rag_engine.core.config.settings import settings


logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _fernet(key: str) -> Fernet:
    return Fernet(key.encode())


def encrypt_key(key: str) -> str:
    if not settings.FERNET_KEY:
        raise RuntimeError("FERNET_KEY must be set to store provider credentials")
    return _fernet(settings.FERNET_KEY).encrypt(key.encode()).decode()


def decrypt_key(token: str) -> str:
    """Decrypt a stored credential; values that were never encrypted come back unchanged."""
    if not token or not settings.FERNET_KEY:
        return token
    try:
        return _fernet(settings.FERNET_KEY).decrypt(token.encode()).decode()
    except InvalidToken:
        logger.warning("Stored credential is not a Fernet token, using it as-is")
        return token


def get_masked_api_key(api_key: str) -> str:
    return api_key[:3] + "***" + api_key[-3:]
