from typing import Sequence

from rag_engine.core.exceptions.error_messages import ErrorKey


class AppException(Exception):
    """
        Application level exception surfaced to HTTP callers.

        Takes an error key and an optional status code; the handler resolves the
        key to a localized message when the response is built.

        Example:
            ```python
            raise AppException(ErrorKey.LLM_PROVIDER_NOT_FOUND, 404)
            ```
        """
    def __init__(self, error_key: ErrorKey, status_code=400, error_detail="",
                 error_variables: Sequence[str] = ()):
        self.error_key: ErrorKey = error_key
        self.status_code = status_code
        self.error_detail = error_detail
        self.error_variables = list(error_variables)
        super().__init__(error_key.value)
