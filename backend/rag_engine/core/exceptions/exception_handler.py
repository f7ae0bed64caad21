import logging
import os

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rag_engine.core.exceptions.error_messages import ErrorKey, get_error_message
from rag_engine.core.exceptions.exception_classes import AppException
from rag_engine.core.exceptions.provider_errors import ConfigurationError


logger = logging.getLogger(__name__)


def init_error_handlers(app):
    @app.exception_handler(AppException)
    def handle_app_exception(request: Request, error: AppException):
        if error.error_detail:
            logger.exception(error.error_detail)
        logger.info(f"Handled bad request: {error}")
        response = {
            "error": get_error_message(
                request=request,
                error_key=error.error_key,
                error_variables=error.error_variables,
            ),
            "error_code": error.status_code,
            "error_key": error.error_key.value,
            "error_detail": error.error_detail if os.getenv("ENV") == "dev" else None,
        }
        return JSONResponse(
            content=jsonable_encoder(response), status_code=error.status_code
        )

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, error: RequestValidationError):
        response = {
            "error": get_error_message(
                request=request,
                error_key=ErrorKey.VALIDATION_ERROR,
                error_variables=[str(error.errors())],
            ),
            "error_code": 422,
            "error_key": ErrorKey.VALIDATION_ERROR.value,
        }
        return JSONResponse(content=jsonable_encoder(response), status_code=422)

    @app.exception_handler(ConfigurationError)
    def handle_configuration_error(request: Request, error: ConfigurationError):
        logger.warning(f"Provider configuration error: {error}")
        response = {
            "error": str(error),
            "error_code": 400,
            "error_key": ErrorKey.PROVIDER_NOT_SUPPORTED.value,
        }
        return JSONResponse(content=jsonable_encoder(response), status_code=400)

    @app.exception_handler(500)
    def handle_internal_server_error(request: Request, _: Exception):
        response = {
            "error": get_error_message(
                error_key=ErrorKey.INTERNAL_ERROR, request=request
            ),
        }
        return JSONResponse(content=jsonable_encoder(response), status_code=500)
