import logging

from fastapi import FastAPI
from starlette import status
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.models.api_responses import ErrorResponse
from app.services.errors import (
    AuthRequiredError,
    NotFoundError,
    OperationTimeoutError,
    RemoteAPIError,
    SlackDirectoryError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = [
    (AuthRequiredError, status.HTTP_401_UNAUTHORIZED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (RemoteAPIError, status.HTTP_502_BAD_GATEWAY),
    (OperationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(error: SlackDirectoryError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(error: SlackDirectoryError) -> JSONResponse:
    return JSONResponse(
        ErrorResponse(error=error.kind, message=error.message).model_dump(mode="json"),
        status_code=status_for(error),
    )


async def handle_directory_error(request: Request, exc: SlackDirectoryError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed with {exc.kind}: {exc.message}")
    return error_response(exc)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error in {request.method} {request.url.path}")
    return JSONResponse(
        ErrorResponse(error="internal_error", message=str(exc)).model_dump(mode="json"),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SlackDirectoryError, handle_directory_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
