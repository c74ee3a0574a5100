import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

logger = logging.getLogger(__name__)


class ExamSarthiError(Exception):
    """Base des erreurs métier, convertie en réponse JSON par le handler."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class PDFProcessingError(ExamSarthiError):
    status_code = HTTP_422_UNPROCESSABLE_ENTITY


class LLMServiceError(ExamSarthiError):
    status_code = HTTP_502_BAD_GATEWAY


class BedrockServiceError(LLMServiceError):
    pass


class StorageError(ExamSarthiError):
    status_code = HTTP_502_BAD_GATEWAY


class ScheduleError(ExamSarthiError):
    status_code = HTTP_400_BAD_REQUEST


class InvalidTransitionError(ExamSarthiError):
    status_code = HTTP_409_CONFLICT


async def _handle_exam_sarthi_error(request: Request, exc: ExamSarthiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExamSarthiError, _handle_exam_sarthi_error)
