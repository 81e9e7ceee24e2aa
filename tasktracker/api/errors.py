from __future__ import annotations

from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException

from tasktracker.core.errors import (
    AuthenticationError,
    NotFoundError,
    StorageError,
    TaskTrackerError,
    ValidationError,
)
from tasktracker.core.logging import get_logger
from tasktracker.security import redact_sensitive_text

logger = get_logger("tasktracker.api.errors")

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"
INTERNAL_ERROR_MESSAGE = "Internal server error"

_ERROR_CODES_BY_STATUS: dict[int, str] = {
    **{
        error_type.status_code: error_type.code
        for error_type in (ValidationError, AuthenticationError, NotFoundError)
    },
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_500_INTERNAL_SERVER_ERROR: INTERNAL_ERROR_CODE,
}


class ValidationIssue(BaseModel):
    field: str
    message: str


class ErrorPayload(BaseModel):
    code: str
    message: str
    issues: list[ValidationIssue] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: ErrorPayload
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Title is required",
                    "issues": [{"field": "title", "message": "Title is required"}],
                }
            }
        }
    )


def _code_for_status(status_code: int) -> str:
    return _ERROR_CODES_BY_STATUS.get(status_code, "UNKNOWN_ERROR")


def _phrase_for_status(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown Error"


def build_error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    issues: list[ValidationIssue] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=ErrorPayload(code=code, message=redact_sensitive_text(message), issues=issues or [])
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"))


def _issues_from_request_errors(exc: RequestValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in error.get("loc", ())),
            message=str(error.get("msg", "Invalid value")),
        )
        for error in exc.errors()
    ]


def _domain_error_response(exc: TaskTrackerError) -> JSONResponse:
    if isinstance(exc, StorageError):
        # the cause was logged by the storage guard; callers only see a generic message
        return build_error_response(exc.status_code, exc.code, INTERNAL_ERROR_MESSAGE)
    issues = [ValidationIssue(field=exc.field, message=exc.message)] if exc.field else []
    return build_error_response(exc.status_code, exc.code, exc.message, issues=issues)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TaskTrackerError)
    async def handle_domain_error(_: Request, exc: TaskTrackerError) -> JSONResponse:
        return _domain_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return build_error_response(
            ValidationError.status_code,
            ValidationError.code,
            "Request validation failed.",
            issues=_issues_from_request_errors(exc),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else _phrase_for_status(exc.status_code)
        return build_error_response(exc.status_code, _code_for_status(exc.status_code), message)

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request.unhandled_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            INTERNAL_ERROR_CODE,
            INTERNAL_ERROR_MESSAGE,
        )


def error_response_docs(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    """OpenAPI ``responses`` entries describing the error envelope for each status."""
    return {
        status_code: {
            "model": ErrorResponse,
            "description": _phrase_for_status(status_code),
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": _code_for_status(status_code),
                            "message": _phrase_for_status(status_code),
                            "issues": [],
                        }
                    }
                }
            },
        }
        for status_code in status_codes
    }
