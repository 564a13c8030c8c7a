"""
Обработчики ошибок: любой сбой отдается клиенту как RFC 7807 problem details.

Внутренние ошибки не раскрывают детали, а пишутся в лог вместе с
correlation id, который клиент видит в поле `trace_id`.
"""
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sku_service.core.errors import InternalError, SkuServiceError
from sku_service.core.telemetry import current_trace_id
from sku_service.domains.skus.schemas import ProblemDetail

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://api.retailer.com/problems/"
PROBLEM_CONTENT_TYPE = "application/problem+json"
INTERNAL_DETAIL = "An unexpected error occurred. Please try again later."

HTTP_PROBLEM_TYPES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not-found",
    405: "method-not-allowed",
}

VALUE_ERROR_PREFIX = "Value error, "


def correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, "correlation_id", None) or current_trace_id()


def problem_response(
    request: Request,
    status_code: int,
    problem_type: str,
    title: str,
    detail: Optional[str],
    errors: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Сборка ответа application/problem+json"""
    trace_id = correlation_id(request)
    problem = ProblemDetail(
        type=PROBLEM_BASE_URI + problem_type if problem_type != "about:blank" else problem_type,
        title=title,
        status=status_code,
        detail=detail,
        instance=request.url.path,
        trace_id=trace_id,
        timestamp=datetime.now(timezone.utc),
        errors=errors,
    )
    response_headers = dict(headers or {})
    if trace_id:
        response_headers.setdefault("X-Correlation-ID", trace_id)
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(mode="json", exclude_none=True),
        media_type=PROBLEM_CONTENT_TYPE,
        headers=response_headers,
    )


def validation_errors(exc: RequestValidationError) -> Dict[str, str]:
    """Ошибки pydantic в виде поле -> сообщение"""
    errors: Dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        if len(location) > 1 and location[0] in ("body", "query", "path", "header"):
            location = location[1:]
        message = str(error.get("msg", "Invalid value"))
        if message.startswith(VALUE_ERROR_PREFIX):
            message = message[len(VALUE_ERROR_PREFIX):]
        errors.setdefault(".".join(location) or "request", message)
    return errors


async def handle_service_error(request: Request, exc: SkuServiceError) -> JSONResponse:
    if isinstance(exc, InternalError) or exc.status_code >= 500:
        logger.error(
            "Internal error on %s %s [%s]: %s",
            request.method, request.url.path, correlation_id(request), exc.message,
            exc_info=exc,
        )
        return problem_response(request, exc.status_code, exc.problem_type, exc.title, INTERNAL_DETAIL)

    logger.info("%s on %s %s: %s", exc.title, request.method, request.url.path, exc.message)
    return problem_response(request, exc.status_code, exc.problem_type, exc.title, exc.message, exc.errors)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = validation_errors(exc)
    logger.info("Validation failed on %s %s: %s", request.method, request.url.path, errors)
    return problem_response(
        request, 400, "validation-error", "Validation Failed", "Request validation failed", errors
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        title = HTTPStatus(exc.status_code).phrase
    except ValueError:
        title = "HTTP Error"
    return problem_response(
        request,
        exc.status_code,
        HTTP_PROBLEM_TYPES.get(exc.status_code, "about:blank"),
        title,
        str(exc.detail) if exc.detail else None,
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unexpected error on %s %s [%s]",
        request.method, request.url.path, correlation_id(request),
        exc_info=exc,
    )
    return problem_response(request, 500, "internal-error", "Internal Server Error", INTERNAL_DETAIL)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SkuServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
