import logging
import time
import uuid
from typing import Optional

from fastapi import Request
from opentelemetry.trace import SpanKind, Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware

from sku_service.core.telemetry import current_trace_id, get_telemetry

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def route_template(request: Request) -> str:
    """
    Шаблон маршрута (/api/v1/skus/{sku_id}) вместо конкретного пути.
    Роутер кладет найденный маршрут в scope, поэтому читать его нужно
    после обработки запроса; для ненайденных маршрутов остается путь.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


class TelemetryMiddleware(BaseHTTPMiddleware):
    """
    Серверный спан на каждый запрос, метрики HTTP и заголовок
    X-Correlation-ID с trace id запроса.
    """

    async def dispatch(self, request: Request, call_next):
        telemetry = get_telemetry()
        started = time.perf_counter()
        status_code: Optional[int] = None

        with telemetry.tracer.start_as_current_span(
            f"{request.method} {request.url.path}",
            kind=SpanKind.SERVER,
            attributes={"http.method": request.method},
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            request.state.correlation_id = current_trace_id() or uuid.uuid4().hex
            try:
                response = await call_next(request)
                status_code = response.status_code
            except Exception as exc:
                status_code = 500
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise
            finally:
                route = route_template(request)
                span.update_name(f"{request.method} {route}")
                span.set_attribute("http.route", route)
                span.set_attribute("http.status_code", status_code or 500)
                telemetry.record_request(
                    request.method, route, status_code or 500, (time.perf_counter() - started) * 1000
                )

            if status_code >= 500:
                span.set_status(Status(StatusCode.ERROR))

        response.headers[CORRELATION_HEADER] = request.state.correlation_id
        logger.debug("%s %s -> %d", request.method, request.url.path, status_code)
        return response
