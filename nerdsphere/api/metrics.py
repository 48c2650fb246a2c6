"""
Prometheus-style metrics endpoint.
"""
import time
from typing import Callable

from fastapi import APIRouter, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from nerdsphere.core.logging import get_logger
from nerdsphere.core.metrics import record_request, snapshot

logger = get_logger(__name__)

router = APIRouter(tags=["Metrics"])


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        record_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=duration,
        )

        return response


def generate_prometheus_metrics(app_version: str = "1.0.0") -> str:
    """Generate Prometheus-format metrics output."""
    current = snapshot()
    lines = []

    lines.append("# HELP app_info Application information")
    lines.append("# TYPE app_info gauge")
    lines.append(f'app_info{{version="{app_version}"}} 1')
    lines.append("")

    if current["startup_time"]:
        lines.append("# HELP app_start_time_seconds Unix timestamp when the app started")
        lines.append("# TYPE app_start_time_seconds gauge")
        lines.append(f'app_start_time_seconds {current["startup_time"]:.3f}')
        lines.append("")

    lines.append("# HELP messages_submitted_total Messages accepted and stored")
    lines.append("# TYPE messages_submitted_total counter")
    lines.append(f'messages_submitted_total {current["messages_submitted_total"]}')
    lines.append("")

    lines.append("# HELP messages_rejected_total Submissions rejected, by error kind")
    lines.append("# TYPE messages_rejected_total counter")
    for kind, count in sorted(current["messages_rejected_total"].items()):
        lines.append(f'messages_rejected_total{{kind="{kind}"}} {count}')
    lines.append("")

    lines.append("# HELP messages_swept_total Messages deleted by the retention sweeper")
    lines.append("# TYPE messages_swept_total counter")
    lines.append(f'messages_swept_total {current["messages_swept_total"]}')
    lines.append("")

    lines.append("# HELP http_requests_total Total number of HTTP requests")
    lines.append("# TYPE http_requests_total counter")
    for (method, path, status), count in current["http_requests_total"].items():
        lines.append(f'http_requests_total{{method="{method}",path="{path}",status="{status}"}} {count}')
    lines.append("")

    lines.append("# HELP http_request_duration_seconds HTTP request duration in seconds")
    lines.append("# TYPE http_request_duration_seconds summary")
    for (method, path), durations in current["http_request_duration_seconds"].items():
        if durations:
            lines.append(f'http_request_duration_seconds_sum{{method="{method}",path="{path}"}} {sum(durations):.6f}')
            lines.append(f'http_request_duration_seconds_count{{method="{method}",path="{path}"}} {len(durations)}')

    return "\n".join(lines)


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Returns metrics in Prometheus exposition format.",
    response_class=Response,
)
async def metrics(request: Request) -> Response:
    """Prometheus-style metrics endpoint."""
    content = generate_prometheus_metrics(request.app.version)
    return Response(
        content=content,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
