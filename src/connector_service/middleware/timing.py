"""Request id binding and per-path latency tracking."""

import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

MAX_SAMPLES = 1000
REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class PathLatency:
    """Rolling window of request durations (seconds) for one path."""

    samples: deque = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))

    def record(self, seconds: float) -> None:
        self.samples.append(seconds)

    def _percentile(self, fraction: float) -> float:
        if not self.samples:
            return 0.0
        ordered = sorted(self.samples)
        return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]

    def summary(self) -> dict:
        count = len(self.samples)
        avg = sum(self.samples) / count if count else 0.0
        return {
            "count": count,
            "avg_ms": round(avg * 1000, 2),
            "p50_ms": round(self._percentile(0.5) * 1000, 2),
            "p95_ms": round(self._percentile(0.95) * 1000, 2),
        }


_latencies: dict[str, PathLatency] = defaultdict(PathLatency)


def get_endpoint_stats() -> dict[str, dict]:
    return {path: latency.summary() for path, latency in _latencies.items()}


def reset_endpoint_stats() -> None:
    _latencies.clear()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id into structlog context and times each request.

    An incoming ``X-Request-ID`` is reused; otherwise one is generated. The id
    is echoed back along with ``X-Response-Time-Ms``.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration = time.perf_counter() - start
            _latencies[request.url.path].record(duration)

        duration_ms = round(duration * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)

        logger.debug(
            "request_completed",
            path=request.url.path,
            method=request.method,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        structlog.contextvars.clear_contextvars()
        return response
