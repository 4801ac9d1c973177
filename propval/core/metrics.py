import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# HTTP surface
REQ_COUNT = Counter("http_requests_total", "Total HTTP requests", ["path","method","code"])
REQ_LATENCY = Histogram("http_request_duration_seconds", "Request latency", ["path","method"])

# Pipeline internals (metadata only, never payloads)
STAGE_LATENCY = Histogram(
    "valuation_stage_duration_seconds", "Valuation pipeline stage latency", ["stage", "outcome"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 20, 30, 60),
)
PROVIDER_ATTEMPTS = Counter("ai_provider_attempts_total", "AI provider attempts", ["provider", "outcome"])
PIPELINE_RUNS = Counter("valuation_runs_total", "Finished valuation runs", ["status"])


def observe_stage(stage: str, elapsed_ms: float, outcome: str):
    STAGE_LATENCY.labels(stage=stage, outcome=outcome).observe(elapsed_ms / 1000.0)


def observe_provider_attempt(provider: str, outcome: str):
    PROVIDER_ATTEMPTS.labels(provider=provider, outcome=outcome).inc()


def observe_run(status: str):
    PIPELINE_RUNS.labels(status=status).inc()


class PromMiddleware(BaseHTTPMiddleware):
    """
    Measures latency and counts requests.
    """
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed = time.perf_counter() - start

        # Route template keeps label cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        method = request.method
        code = str(response.status_code)

        REQ_COUNT.labels(path=path, method=method, code=code).inc()
        REQ_LATENCY.labels(path=path, method=method).observe(elapsed)
        return response


async def metrics_endpoint(request: Request):
    """
    GET /v1/metrics, scraped by Prometheus.
    """
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
