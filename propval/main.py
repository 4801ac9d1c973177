from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Routers
from .routers.valuation import router as valuation_router

# Core modules
from .core.cache import build_cache
from .core.config import Settings, get_settings
from .core.logging import configure_logging, CorrelationIdMiddleware
from .core.metrics import PromMiddleware, metrics_endpoint
from .services.valuation_service import ValuationService


def create_app(settings: Settings | None = None, service: ValuationService | None = None) -> FastAPI:
    """
    App factory so tests and ASGI servers can instantiate cleanly. Settings
    are validated here, once; the service and its clients are built once and
    shared by every request.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)  # JSON logs + request-id filter

    cache = build_cache(settings)
    service = service or ValuationService.from_settings(settings, cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.aclose()
        await cache.aclose()

    app = FastAPI(
        title="Property Valuation API",
        version="2.0.0",
        description="Concurrent data fan-out, coefficient pricing and AI refinement with provider failover.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = cache
    app.state.valuation_service = service

    allow_origins = [o.strip() for o in settings.ALLOW_ORIGINS.split(",")] if settings.ALLOW_ORIGINS else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

    # Observability middlewares
    app.add_middleware(CorrelationIdMiddleware)  # Adds/propagates X-Request-Id
    if settings.PROMETHEUS_ENABLED:
        app.add_middleware(PromMiddleware)       # Records req/latency metrics

    # Meta routes
    @app.get("/v1/health", tags=["meta"])
    def health():
        return {"status": "ok"}

    @app.get("/v1/ping", tags=["meta"])
    def ping():
        return {"pong": True}

    if settings.PROMETHEUS_ENABLED:
        app.add_route("/v1/metrics", metrics_endpoint, methods=["GET"])

    # Business routes
    app.include_router(valuation_router, prefix="/v1", tags=["valuation"])

    return app


app = create_app()
