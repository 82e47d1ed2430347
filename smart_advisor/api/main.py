"""FastAPI application factory"""

from fastapi import Depends, FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from smart_advisor.api.dependencies import build_analysis_service, get_rate_limiter
from smart_advisor.api.middleware import RequestIDMiddleware, MetricsMiddleware
from smart_advisor.api.v1 import analysis, investment, products
from smart_advisor.infrastructure.observability.logging import setup_logging
from smart_advisor.infrastructure.resilience.rate_limiter import RateLimiter
from smart_advisor.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app(rate_limiter: RateLimiter | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Smart Advisor",
        description="Finance-or-savings analysis for loans, installment plans and mortgages",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # One breaker shared by every in-flight analysis
    app.state.rate_limiter = rate_limiter or RateLimiter.from_settings(settings)
    app.state.analysis_service = build_analysis_service(app.state.rate_limiter)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check(limiter: RateLimiter = Depends(get_rate_limiter)):
        return {
            "status": "ok",
            "service": settings.service_name,
            "advisory_circuit": limiter.state().value,
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(analysis.router, prefix="/v1", tags=["analysis"])
    app.include_router(investment.router, prefix="/v1", tags=["investment"])
    app.include_router(products.router, prefix="/v1", tags=["products"])

    return app


app = create_app()
