"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from smart_advisor.infrastructure.clients.gemini import GeminiClient
from smart_advisor.infrastructure.resilience.rate_limiter import RateLimiter
from smart_advisor.services.advisory import AdvisoryPipeline
from smart_advisor.services.analysis import AnalysisService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_rate_limiter(request: Request) -> RateLimiter:
    """Provide the app-wide rate limiter / circuit breaker"""
    return request.app.state.rate_limiter


def get_analysis_service(request: Request) -> AnalysisService:
    """Provide the app-wide analysis service (owns the in-flight guard)"""
    return request.app.state.analysis_service


def build_analysis_service(rate_limiter: RateLimiter) -> AnalysisService:
    """Wire the Gemini client and pipeline around a shared rate limiter"""
    pipeline = AdvisoryPipeline(client=GeminiClient(), rate_limiter=rate_limiter)
    return AnalysisService(pipeline)
