"""Pytest fixtures for testing"""

import json
import pytest
from typing import Any, Dict, List
from fastapi.testclient import TestClient
from smart_advisor.api.dependencies import get_analysis_service
from smart_advisor.api.main import create_app
from smart_advisor.domain.models import LoanInputs, PortfolioItem, ProductType
from smart_advisor.infrastructure.resilience.rate_limiter import RateLimiter
from smart_advisor.services.advisory import AdvisoryPipeline
from smart_advisor.services.analysis import AnalysisService


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubAdvisoryClient:
    """
    Advisory client replaying scripted outcomes.

    Each outcome is either response text or an exception instance to raise.
    The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: List[Any], configured: Exception | None = None):
        self.outcomes = list(outcomes)
        self.configured = configured
        self.calls: List[Dict[str, Any]] = []

    def ensure_configured(self) -> None:
        if self.configured is not None:
            raise self.configured

    def build_request(self, prompt: str) -> Dict[str, Any]:
        return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

    async def generate(self, payload: Dict[str, Any]) -> str:
        self.calls.append(payload)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    """No-op async sleep that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def advice_json(recommendation: str = "Finance", growth: float = 1234.56) -> str:
    return json.dumps(
        {
            "recommendation": recommendation,
            "summary": "Financing keeps your investments compounding.",
            "detailedAnalysis": "The portfolio return exceeds the financing cost.",
            "projectedInvestmentGrowth": growth,
        }
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock: FakeClock) -> RateLimiter:
    """Isolated limiter with small, deterministic budgets"""
    return RateLimiter(
        window_seconds=60.0,
        max_requests=5,
        max_bytes=50_000,
        failure_threshold=3,
        cooldown_seconds=30.0,
        cooldown_multiplier=2.0,
        max_cooldown_seconds=120.0,
        clock=clock,
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def loan_inputs() -> LoanInputs:
    """Loan defaults with a small two-asset portfolio"""
    inputs = LoanInputs.defaults(ProductType.LOAN)
    inputs.portfolio = [
        PortfolioItem(id="etf", name="World ETF", amount="20000", return_rate="7"),
        PortfolioItem(id="bonds", name="Government Bonds", amount="10000", return_rate="3"),
    ]
    return inputs


@pytest.fixture
def stub_client() -> StubAdvisoryClient:
    return StubAdvisoryClient([advice_json()])


@pytest.fixture
def pipeline(stub_client: StubAdvisoryClient, make_pipeline) -> AdvisoryPipeline:
    return make_pipeline(stub_client)


@pytest.fixture
def client(pipeline: AdvisoryPipeline, rate_limiter: RateLimiter) -> TestClient:
    """FastAPI test client wired to the stub advisory client"""
    app = create_app(rate_limiter=rate_limiter)
    service = AnalysisService(pipeline)

    app.dependency_overrides[get_analysis_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def make_advice():
    """Factory for a valid advisory response body"""
    return advice_json


@pytest.fixture
def make_stub_client():
    """Factory for scripted advisory clients"""
    return StubAdvisoryClient


@pytest.fixture
def make_pipeline(rate_limiter: RateLimiter, recording_sleep: RecordingSleep):
    """Factory for pipelines around a given client, sharing the test limiter and sleep"""

    def _make(client, **overrides) -> AdvisoryPipeline:
        options = dict(
            max_attempts=3,
            backoff_base=1.0,
            backoff_max=30.0,
            jitter_max=0.5,
            sleep=recording_sleep,
            jitter=lambda low, high: high / 2,
        )
        options.update(overrides)
        return AdvisoryPipeline(client=client, rate_limiter=rate_limiter, **options)

    return _make


@pytest.fixture
def api_client_for(make_pipeline, rate_limiter: RateLimiter):
    """Factory for a TestClient whose advisory client replays the given outcomes"""

    def _make(outcomes):
        stub = StubAdvisoryClient(outcomes)
        app = create_app(rate_limiter=rate_limiter)
        service = AnalysisService(make_pipeline(stub))
        app.dependency_overrides[get_analysis_service] = lambda: service
        return TestClient(app), stub

    return _make
