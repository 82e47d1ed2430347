"""Unit tests for the advisory request pipeline"""

import asyncio
import pytest
from smart_advisor.domain.amortization import compute_cost
from smart_advisor.domain.exceptions import (
    AdvisoryConfigurationError,
    AnalysisCancelled,
    ClientServiceError,
    MalformedResponse,
    RateLimited,
    TransientServiceError,
)
from smart_advisor.domain.models import CircuitState, ProductType, Recommendation


@pytest.fixture
def loan_cost(loan_inputs):
    return compute_cost(ProductType.LOAN, loan_inputs)


async def test_success_on_first_attempt(pipeline, stub_client, rate_limiter, loan_inputs, loan_cost):
    advice = await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert advice.recommendation == Recommendation.FINANCE
    assert advice.projected_investment_growth == pytest.approx(1234.56)
    assert len(stub_client.calls) == 1
    assert rate_limiter.failure_count() == 0


async def test_transient_failures_then_success(
    make_stub_client, make_pipeline, make_advice, recording_sleep, loan_inputs, loan_cost
):
    """Two transient failures then success: 3 calls, strictly increasing delays"""
    client = make_stub_client(
        [
            TransientServiceError("Advisory API error: 503", status_code=503),
            TransientServiceError("Advisory API timeout"),
            make_advice("UseSavings"),
        ]
    )
    pipeline = make_pipeline(client)

    advice = await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert advice.recommendation == Recommendation.USE_SAVINGS
    assert len(client.calls) == 3
    assert len(recording_sleep.delays) == 2
    assert recording_sleep.delays[0] < recording_sleep.delays[1]
    # base * 2^attempt + jitter (0.25)
    assert recording_sleep.delays == pytest.approx([1.25, 2.25])


async def test_delays_increase_with_random_jitter(make_stub_client, make_pipeline, make_advice, recording_sleep, loan_inputs, loan_cost):
    """Worst-case jitter still keeps delays strictly increasing"""
    client = make_stub_client([TransientServiceError(), TransientServiceError(), make_advice()])
    jitters = iter([0.4999, 0.0])
    pipeline = make_pipeline(client, jitter=lambda low, high: next(jitters))

    await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert recording_sleep.delays[0] < recording_sleep.delays[1]


async def test_client_error_is_not_retried(make_stub_client, make_pipeline, recording_sleep, rate_limiter, loan_inputs, loan_cost):
    """4xx-class errors fail after exactly one attempt and leave breaker health alone"""
    client = make_stub_client([ClientServiceError("Advisory API rejected request: 400", status_code=400)])
    pipeline = make_pipeline(client)

    with pytest.raises(ClientServiceError):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert len(client.calls) == 1
    assert recording_sleep.delays == []
    assert rate_limiter.failure_count() == 0


async def test_provider_rate_limit_is_not_retried(make_stub_client, make_pipeline, rate_limiter, loan_inputs, loan_cost):
    client = make_stub_client([RateLimited(20.0, reason="provider rate limit")])
    pipeline = make_pipeline(client)

    with pytest.raises(RateLimited) as exc_info:
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert exc_info.value.retry_after_seconds == 20.0
    assert len(client.calls) == 1
    assert rate_limiter.failure_count() == 0


async def test_exhausted_retries_record_failure(make_stub_client, make_pipeline, recording_sleep, rate_limiter, loan_inputs, loan_cost):
    client = make_stub_client([TransientServiceError("Advisory API error: 502", status_code=502)])
    pipeline = make_pipeline(client)

    with pytest.raises(TransientServiceError) as exc_info:
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert exc_info.value.status_code == 502
    assert len(client.calls) == 3
    assert len(recording_sleep.delays) == 2
    assert rate_limiter.failure_count() == 1


async def test_backoff_capped_at_max_delay(make_stub_client, make_pipeline, recording_sleep, loan_inputs, loan_cost):
    client = make_stub_client([TransientServiceError()])
    pipeline = make_pipeline(client, max_attempts=6, backoff_base=4.0)

    with pytest.raises(TransientServiceError):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert max(recording_sleep.delays) == 30.0


async def test_local_rate_limit_skips_network(make_stub_client, make_pipeline, make_advice, rate_limiter, loan_inputs, loan_cost):
    """Open circuit: RateLimited raised before any call"""
    for _ in range(rate_limiter.failure_threshold):
        rate_limiter.record_failure()
    client = make_stub_client([make_advice()])
    pipeline = make_pipeline(client)

    with pytest.raises(RateLimited) as exc_info:
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert exc_info.value.reason == "circuit open"
    assert exc_info.value.retry_after_seconds == pytest.approx(30.0)
    assert client.calls == []


async def test_malformed_response_counts_as_failure(make_stub_client, make_pipeline, rate_limiter, loan_inputs, loan_cost):
    """Schema violations are service degradation: breaker failure, no reset"""
    rate_limiter.record_failure()
    client = make_stub_client(['{"recommendation": "Maybe", "summary": "", "detailedAnalysis": "", "projectedInvestmentGrowth": 0}'])
    pipeline = make_pipeline(client)

    with pytest.raises(MalformedResponse):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert len(client.calls) == 1
    assert rate_limiter.failure_count() == 2


async def test_client_side_malformed_response_counts_as_failure(
    make_stub_client, make_pipeline, recording_sleep, rate_limiter, loan_inputs, loan_cost
):
    """A 200 without candidate text is not retried and counts against the breaker"""
    client = make_stub_client([MalformedResponse("Invalid response body from advisory API: no candidates")])
    pipeline = make_pipeline(client)

    with pytest.raises(MalformedResponse):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert len(client.calls) == 1
    assert recording_sleep.delays == []
    assert rate_limiter.failure_count() == 1


async def test_malformed_probe_reopens_circuit(make_stub_client, make_pipeline, make_advice, rate_limiter, clock, loan_inputs, loan_cost):
    """A half-open probe ending in an empty candidate reopens with a longer cool-down, then recovers"""
    for _ in range(rate_limiter.failure_threshold):
        rate_limiter.record_failure()
    clock.advance(30)
    pipeline = make_pipeline(make_stub_client([MalformedResponse("no candidates"), make_advice()]))

    with pytest.raises(MalformedResponse):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert rate_limiter.state() == CircuitState.OPEN
    assert rate_limiter.check_rate_limit(100).retry_after_seconds == pytest.approx(60.0)

    clock.advance(60)
    assert rate_limiter.check_rate_limit(100).allowed is True
    assert rate_limiter.state() == CircuitState.HALF_OPEN


async def test_unclassified_client_error_frees_probe(make_stub_client, make_pipeline, rate_limiter, clock, loan_inputs, loan_cost):
    """An exception outside the advisory errors propagates without holding the probe slot"""
    for _ in range(rate_limiter.failure_threshold):
        rate_limiter.record_failure()
    clock.advance(30)
    pipeline = make_pipeline(make_stub_client([RuntimeError("transport bug")]))

    with pytest.raises(RuntimeError):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert rate_limiter.state() == CircuitState.HALF_OPEN
    assert rate_limiter.check_rate_limit(100).allowed is True


async def test_success_resets_failure_count(pipeline, rate_limiter, loan_inputs, loan_cost):
    rate_limiter.record_failure()
    rate_limiter.record_failure()

    await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert rate_limiter.failure_count() == 0
    assert rate_limiter.state() == CircuitState.CLOSED


async def test_half_open_probe_success_closes_circuit(pipeline, rate_limiter, clock, loan_inputs, loan_cost):
    for _ in range(rate_limiter.failure_threshold):
        rate_limiter.record_failure()
    clock.advance(30)

    await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert rate_limiter.state() == CircuitState.CLOSED


async def test_unconfigured_client_refuses(make_stub_client, make_pipeline, make_advice, loan_inputs, loan_cost):
    client = make_stub_client([make_advice()], configured=AdvisoryConfigurationError("Gemini API key not found"))
    pipeline = make_pipeline(client)

    with pytest.raises(AdvisoryConfigurationError):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    assert client.calls == []


async def test_cancel_between_attempts(make_stub_client, make_pipeline, make_advice, rate_limiter, loan_inputs, loan_cost):
    """Cancellation is honoured only when a retry is due"""
    client = make_stub_client([TransientServiceError(), make_advice()])
    pipeline = make_pipeline(client)
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelled):
        await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost, cancel_event=cancel)

    assert len(client.calls) == 1
    assert rate_limiter.failure_count() == 0


async def test_prompt_carries_cost_and_portfolio(pipeline, stub_client, loan_inputs, loan_cost):
    await pipeline.get_advice(loan_inputs, ProductType.LOAN, loan_cost)

    prompt = stub_client.calls[0]["contents"][0]["parts"][0]["text"]
    assert f"{loan_cost.final_cost:.2f} EUR" in prompt
    assert "World ETF" in prompt
    # (20000 * 7 + 10000 * 3) / 30000
    assert "5.67%" in prompt
    assert "Total assets (liquid + invested): 35000.00 EUR" in prompt
