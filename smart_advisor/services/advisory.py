"""Advisory request pipeline: admission, retry with backoff, response validation"""

import asyncio
import json
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Protocol

from smart_advisor.config import settings
from smart_advisor.domain.advisory import build_prompt, parse_advice
from smart_advisor.domain.exceptions import (
    AdvisoryError,
    AnalysisCancelled,
    ClientServiceError,
    MalformedResponse,
    RateLimited,
    TransientServiceError,
)
from smart_advisor.domain.models import AdvisoryResult, CostResult, LoanInputs, ProductType
from smart_advisor.domain.portfolio import weighted_return
from smart_advisor.infrastructure.observability.logging import log_advisory_attempt
from smart_advisor.infrastructure.observability.metrics import advisory_failure_counter, advisory_retry_counter
from smart_advisor.infrastructure.resilience.rate_limiter import DEFAULT_ENDPOINT, RateLimiter

logger = logging.getLogger(__name__)


class AdvisoryClient(Protocol):
    """Transport contract the pipeline depends on"""

    def ensure_configured(self) -> None: ...

    def build_request(self, prompt: str) -> Dict[str, Any]: ...

    async def generate(self, payload: Dict[str, Any]) -> str: ...


class AdvisoryPipeline:
    """
    Turns a cost breakdown into validated advice from the remote service.

    Flow:
    1. Refuse to run without credential / allow-listed host
    2. Build prompt + payload and ask the rate limiter for admission
    3. Call the service, retrying transient failures with exponential backoff
    4. Client errors and provider rate limits propagate without retry
    5. Exhausted retries and malformed responses count as breaker failures
    6. A validated response resets the breaker

    The breaker is reset only after the response validates, so a malformed
    body is counted as service degradation.
    """

    def __init__(
        self,
        client: AdvisoryClient,
        rate_limiter: RateLimiter,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
        jitter_max: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
        endpoint_key: str = DEFAULT_ENDPOINT,
    ):
        self.client = client
        self.rate_limiter = rate_limiter
        self.max_attempts = max_attempts or settings.advisory_max_attempts
        self.backoff_base = backoff_base if backoff_base is not None else settings.advisory_backoff_base
        self.backoff_max = backoff_max if backoff_max is not None else settings.advisory_backoff_max
        self.jitter_max = jitter_max if jitter_max is not None else settings.advisory_jitter_max
        self.sleep = sleep
        self.jitter = jitter
        self.endpoint_key = endpoint_key

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt `attempt` (0-based): min(base * 2^attempt + jitter, max)"""
        jitter = self.jitter(0.0, self.jitter_max) if self.jitter_max > 0 else 0.0
        return min(self.backoff_base * (2 ** attempt) + jitter, self.backoff_max)

    async def get_advice(
        self,
        inputs: LoanInputs,
        product: ProductType,
        cost: CostResult,
        cancel_event: asyncio.Event | None = None,
    ) -> AdvisoryResult:
        """
        Request advice for a computed cost breakdown.

        Raises:
            AdvisoryConfigurationError: Credential missing or host not allow-listed
            RateLimited: Denied locally (no call made) or by the provider
            ClientServiceError: Remote rejected the request (never retried)
            TransientServiceError: Still failing after all attempts
            MalformedResponse: Response failed schema validation
            AnalysisCancelled: cancel_event set before a retry
        """
        self.client.ensure_configured()

        product = ProductType.parse(product)
        portfolio = weighted_return(inputs.portfolio)
        prompt = build_prompt(inputs, product, cost, portfolio)
        payload = self.client.build_request(prompt)
        request_size = len(json.dumps(payload).encode("utf-8"))

        decision = self.rate_limiter.check_rate_limit(request_size, self.endpoint_key)
        if not decision.allowed:
            advisory_failure_counter.labels(kind="rate_limited").inc()
            raise RateLimited(decision.retry_after_seconds, reason=decision.reason or "rate limit")

        try:
            text = await self._call_with_retry(payload, cancel_event)
        except AdvisoryError:
            # Breaker already settled by _call_with_retry
            raise
        except BaseException:
            # Task cancellation or an unclassified client failure: free the probe slot
            self.rate_limiter.release(self.endpoint_key)
            raise

        try:
            advice = parse_advice(text)
        except MalformedResponse:
            advisory_failure_counter.labels(kind="malformed").inc()
            self.rate_limiter.record_failure(self.endpoint_key)
            raise

        self.rate_limiter.record_success(self.endpoint_key)
        return advice

    async def _call_with_retry(self, payload: Dict[str, Any], cancel_event: asyncio.Event | None) -> str:
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            if attempt > 0 and cancel_event is not None and cancel_event.is_set():
                self.rate_limiter.release(self.endpoint_key)
                raise AnalysisCancelled("Analysis cancelled between retry attempts") from last_error

            try:
                return await self.client.generate(payload)

            except (ClientServiceError, RateLimited) as e:
                # Not a signal about the service's transient health
                kind = "client" if isinstance(e, ClientServiceError) else "rate_limited"
                advisory_failure_counter.labels(kind=kind).inc()
                log_advisory_attempt(attempt + 1, self.max_attempts, e, None)
                self.rate_limiter.release(self.endpoint_key)
                raise

            except MalformedResponse as e:
                # 200 without usable candidate text (e.g. safety block): not retried
                advisory_failure_counter.labels(kind="malformed").inc()
                log_advisory_attempt(attempt + 1, self.max_attempts, e, None)
                self.rate_limiter.record_failure(self.endpoint_key)
                raise

            except TransientServiceError as e:
                last_error = e
                advisory_failure_counter.labels(kind="transient").inc()

                if attempt + 1 >= self.max_attempts:
                    log_advisory_attempt(attempt + 1, self.max_attempts, e, None)
                    break

                delay = self.backoff_delay(attempt)
                log_advisory_attempt(attempt + 1, self.max_attempts, e, delay)
                advisory_retry_counter.inc()
                await self.sleep(delay)

        self.rate_limiter.record_failure(self.endpoint_key)
        logger.error(
            "Advisory service failed after retries",
            extra={"attempts": self.max_attempts, "endpoint": self.endpoint_key},
        )
        raise last_error
