"""Admission control for outbound advisory requests: sliding window + circuit breaker"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Tuple

from smart_advisor.config import Settings, settings as default_settings
from smart_advisor.domain.models import CircuitState, RateLimitDecision
from smart_advisor.infrastructure.observability.metrics import circuit_state_gauge, rate_limit_rejections_counter

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "advisory"

REASON_CIRCUIT_OPEN = "circuit open"
REASON_RATE_LIMIT = "rate limit"
REASON_TOO_LARGE = "request too large"

# Retry hint while a HALF_OPEN probe is outstanding; the probe settles within one call
PROBE_RETRY_SECONDS = 1.0

_STATE_VALUES = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1, CircuitState.OPEN: 2}


@dataclass
class _EndpointState:
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    opened_at: float = 0.0
    cooldown: float = 0.0
    probe_in_flight: bool = False
    # (timestamp, size_bytes) of admitted requests, oldest first
    window: Deque[Tuple[float, int]] = field(default_factory=deque)
    window_bytes: int = 0


class RateLimiter:
    """
    Per-endpoint admission control.

    Circuit states:
    - CLOSED: requests flow, subject to the sliding window budget
    - OPEN: everything rejected until the cool-down elapses
    - HALF_OPEN: one probe admitted, others told to retry after
      PROBE_RETRY_SECONDS; success closes the circuit, failure
      reopens it with a longer cool-down (cooldown * multiplier, capped)

    Window budget: at most `max_requests` requests and `max_bytes` bytes in
    any `window_seconds` span.

    One instance is shared by every in-flight analysis; all state changes
    happen under a lock.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 10,
        max_bytes: int = 100_000,
        failure_threshold: int = 3,
        cooldown_seconds: float = 30.0,
        cooldown_multiplier: float = 2.0,
        max_cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_bytes = max_bytes
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.cooldown_multiplier = cooldown_multiplier
        self.max_cooldown_seconds = max_cooldown_seconds
        self.clock = clock

        self._lock = threading.Lock()
        self._endpoints: Dict[str, _EndpointState] = {}

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "RateLimiter":
        config = config or default_settings
        return cls(
            window_seconds=config.rate_limit_window_seconds,
            max_requests=config.rate_limit_max_requests,
            max_bytes=config.rate_limit_max_bytes,
            failure_threshold=config.circuit_failure_threshold,
            cooldown_seconds=config.circuit_cooldown_seconds,
            cooldown_multiplier=config.circuit_cooldown_multiplier,
            max_cooldown_seconds=config.circuit_max_cooldown_seconds,
        )

    def _endpoint(self, key: str) -> _EndpointState:
        if key not in self._endpoints:
            self._endpoints[key] = _EndpointState(cooldown=self.cooldown_seconds)
        return self._endpoints[key]

    def _transition(self, key: str, endpoint: _EndpointState, state: CircuitState) -> None:
        if endpoint.state != state:
            logger.info(
                "Circuit state change",
                extra={"endpoint": key, "from_state": endpoint.state.value, "to_state": state.value},
            )
        endpoint.state = state
        circuit_state_gauge.labels(endpoint=key).set(_STATE_VALUES[state])

    def _evict(self, endpoint: _EndpointState, now: float) -> None:
        while endpoint.window and endpoint.window[0][0] <= now - self.window_seconds:
            _, size = endpoint.window.popleft()
            endpoint.window_bytes -= size

    def _deny(self, reason: str, retry_after: float | None) -> RateLimitDecision:
        rate_limit_rejections_counter.labels(reason=reason).inc()
        return RateLimitDecision(allowed=False, reason=reason, retry_after_seconds=retry_after)

    def check_rate_limit(self, request_size_bytes: int, endpoint_key: str = DEFAULT_ENDPOINT) -> RateLimitDecision:
        """
        Decide whether one request of `request_size_bytes` may go out now.

        An admitted request is recorded in the window; in HALF_OPEN it
        becomes the single probe.
        """
        with self._lock:
            now = self.clock()
            endpoint = self._endpoint(endpoint_key)

            if endpoint.state == CircuitState.OPEN:
                remaining = endpoint.opened_at + endpoint.cooldown - now
                if remaining > 0:
                    return self._deny(REASON_CIRCUIT_OPEN, remaining)
                self._transition(endpoint_key, endpoint, CircuitState.HALF_OPEN)
                endpoint.probe_in_flight = False

            if endpoint.state == CircuitState.HALF_OPEN and endpoint.probe_in_flight:
                return self._deny(REASON_CIRCUIT_OPEN, PROBE_RETRY_SECONDS)

            if request_size_bytes > self.max_bytes:
                return self._deny(REASON_TOO_LARGE, None)

            self._evict(endpoint, now)
            over_count = len(endpoint.window) >= self.max_requests
            over_bytes = endpoint.window_bytes + request_size_bytes > self.max_bytes
            if over_count or over_bytes:
                oldest = endpoint.window[0][0] if endpoint.window else now
                return self._deny(REASON_RATE_LIMIT, max(0.0, oldest + self.window_seconds - now))

            endpoint.window.append((now, request_size_bytes))
            endpoint.window_bytes += request_size_bytes
            if endpoint.state == CircuitState.HALF_OPEN:
                endpoint.probe_in_flight = True

            return RateLimitDecision(allowed=True)

    def record_failure(self, endpoint_key: str = DEFAULT_ENDPOINT) -> None:
        """Count a failure that reflects the remote service's health"""
        with self._lock:
            now = self.clock()
            endpoint = self._endpoint(endpoint_key)
            endpoint.consecutive_failures += 1
            endpoint.probe_in_flight = False

            if endpoint.state == CircuitState.HALF_OPEN:
                # Failed probe: back off harder
                endpoint.cooldown = min(endpoint.cooldown * self.cooldown_multiplier, self.max_cooldown_seconds)
                endpoint.opened_at = now
                self._transition(endpoint_key, endpoint, CircuitState.OPEN)
            elif endpoint.state == CircuitState.CLOSED and endpoint.consecutive_failures >= self.failure_threshold:
                endpoint.cooldown = self.cooldown_seconds
                endpoint.opened_at = now
                self._transition(endpoint_key, endpoint, CircuitState.OPEN)

    def record_success(self, endpoint_key: str = DEFAULT_ENDPOINT) -> None:
        """Reset the failure counter and close the circuit"""
        with self._lock:
            endpoint = self._endpoint(endpoint_key)
            endpoint.consecutive_failures = 0
            endpoint.probe_in_flight = False
            endpoint.cooldown = self.cooldown_seconds
            self._transition(endpoint_key, endpoint, CircuitState.CLOSED)

    def release(self, endpoint_key: str = DEFAULT_ENDPOINT) -> None:
        """Free a HALF_OPEN probe slot without judging the service's health"""
        with self._lock:
            self._endpoint(endpoint_key).probe_in_flight = False

    def state(self, endpoint_key: str = DEFAULT_ENDPOINT) -> CircuitState:
        with self._lock:
            return self._endpoint(endpoint_key).state

    def failure_count(self, endpoint_key: str = DEFAULT_ENDPOINT) -> int:
        with self._lock:
            return self._endpoint(endpoint_key).consecutive_failures
