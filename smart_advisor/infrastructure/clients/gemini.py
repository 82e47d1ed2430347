"""Gemini REST client for structured financial advice"""

import httpx
from typing import Any, Dict, List
from urllib.parse import urlparse

from smart_advisor.config import settings
from smart_advisor.domain.advisory import RESPONSE_SCHEMA
from smart_advisor.domain.exceptions import (
    AdvisoryConfigurationError,
    ClientServiceError,
    MalformedResponse,
    RateLimited,
    TransientServiceError,
)
from smart_advisor.infrastructure.observability.metrics import advisory_latency_histogram

# Request timeout is the only status in the 4xx range worth retrying
RETRYABLE_CLIENT_STATUSES = {408}


class GeminiClient:
    """Client for the Gemini generateContent API"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        allowed_domains: List[str] | None = None,
        timeout: float | None = None,
        temperature: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.base_url = (base_url or settings.advisory_api_base).rstrip("/")
        self.model = model or settings.advisory_model
        self.allowed_domains = allowed_domains if allowed_domains is not None else settings.advisory_allowed_domains
        self.timeout = timeout or settings.advisory_timeout_seconds
        self.temperature = temperature if temperature is not None else settings.advisory_temperature
        self.transport = transport

    def ensure_configured(self) -> None:
        """
        Refuse to operate without a credential or against a foreign host.

        Raises:
            AdvisoryConfigurationError: Missing API key, non-https URL or
                host not on the allow-list
        """
        if not self.api_key or not self.api_key.strip():
            raise AdvisoryConfigurationError("Gemini API key not found. Set GEMINI_API_KEY.")

        parsed = urlparse(self.base_url)
        if parsed.scheme != "https":
            raise AdvisoryConfigurationError(f"Advisory service must use https, got {parsed.scheme or 'none'}")
        if parsed.hostname not in self.allowed_domains:
            raise AdvisoryConfigurationError(f"Advisory host {parsed.hostname} is not allow-listed")

    def build_request(self, prompt: str) -> Dict[str, Any]:
        """generateContent body with the structured-output schema"""
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
                "temperature": self.temperature,
            },
        }

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    async def generate(self, payload: Dict[str, Any]) -> str:
        """
        Send one generateContent request and return the candidate text.

        Raises:
            TransientServiceError: Timeout, network failure, 5xx or 408
            RateLimited: 429 from the provider
            ClientServiceError: Any other 4xx (auth, validation, quota)
            MalformedResponse: Body without candidate text
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                with advisory_latency_histogram.time():
                    response = await client.post(
                        self.endpoint,
                        json=payload,
                        headers={"x-goog-api-key": self.api_key},
                    )
            except httpx.TimeoutException as e:
                raise TransientServiceError(f"Advisory API timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise TransientServiceError(f"Advisory API unreachable: {e}") from e

        status = response.status_code
        if status == 429:
            raise RateLimited(_retry_after(response), reason="provider rate limit")
        if status >= 500 or status in RETRYABLE_CLIENT_STATUSES:
            raise TransientServiceError(f"Advisory API error: {status}", status_code=status)
        if status >= 400:
            raise ClientServiceError(f"Advisory API rejected request: {status}", status_code=status)

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Invalid response body from advisory API: {e}") from e


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
