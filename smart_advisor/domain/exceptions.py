"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    # Short human-readable text surfaced to the user
    user_message = "Something went wrong during the analysis. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


# Local validation failures: reported synchronously, never retried


class InvalidNumber(DomainException):
    """A numeric input is empty, unparsable or out of bounds"""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        self.user_message = f"Invalid value for {field}: {reason}"
        super().__init__(self.user_message)


class UnsupportedProduct(DomainException):
    """Product is not one of Loan, Installment, Mortgage"""

    def __init__(self, product: object):
        self.product = product
        self.user_message = f"Calculation not implemented for product: {product}"
        super().__init__(self.user_message)


class InvalidHorizon(DomainException):
    """Investment horizon is not a positive number of years"""

    user_message = "The time horizon must be a positive number of years."


class InvalidPrincipal(DomainException):
    """Investment principal is not a positive finite amount"""

    user_message = "The amount to invest must be a positive number."


class InvalidAllocation(DomainException):
    """Percentage allocations do not sum to 100"""

    user_message = "Portfolio allocation must add up to 100%."


class AnalysisInProgress(DomainException):
    """An analysis of the same inputs is already running"""

    user_message = "An analysis for these inputs is already in progress."


# Advisory pipeline failures


class AdvisoryError(DomainException):
    """Base exception for the advisory request pipeline"""

    user_message = "The advisory service could not be reached. Check your connection and try again."


class RateLimited(AdvisoryError):
    """Admission denied, locally or by the provider"""

    def __init__(self, retry_after_seconds: float | None = None, reason: str = "rate limit"):
        self.retry_after_seconds = retry_after_seconds
        self.reason = reason
        if retry_after_seconds is not None:
            self.user_message = f"Too many advisory requests ({reason}). Retry in {retry_after_seconds:.0f}s."
        else:
            self.user_message = f"Too many advisory requests ({reason})."
        super().__init__(self.user_message)


class TransientServiceError(AdvisoryError):
    """Network failure or 5xx from the advisory service"""

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ClientServiceError(AdvisoryError):
    """4xx/auth/validation error from the advisory service"""

    user_message = "The advisory service rejected the request."

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedResponse(AdvisoryError):
    """Advisory response is unparsable or violates the schema"""

    user_message = "The advisory service returned a malformed response."


class AdvisoryConfigurationError(AdvisoryError):
    """Missing credential or non allow-listed service domain"""

    user_message = "The advisory service is not configured."


class AnalysisCancelled(AdvisoryError):
    """Caller cancelled the analysis between retry attempts"""

    user_message = "The analysis was cancelled."
