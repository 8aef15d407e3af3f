# ===============================================================
# errors.py — application error taxonomy
# ===============================================================
from typing import Optional


class AppError(Exception):
    """Base error rendered by the FastAPI exception handler."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "statusCode": self.status_code,
            "message": self.message,
        }


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class AlreadyWonError(ConflictError):
    default_message = "You have already won this question"


class QuestionInactiveError(ConflictError):
    status_code = 400
    default_message = "This reward question is not active"


class QuestionExpiredError(ConflictError):
    status_code = 400
    default_message = "This reward question has expired"


class AuthError(AppError):
    status_code = 401
    default_message = "Unauthorized"

    def __init__(self, message: Optional[str] = None, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class ProviderError(AppError):
    """External mobile-money API failure (network error or non-2xx)."""

    status_code = 500
    default_message = "Payment provider error"

    def __init__(self, provider: str, message: Optional[str] = None, http_status: Optional[int] = None):
        self.provider = provider
        self.http_status = http_status
        self.provider_message = message
        detail = f"{provider} API error"
        if http_status:
            detail += f" [{http_status}]"
        if message:
            detail += f": {message}"
        super().__init__(detail)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["provider"] = self.provider
        data["providerStatus"] = self.http_status
        data["providerMessage"] = self.provider_message
        return data


class SettlementTimeout(AppError):
    """Polling exhausted without a terminal status."""

    status_code = 504
    default_message = "Transaction did not settle in time"

    def __init__(self, reference: str, attempts: int):
        self.reference = reference
        self.attempts = attempts
        super().__init__(f"Transaction {reference} still pending after {attempts} attempts")
