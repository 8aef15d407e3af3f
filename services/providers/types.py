# =================================================================
# services/providers/types.py
# ================================================================
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from errors import ValidationError
from helpers import utcnow


class ProviderName(str, Enum):
    MTN = "MTN"
    AIRTEL = "AIRTEL"

    @classmethod
    def parse(cls, value) -> "ProviderName":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise ValidationError(f"Unsupported payment provider: {value!r} (expected MTN or AIRTEL)")


class OperationType(str, Enum):
    COLLECTION = "collection"
    DISBURSEMENT = "disbursement"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


# Provider vocabulary → normalized status
_STATUS_ALIASES = {
    "SUCCESSFUL": PaymentStatus.SUCCESSFUL,
    "SUCCESS": PaymentStatus.SUCCESSFUL,
    "SUCCEEDED": PaymentStatus.SUCCESSFUL,
    "COMPLETED": PaymentStatus.SUCCESSFUL,
    "TS": PaymentStatus.SUCCESSFUL,
    "FAILED": PaymentStatus.FAILED,
    "FAILURE": PaymentStatus.FAILED,
    "FAIL": PaymentStatus.FAILED,
    "REJECTED": PaymentStatus.FAILED,
    "EXPIRED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.FAILED,
    "TF": PaymentStatus.FAILED,
    "TE": PaymentStatus.FAILED,
    "PENDING": PaymentStatus.PENDING,
    "TIP": PaymentStatus.PENDING,
    "TA": PaymentStatus.PENDING,
    "IN_PROGRESS": PaymentStatus.PENDING,
    "PROCESSING": PaymentStatus.PENDING,
    "ONGOING": PaymentStatus.PENDING,
    "CREATED": PaymentStatus.PENDING,
}


def normalize_status(raw) -> PaymentStatus:
    """Map provider status spelling onto PENDING / SUCCESSFUL / FAILED."""
    key = str(raw or "").strip().upper().replace("-", "_").replace(" ", "_")
    return _STATUS_ALIASES.get(key, PaymentStatus.PENDING)


@dataclass
class AccessToken:
    value: str
    expires_at: datetime
    provider: ProviderName

    @classmethod
    def from_response(cls, provider: ProviderName, data: dict) -> "AccessToken":
        try:
            lifetime = int(data.get("expires_in") or 3600)
        except (TypeError, ValueError):
            lifetime = 3600
        return cls(
            value=data["access_token"],
            expires_at=utcnow() + timedelta(seconds=lifetime),
            provider=provider,
        )

    def is_valid(self, skew_seconds: int = 0) -> bool:
        return utcnow() + timedelta(seconds=skew_seconds) < self.expires_at


@dataclass
class ProviderReference:
    provider: ProviderName
    reference: str
    provider_transaction_id: Optional[str] = None
    raw: dict = field(default_factory=dict)


@dataclass
class StatusResult:
    status: PaymentStatus
    external_transaction_id: Optional[str] = None
    raw_status: Optional[str] = None
    raw: dict = field(default_factory=dict)
