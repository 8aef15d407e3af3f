# =======================================================================
# services/providers/__init__.py
# =======================================================================
"""
Mobile-money providers (MTN MoMo, Airtel Money) behind one gateway.
"""
from services.providers.gateway import ProviderGateway
from services.providers.types import (
    AccessToken,
    OperationType,
    PaymentStatus,
    ProviderName,
    ProviderReference,
    StatusResult,
)

__all__ = [
    "AccessToken",
    "OperationType",
    "PaymentStatus",
    "ProviderGateway",
    "ProviderName",
    "ProviderReference",
    "StatusResult",
]
