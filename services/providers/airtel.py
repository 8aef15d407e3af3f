# ==========================================================
# services/providers/airtel.py
# Airtel Money Open API: OAuth2 token, payments (collection), payouts
# ==========================================================
import logging

import httpx

from config import AirtelSettings
from errors import ProviderError
from helpers import mask_sensitive, national_msisdn
from services.providers.transport import json_body, send
from services.providers.types import (
    AccessToken,
    OperationType,
    ProviderName,
    ProviderReference,
    StatusResult,
    normalize_status,
)

logger = logging.getLogger(__name__)

PROVIDER = ProviderName.AIRTEL

_INITIATE_PATHS = {
    OperationType.COLLECTION: "/merchant/v1/payments/",
    OperationType.DISBURSEMENT: "/merchant/v1/payouts/",
}
_STATUS_PATHS = {
    OperationType.COLLECTION: "/standard/v1/payments/",
    OperationType.DISBURSEMENT: "/standard/v1/payouts/",
}


def _pick(d: dict, *path):
    """Walk nested dict keys, returning None on the first miss."""
    for key in path:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


class AirtelClient:
    def __init__(self, settings: AirtelSettings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    def _headers(self, token: str) -> dict:
        return {
            "Authorization": f"Bearer {token}",
            "X-Country": self.settings.country,
            "X-Currency": self.settings.currency,
            "Accept": "*/*",
        }

    async def get_token(self, operation: OperationType) -> AccessToken:
        """OAuth2 client-credentials grant (one token serves both products)."""
        resp = await send(
            self.client, PROVIDER.value, "POST",
            f"{self.settings.base_url}/auth/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        data = json_body(resp)
        if not data.get("access_token"):
            raise ProviderError(PROVIDER.value, "Token response missing access_token", http_status=resp.status_code)

        logger.info(f"🔑 Airtel token acquired (expires in {data.get('expires_in')}s)")
        return AccessToken.from_response(PROVIDER, data)

    async def initiate(
        self,
        operation: OperationType,
        token: str,
        amount: int,
        phone: str,
        reference: str,
        message: str,
    ) -> ProviderReference:
        msisdn = national_msisdn(phone, self.settings.country_code)
        payload = {
            "reference": reference,
            "subscriber": {
                "country": self.settings.country,
                "currency": self.settings.currency,
                "msisdn": msisdn,
            },
            "transaction": {
                "amount": amount,
                "country": self.settings.country,
                "currency": self.settings.currency,
                "id": reference,
            },
        }

        logger.info(
            f"💸 Airtel {operation.value} | amount={amount} {self.settings.currency} "
            f"phone={mask_sensitive(msisdn)} reference={reference}"
        )
        resp = await send(
            self.client, PROVIDER.value, "POST",
            f"{self.settings.base_url}{_INITIATE_PATHS[operation]}",
            json=payload,
            headers=self._headers(token),
        )
        data = json_body(resp)

        # Airtel reports business failures inside a 200 body
        if _pick(data, "status", "success") is False:
            raise ProviderError(
                PROVIDER.value,
                _pick(data, "status", "message") or "Transaction rejected",
                http_status=resp.status_code,
            )

        return ProviderReference(
            provider=PROVIDER,
            reference=reference,
            provider_transaction_id=_pick(data, "data", "transaction", "id"),
            raw=data,
        )

    async def check_status(self, operation: OperationType, token: str, reference: str) -> StatusResult:
        resp = await send(
            self.client, PROVIDER.value, "GET",
            f"{self.settings.base_url}{_STATUS_PATHS[operation]}{reference}",
            headers=self._headers(token),
        )
        data = json_body(resp)
        raw_status = (
            _pick(data, "data", "transaction", "status")
            or _pick(data, "data", "status")
            or (data.get("status") if isinstance(data.get("status"), str) else None)
        )
        external_id = (
            _pick(data, "data", "transaction", "airtel_money_id")
            or _pick(data, "data", "transaction", "id")
            or _pick(data, "transaction", "id")
        )
        return StatusResult(
            status=normalize_status(raw_status),
            external_transaction_id=external_id,
            raw_status=raw_status,
            raw=data,
        )
