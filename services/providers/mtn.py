# ==========================================================
# services/providers/mtn.py
# MTN MoMo Open API: Collection (requesttopay) + Disbursement (transfer)
# ==========================================================
import base64
import logging

import httpx

from config import MtnSettings
from errors import ProviderError
from helpers import mask_sensitive, normalize_msisdn
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

PROVIDER = ProviderName.MTN

# product path segment + initiation endpoint per operation
_ENDPOINTS = {
    OperationType.COLLECTION: ("collection", "requesttopay"),
    OperationType.DISBURSEMENT: ("disbursement", "transfer"),
}


class MtnClient:
    def __init__(self, settings: MtnSettings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    def _headers(self, operation: OperationType, token: str = None, reference: str = None) -> dict:
        product, _ = _ENDPOINTS[operation]
        _, _, subscription_key = self.settings.credentials_for(product)
        headers = {
            "Ocp-Apim-Subscription-Key": subscription_key,
            "X-Target-Environment": self.settings.target_environment,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if reference:
            headers["X-Reference-Id"] = reference
        return headers

    async def get_token(self, operation: OperationType) -> AccessToken:
        """Basic-auth client-credentials exchange for the product's API user."""
        product, _ = _ENDPOINTS[operation]
        user_id, api_key, subscription_key = self.settings.credentials_for(product)
        credentials = base64.b64encode(f"{user_id}:{api_key}".encode()).decode()

        resp = await send(
            self.client, PROVIDER.value, "POST",
            f"{self.settings.base_url}/{product}/token/",
            headers={
                "Authorization": f"Basic {credentials}",
                "Ocp-Apim-Subscription-Key": subscription_key,
            },
        )
        data = json_body(resp)
        if not data.get("access_token"):
            raise ProviderError(PROVIDER.value, "Token response missing access_token", http_status=resp.status_code)

        token = AccessToken.from_response(PROVIDER, data)
        logger.info(f"🔑 MTN {product} token acquired (expires in {data.get('expires_in')}s)")
        return token

    async def initiate(
        self,
        operation: OperationType,
        token: str,
        amount: int,
        phone: str,
        reference: str,
        message: str,
    ) -> ProviderReference:
        product, endpoint = _ENDPOINTS[operation]
        party = {"partyIdType": "MSISDN", "partyId": normalize_msisdn(phone, self.settings.country_code)}

        payload = {
            "amount": str(amount),
            "currency": self.settings.currency,
            "externalId": reference,
            "payerMessage": message,
            "payeeNote": message,
        }
        # requesttopay debits a payer, transfer credits a payee
        payload["payer" if operation is OperationType.COLLECTION else "payee"] = party

        logger.info(
            f"💸 MTN {endpoint} | amount={amount} {self.settings.currency} "
            f"phone={mask_sensitive(party['partyId'])} reference={reference}"
        )
        resp = await send(
            self.client, PROVIDER.value, "POST",
            f"{self.settings.base_url}/{product}/v1_0/{endpoint}",
            json=payload,
            headers=self._headers(operation, token, reference),
        )
        # MTN answers 202 Accepted with an empty body; our X-Reference-Id is the handle
        return ProviderReference(provider=PROVIDER, reference=reference, raw=json_body(resp))

    async def check_status(self, operation: OperationType, token: str, reference: str) -> StatusResult:
        product, endpoint = _ENDPOINTS[operation]
        resp = await send(
            self.client, PROVIDER.value, "GET",
            f"{self.settings.base_url}/{product}/v1_0/{endpoint}/{reference}",
            headers=self._headers(operation, token),
        )
        data = json_body(resp)
        raw_status = data.get("status")
        status = normalize_status(raw_status)
        result = StatusResult(
            status=status,
            external_transaction_id=data.get("financialTransactionId"),
            raw_status=raw_status,
            raw=data,
        )
        if status.value == "FAILED" and data.get("reason"):
            result.raw_status = f"{raw_status}: {data.get('reason')}"
        return result
