# =======================================================================
# services/providers/gateway.py
# =======================================================================
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Tuple

import httpx

from config import Settings
from errors import ProviderError
from services.providers.airtel import AirtelClient
from services.providers.mtn import MtnClient
from services.providers.types import (
    AccessToken,
    OperationType,
    ProviderName,
    ProviderReference,
    StatusResult,
)

logger = logging.getLogger(__name__)

COLLECTION_MESSAGE = "Payment for DelipuCash subscription"
DISBURSEMENT_MESSAGE = "Your reward payment from DelipuCash"


class ProviderGateway:
    """
    Provider-agnostic entry point for MTN and Airtel.

    - get_token(): short-lived access token, cached for its lifetime
    - initiate_collection() / initiate_disbursement(): start a transaction
    - check_status(): normalized PENDING / SUCCESSFUL / FAILED
    - invalidate_token(): drop a cached token (done automatically on a 401)
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.token_skew = settings.token_expiry_skew_seconds
        self._providers = {
            ProviderName.MTN: MtnClient(settings.mtn, client),
            ProviderName.AIRTEL: AirtelClient(settings.airtel, client),
        }
        self._tokens: Dict[Tuple[ProviderName, OperationType], AccessToken] = {}
        self._locks: Dict[Tuple[ProviderName, OperationType], asyncio.Lock] = {}

    def _client(self, provider) -> MtnClient | AirtelClient:
        return self._providers[ProviderName.parse(provider)]

    def _cache_key(self, provider: ProviderName, operation: OperationType):
        # Airtel issues one token for every product
        if provider is ProviderName.AIRTEL:
            return provider, OperationType.COLLECTION
        return provider, operation

    async def get_token(self, provider, operation: OperationType = OperationType.COLLECTION) -> AccessToken:
        provider = ProviderName.parse(provider)
        key = self._cache_key(provider, operation)

        cached = self._tokens.get(key)
        if cached and cached.is_valid(self.token_skew):
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._tokens.get(key)
            if cached and cached.is_valid(self.token_skew):
                return cached
            token = await self._client(provider).get_token(operation)
            self._tokens[key] = token
            return token

    def invalidate_token(self, provider, operation: OperationType = OperationType.COLLECTION):
        provider = ProviderName.parse(provider)
        self._tokens.pop(self._cache_key(provider, operation), None)

    async def _authorized(self, provider, operation: OperationType, call):
        """
        Run call(token_value); a 401 drops the cached token and retries once.
        The provider rejected the request, so repeating it is safe.
        """
        token = await self.get_token(provider, operation)
        try:
            return await call(token.value)
        except ProviderError as e:
            if e.http_status != 401:
                raise
            logger.warning(
                f"🔑 {ProviderName.parse(provider).value} {operation.value} token rejected; refreshing"
            )
            self.invalidate_token(provider, operation)
            token = await self.get_token(provider, operation)
            return await call(token.value)

    async def initiate_collection(self, provider, amount: int, phone: str, reference: str) -> ProviderReference:
        client = self._client(provider)
        return await self._authorized(
            provider, OperationType.COLLECTION,
            lambda token: client.initiate(
                OperationType.COLLECTION, token, amount, phone, reference, COLLECTION_MESSAGE
            ),
        )

    async def initiate_disbursement(self, provider, amount: int, phone: str, reference: str) -> ProviderReference:
        client = self._client(provider)
        return await self._authorized(
            provider, OperationType.DISBURSEMENT,
            lambda token: client.initiate(
                OperationType.DISBURSEMENT, token, amount, phone, reference, DISBURSEMENT_MESSAGE
            ),
        )

    async def check_status(self, reference: str, provider, operation: OperationType) -> StatusResult:
        client = self._client(provider)
        result = await self._authorized(
            provider, operation, lambda token: client.check_status(operation, token, reference)
        )
        logger.info(
            f"🔎 {ProviderName.parse(provider).value} {operation.value} status "
            f"reference={reference} raw={result.raw_status} → {result.status.value}"
        )
        return result
