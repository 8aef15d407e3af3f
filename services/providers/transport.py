# ==========================================================
# services/providers/transport.py
# Shared HTTP call + error mapping for provider APIs
# ==========================================================
import logging

import httpx

from errors import ProviderError

logger = logging.getLogger(__name__)


def _provider_message(resp: httpx.Response) -> str:
    """Best human message from a provider error body."""
    try:
        data = resp.json()
    except ValueError:
        return (resp.text or resp.reason_phrase or "")[:300]

    if not isinstance(data, dict):
        return str(data)[:300]

    status = data.get("status")
    for candidate in (
        data.get("message"),
        data.get("error_description"),
        data.get("error"),
        status.get("message") if isinstance(status, dict) else None,
        data.get("code"),
    ):
        if candidate:
            return str(candidate)[:300]
    return str(data)[:300]


async def send(client: httpx.AsyncClient, provider: str, method: str, url: str, **kwargs) -> httpx.Response:
    """
    Perform one provider call.
    Network failures and non-2xx answers become ProviderError, never None.
    """
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error(f"🚫 {provider} request failed: {method} {url} → {e.__class__.__name__}: {e}")
        raise ProviderError(provider, f"Provider request failed: {e.__class__.__name__}") from e

    if resp.status_code >= 400:
        message = _provider_message(resp)
        logger.error(f"🚫 {provider} API error [{resp.status_code}] {method} {url}: {message}")
        raise ProviderError(provider, message, http_status=resp.status_code)

    return resp


def json_body(resp: httpx.Response) -> dict:
    """Parse a JSON object body; empty or non-JSON bodies give {}."""
    if not resp.content:
        return {}
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}
