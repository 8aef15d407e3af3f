"""MTN / Airtel clients behind the provider gateway, against a mock transport."""
import base64
import json

import httpx
import pytest

from errors import ProviderError, ValidationError
from services.providers import ProviderGateway
from services.providers.types import OperationType, PaymentStatus, ProviderName, normalize_status


def _gateway(settings, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProviderGateway(settings, client), client


def _token_response():
    return httpx.Response(200, json={"access_token": "tok-123", "token_type": "Bearer", "expires_in": 3600})


# ----------------------
# Tokens
# ----------------------
async def test_mtn_token_uses_basic_auth_and_is_cached(settings):
    requests = []

    def handler(request):
        requests.append(request)
        return _token_response()

    gateway, client = _gateway(settings, handler)
    async with client:
        first = await gateway.get_token("MTN", OperationType.DISBURSEMENT)
        second = await gateway.get_token("mtn", OperationType.DISBURSEMENT)

    assert first.value == "tok-123"
    assert second is first
    assert len(requests) == 1

    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://mtn.test/disbursement/token/"
    expected = base64.b64encode(b"mtn-user:mtn-key").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["Ocp-Apim-Subscription-Key"] == "mtn-primary"


async def test_mtn_tokens_are_cached_per_product(settings):
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return _token_response()

    gateway, client = _gateway(settings, handler)
    async with client:
        await gateway.get_token(ProviderName.MTN, OperationType.COLLECTION)
        await gateway.get_token(ProviderName.MTN, OperationType.DISBURSEMENT)

    assert paths == ["/collection/token/", "/disbursement/token/"]


async def test_airtel_token_is_shared_across_products(settings):
    bodies = []

    def handler(request):
        bodies.append(request.content.decode())
        return _token_response()

    gateway, client = _gateway(settings, handler)
    async with client:
        await gateway.get_token("AIRTEL", OperationType.COLLECTION)
        await gateway.get_token("AIRTEL", OperationType.DISBURSEMENT)

    assert len(bodies) == 1
    assert "grant_type=client_credentials" in bodies[0]
    assert "client_id=airtel-client" in bodies[0]


async def test_invalidated_token_is_fetched_again(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return _token_response()

    gateway, client = _gateway(settings, handler)
    async with client:
        await gateway.get_token("MTN")
        gateway.invalidate_token("MTN")
        await gateway.get_token("MTN")

    assert len(calls) == 2


async def test_token_response_without_access_token_is_an_error(settings):
    gateway, client = _gateway(settings, lambda request: httpx.Response(200, json={}))
    async with client:
        with pytest.raises(ProviderError):
            await gateway.get_token("AIRTEL")


# ----------------------
# Initiation
# ----------------------
async def test_mtn_disbursement_payload(settings):
    transfers = []

    def handler(request):
        if request.url.path.endswith("/token/"):
            return _token_response()
        transfers.append(request)
        return httpx.Response(202)

    gateway, client = _gateway(settings, handler)
    async with client:
        ref = await gateway.initiate_disbursement("MTN", 500, "0772123456", "ref-abc")

    assert ref.reference == "ref-abc"
    request = transfers[0]
    assert request.url.path == "/disbursement/v1_0/transfer"
    assert request.headers["X-Reference-Id"] == "ref-abc"
    assert request.headers["X-Target-Environment"] == "sandbox"
    assert request.headers["Authorization"] == "Bearer tok-123"

    payload = json.loads(request.content)
    assert payload["amount"] == "500"
    assert payload["externalId"] == "ref-abc"
    assert payload["payee"] == {"partyIdType": "MSISDN", "partyId": "256772123456"}
    assert "payer" not in payload


async def test_mtn_collection_debits_the_payer(settings):
    bodies = []

    def handler(request):
        if request.url.path.endswith("/token/"):
            return _token_response()
        bodies.append((request.url.path, json.loads(request.content)))
        return httpx.Response(202)

    gateway, client = _gateway(settings, handler)
    async with client:
        await gateway.initiate_collection("MTN", 2000, "+256 772 123456", "ref-col")

    path, payload = bodies[0]
    assert path == "/collection/v1_0/requesttopay"
    assert payload["payer"]["partyId"] == "256772123456"


async def test_airtel_payout_payload(settings):
    payouts = []

    def handler(request):
        if request.url.path == "/auth/oauth2/token":
            return _token_response()
        payouts.append(request)
        return httpx.Response(200, json={"status": {"success": True}, "data": {"transaction": {"id": "AT-1"}}})

    gateway, client = _gateway(settings, handler)
    async with client:
        ref = await gateway.initiate_disbursement("AIRTEL", 750, "0752123456", "ref-air")

    assert ref.provider_transaction_id == "AT-1"
    request = payouts[0]
    assert request.url.path == "/merchant/v1/payouts/"
    assert request.headers["X-Country"] == "UG"
    assert request.headers["X-Currency"] == "UGX"
    payload = json.loads(request.content)
    assert payload["reference"] == "ref-air"
    assert payload["subscriber"]["msisdn"] == "752123456"
    assert payload["transaction"] == {"amount": 750, "country": "UG", "currency": "UGX", "id": "ref-air"}


async def test_airtel_business_failure_in_200_body(settings):
    def handler(request):
        if request.url.path == "/auth/oauth2/token":
            return _token_response()
        return httpx.Response(200, json={"status": {"success": False, "message": "Insufficient funds"}})

    gateway, client = _gateway(settings, handler)
    async with client:
        with pytest.raises(ProviderError) as exc:
            await gateway.initiate_collection("AIRTEL", 750, "0752123456", "ref-x")

    assert exc.value.provider == "AIRTEL"
    assert exc.value.provider_message == "Insufficient funds"


async def test_non_2xx_becomes_provider_error(settings):
    def handler(request):
        if request.url.path.endswith("/token/"):
            return _token_response()
        return httpx.Response(500, json={"message": "Internal processing error"})

    gateway, client = _gateway(settings, handler)
    async with client:
        with pytest.raises(ProviderError) as exc:
            await gateway.initiate_disbursement("MTN", 500, "0772123456", "ref-500")

    assert exc.value.http_status == 500
    assert exc.value.provider_message == "Internal processing error"
    assert exc.value.to_dict()["providerStatus"] == 500


async def test_network_error_becomes_provider_error(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway, client = _gateway(settings, handler)
    async with client:
        with pytest.raises(ProviderError) as exc:
            await gateway.get_token("MTN")

    assert "Provider request failed" in exc.value.message
    assert exc.value.http_status is None


async def test_unsupported_provider_is_rejected(settings):
    gateway, client = _gateway(settings, lambda request: _token_response())
    async with client:
        with pytest.raises(ValidationError):
            await gateway.get_token("VISA")


# ----------------------
# Status
# ----------------------
async def test_mtn_status_is_normalized(settings):
    def handler(request):
        if request.url.path.endswith("/token/"):
            return _token_response()
        assert request.url.path == "/disbursement/v1_0/transfer/ref-ok"
        return httpx.Response(200, json={"status": "SUCCESSFUL", "financialTransactionId": "FIN-9"})

    gateway, client = _gateway(settings, handler)
    async with client:
        result = await gateway.check_status("ref-ok", "MTN", OperationType.DISBURSEMENT)

    assert result.status is PaymentStatus.SUCCESSFUL
    assert result.external_transaction_id == "FIN-9"


async def test_airtel_status_codes_are_normalized(settings):
    def handler(request):
        if request.url.path == "/auth/oauth2/token":
            return _token_response()
        assert request.url.path == "/standard/v1/payouts/ref-air"
        return httpx.Response(200, json={"data": {"transaction": {"status": "TS", "airtel_money_id": "AM-77"}}})

    gateway, client = _gateway(settings, handler)
    async with client:
        result = await gateway.check_status("ref-air", "AIRTEL", OperationType.DISBURSEMENT)

    assert result.status is PaymentStatus.SUCCESSFUL
    assert result.external_transaction_id == "AM-77"
    assert result.raw_status == "TS"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SUCCESSFUL", PaymentStatus.SUCCESSFUL),
        ("success", PaymentStatus.SUCCESSFUL),
        ("TF", PaymentStatus.FAILED),
        ("Rejected", PaymentStatus.FAILED),
        ("TIP", PaymentStatus.PENDING),
        ("PENDING", PaymentStatus.PENDING),
        ("something-new", PaymentStatus.PENDING),
        (None, PaymentStatus.PENDING),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) is expected


def test_parse_accepts_its_own_members():
    assert ProviderName.parse(ProviderName.MTN) is ProviderName.MTN
    assert ProviderName.parse(ProviderName.AIRTEL) is ProviderName.AIRTEL
    assert ProviderName.parse(" airtel ") is ProviderName.AIRTEL


async def test_enum_provider_flows_through_every_gateway_call(settings):
    def handler(request):
        if request.url.path.endswith("/token/"):
            return _token_response()
        if request.method == "POST":
            return httpx.Response(202)
        return httpx.Response(200, json={"status": "SUCCESSFUL", "financialTransactionId": "FIN-2"})

    gateway, client = _gateway(settings, handler)
    async with client:
        await gateway.get_token(ProviderName.MTN, OperationType.DISBURSEMENT)
        await gateway.initiate_disbursement(ProviderName.MTN, 500, "0772123456", "ref-enum")
        result = await gateway.check_status("ref-enum", ProviderName.MTN, OperationType.DISBURSEMENT)

    assert result.status is PaymentStatus.SUCCESSFUL


async def test_rejected_token_is_refreshed_once(settings):
    tokens = []
    transfers = []

    def handler(request):
        if request.url.path.endswith("/token/"):
            tokens.append(request)
            return httpx.Response(200, json={"access_token": f"tok-{len(tokens)}", "expires_in": 3600})
        transfers.append(request.headers["Authorization"])
        if len(transfers) == 1:
            return httpx.Response(401, json={"message": "Access token expired"})
        return httpx.Response(202)

    gateway, client = _gateway(settings, handler)
    async with client:
        await gateway.initiate_disbursement("MTN", 500, "0772123456", "ref-401")

    assert len(tokens) == 2
    assert transfers == ["Bearer tok-1", "Bearer tok-2"]


async def test_repeated_401_is_raised(settings):
    def handler(request):
        if request.url.path.endswith("/token/"):
            return _token_response()
        return httpx.Response(401, json={"message": "Invalid credentials"})

    gateway, client = _gateway(settings, handler)
    async with client:
        with pytest.raises(ProviderError) as exc:
            await gateway.check_status("ref-x", "MTN", OperationType.COLLECTION)

    assert exc.value.http_status == 401
