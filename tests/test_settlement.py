"""Fixed-interval settlement polling."""
import pytest

from conftest import FakeGateway
from errors import ProviderError, SettlementTimeout
from services.providers.types import OperationType, PaymentStatus, ProviderName
from services.settlement import SettlementPoller

PENDING = PaymentStatus.PENDING
SUCCESSFUL = PaymentStatus.SUCCESSFUL
FAILED = PaymentStatus.FAILED


def _poller(gateway, sleeps, **kwargs):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return SettlementPoller(gateway, sleep=fake_sleep, **kwargs)


async def test_returns_on_first_terminal_status():
    sleeps = []
    gateway = FakeGateway([PENDING, PENDING, SUCCESSFUL])

    result = await _poller(gateway, sleeps).poll_until_terminal("ref-1", ProviderName.MTN, OperationType.DISBURSEMENT)

    assert result.status is SUCCESSFUL
    assert result.attempts == 3
    assert result.external_transaction_id == "ext-1"
    assert sleeps == [3.0, 3.0]
    assert gateway.status_calls == 3


async def test_failed_is_terminal_without_sleeping():
    sleeps = []
    gateway = FakeGateway([FAILED])

    result = await _poller(gateway, sleeps).poll_until_terminal("ref-2", "AIRTEL", OperationType.COLLECTION)

    assert result.status is FAILED
    assert result.attempts == 1
    assert sleeps == []


async def test_ten_pending_attempts_time_out():
    sleeps = []
    gateway = FakeGateway([PENDING])

    with pytest.raises(SettlementTimeout) as exc:
        await _poller(gateway, sleeps).poll_until_terminal("ref-3", "MTN", OperationType.DISBURSEMENT)

    assert gateway.status_calls == 10
    assert sleeps == [3.0] * 9
    assert exc.value.attempts == 10
    assert exc.value.reference == "ref-3"
    assert exc.value.status_code == 504


async def test_attempts_and_interval_can_be_overridden():
    sleeps = []
    gateway = FakeGateway([PENDING])

    with pytest.raises(SettlementTimeout):
        await _poller(gateway, sleeps).poll_until_terminal(
            "ref-4", "MTN", OperationType.COLLECTION, max_attempts=3, interval_ms=500
        )

    assert gateway.status_calls == 3
    assert sleeps == [0.5, 0.5]


async def test_transient_errors_are_retried():
    sleeps = []
    gateway = FakeGateway([ProviderError("MTN", "gateway hiccup", http_status=502), SUCCESSFUL])

    result = await _poller(gateway, sleeps).poll_until_terminal("ref-5", "MTN", OperationType.DISBURSEMENT)

    assert result.status is SUCCESSFUL
    assert result.attempts == 2


async def test_last_error_is_raised_when_every_attempt_errors():
    sleeps = []
    gateway = FakeGateway([ProviderError("AIRTEL", "down", http_status=503)])

    with pytest.raises(ProviderError) as exc:
        await _poller(gateway, sleeps, max_attempts=4).poll_until_terminal(
            "ref-6", "AIRTEL", OperationType.DISBURSEMENT
        )

    assert exc.value.http_status == 503
    assert gateway.status_calls == 4


async def test_mixed_errors_and_pending_time_out():
    sleeps = []
    gateway = FakeGateway([ProviderError("MTN", "blip"), PENDING])

    with pytest.raises(SettlementTimeout):
        await _poller(gateway, sleeps, max_attempts=3).poll_until_terminal(
            "ref-7", "MTN", OperationType.DISBURSEMENT
        )


async def test_zero_attempts_is_rejected():
    gateway = FakeGateway([SUCCESSFUL])

    with pytest.raises(ValueError):
        await _poller(gateway, []).poll_until_terminal("ref-6", "MTN", OperationType.DISBURSEMENT, max_attempts=0)

    assert gateway.status_calls == 0


async def test_single_attempt_never_sleeps():
    sleeps = []
    gateway = FakeGateway([PENDING])

    with pytest.raises(SettlementTimeout) as exc:
        await _poller(gateway, sleeps).poll_until_terminal("ref-7", "MTN", OperationType.DISBURSEMENT, max_attempts=1)

    assert gateway.status_calls == 1
    assert sleeps == []
    assert exc.value.attempts == 1
