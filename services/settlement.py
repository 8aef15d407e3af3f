# ================================================================
# services/settlement.py
# ================================================================
"""
Settlement poller: resolves an in-flight provider transaction to a
terminal status (SUCCESSFUL / FAILED) by polling at a fixed interval.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from errors import SettlementTimeout
from services.providers.types import OperationType, PaymentStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_INTERVAL_MS = 3000


@dataclass
class TerminalStatus:
    reference: str
    status: PaymentStatus
    external_transaction_id: Optional[str]
    attempts: int
    raw_status: Optional[str] = None


class SettlementPoller:
    def __init__(
        self,
        gateway,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.max_attempts = max_attempts
        self.interval_ms = interval_ms
        self._sleep = sleep

    async def poll_until_terminal(
        self,
        reference: str,
        provider,
        operation: OperationType,
        max_attempts: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> TerminalStatus:
        """
        Poll check_status until SUCCESSFUL or FAILED.

        - returns on the first terminal status
        - an erroring attempt is retried on the next scheduled attempt
        - raises the last error if every attempt errored
        - raises SettlementTimeout once attempts run out otherwise
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        interval = (self.interval_ms if interval_ms is None else interval_ms) / 1000

        last_error: Optional[Exception] = None
        errors = 0

        for attempt in range(1, attempts + 1):
            try:
                result = await self.gateway.check_status(reference, provider, operation)
            except Exception as e:
                errors += 1
                last_error = e
                logger.warning(
                    f"⚠️ {operation.value} status check {attempt}/{attempts} failed "
                    f"for {reference}: {e}"
                )
            else:
                if result.status.is_terminal:
                    logger.info(
                        f"✅ {operation.value} {reference} settled as {result.status.value} "
                        f"on attempt {attempt}/{attempts}"
                    )
                    return TerminalStatus(
                        reference=reference,
                        status=result.status,
                        external_transaction_id=result.external_transaction_id,
                        attempts=attempt,
                        raw_status=result.raw_status,
                    )
                logger.info(f"⏳ {operation.value} {reference} still pending ({attempt}/{attempts})")

            if attempt < attempts:
                await self._sleep(interval)

        if errors == attempts and last_error is not None:
            logger.error(f"❌ Every status check errored for {reference}; giving up")
            raise last_error

        raise SettlementTimeout(reference, attempts)
