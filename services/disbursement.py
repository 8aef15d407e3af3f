# ================================================================
# services/disbursement.py
# ================================================================
"""
Payment orchestrator: turns a freshly reserved Winner (PENDING) into a
terminal SUCCESSFUL / FAILED state by paying it out through the provider.

Nothing in here raises back to the answer-submission path: every failure
ends up as payment_status=FAILED on the Winner row. The reserved slot is
never released, even when the payout fails.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import update

from db import Database
from errors import ProviderError, SettlementTimeout
from helpers import mask_sensitive, utcnow
from models import (
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_SUCCESSFUL,
    Payment,
    Winner,
)
from services.providers.types import OperationType, PaymentStatus, ProviderName
from services.settlement import SettlementPoller

logger = logging.getLogger(__name__)


@dataclass
class PaymentOutcome:
    winner_id: object
    status: PaymentStatus
    reference: Optional[str] = None
    external_transaction_id: Optional[str] = None
    error: Optional[str] = None


class PaymentOrchestrator:
    def __init__(self, db: Database, gateway, poller: SettlementPoller):
        self.db = db
        self.gateway = gateway
        self.poller = poller

    # ------------------------------------------------------
    # Persist helpers (guarded: only ever move out of PENDING)
    # ------------------------------------------------------
    async def _set_reference(self, winner_id, reference: str):
        async with self.db.session() as session:
            await session.execute(
                update(Winner)
                .where(Winner.id == winner_id, Winner.payment_status == PAYMENT_PENDING)
                .values(payment_reference=reference)
            )
            await session.commit()

    async def _mark_successful(self, winner: Winner, reference: str, external_id: Optional[str]):
        async with self.db.session() as session:
            async with session.begin():
                result = await session.execute(
                    update(Winner)
                    .where(Winner.id == winner.id, Winner.payment_status == PAYMENT_PENDING)
                    .values(
                        payment_status=PAYMENT_SUCCESSFUL,
                        payment_reference=reference,
                        external_transaction_id=external_id,
                        paid_at=utcnow(),
                    )
                )
                if result.rowcount:
                    session.add(Payment(
                        phone_number=winner.phone_number,
                        amount=winner.amount_awarded,
                        provider=winner.payment_provider,
                        operation_type="DISBURSEMENT",
                        reference=reference,
                        transaction_id=external_id,
                        status=PAYMENT_SUCCESSFUL,
                    ))

    async def _mark_failed(self, winner_id, reference: Optional[str], reason: str):
        values = {"payment_status": PAYMENT_FAILED, "failure_reason": reason[:500]}
        if reference:
            values["payment_reference"] = reference
        async with self.db.session() as session:
            await session.execute(
                update(Winner)
                .where(Winner.id == winner_id, Winner.payment_status == PAYMENT_PENDING)
                .values(**values)
            )
            await session.commit()

    # ------------------------------------------------------
    # 1. Disburse a winner
    # ------------------------------------------------------
    async def disburse(self, winner: Winner) -> PaymentOutcome:
        """
        Token → transfer/payout → poll → persist.
        Always returns an outcome; never raises.
        """
        reference = None
        try:
            provider = ProviderName.parse(winner.payment_provider)

            # Step 1: token (gateway policy decides about caching)
            await self.gateway.get_token(provider, OperationType.DISBURSEMENT)

            # Step 2: fresh idempotent reference for this logical payout,
            # stored before the transfer so a crash leaves it reconcilable
            reference = str(uuid.uuid4())
            await self._set_reference(winner.id, reference)
            await self.gateway.initiate_disbursement(
                provider, winner.amount_awarded, winner.phone_number, reference
            )
            logger.info(
                f"💸 Disbursement initiated winner={winner.id} provider={provider.value} "
                f"phone={mask_sensitive(winner.phone_number)} reference={reference}"
            )

            # Step 3: wait for settlement
            terminal = await self.poller.poll_until_terminal(
                reference, provider, OperationType.DISBURSEMENT
            )
        except SettlementTimeout as e:
            return await self._fail(winner, reference, f"Timeout: {e.message}")
        except ProviderError as e:
            return await self._fail(winner, reference, e.message)
        except Exception as e:
            logger.exception(f"❌ Unexpected disbursement error for winner={winner.id}: {e}")
            return await self._fail(winner, reference, f"{e.__class__.__name__}: {e}")

        if terminal.status is PaymentStatus.SUCCESSFUL:
            try:
                await self._mark_successful(winner, reference, terminal.external_transaction_id)
            except Exception as e:
                # money moved; keep the record PENDING for the sweeper to reconcile
                logger.exception(f"❌ Could not persist successful payout for winner={winner.id}: {e}")
                return PaymentOutcome(winner.id, PaymentStatus.PENDING, reference,
                                      terminal.external_transaction_id, str(e))

            logger.info(f"✅ Winner {winner.id} paid {winner.amount_awarded} (ref={reference})")
            return PaymentOutcome(winner.id, PaymentStatus.SUCCESSFUL, reference,
                                  terminal.external_transaction_id)

        return await self._fail(winner, reference, f"Provider reported {terminal.raw_status or 'FAILED'}")

    async def _fail(self, winner: Winner, reference: Optional[str], reason: str) -> PaymentOutcome:
        logger.warning(f"❌ Payout failed for winner={winner.id} (ref={reference}): {reason}")
        try:
            await self._mark_failed(winner.id, reference, reason)
        except Exception as e:
            logger.exception(f"❌ Could not persist failed payout for winner={winner.id}: {e}")
        return PaymentOutcome(winner.id, PaymentStatus.FAILED, reference, None, reason)

    # ------------------------------------------------------
    # 2. Reconcile a stale PENDING winner (sweeper)
    # ------------------------------------------------------
    async def reconcile(self, winner: Winner, stale_after: timedelta) -> PaymentStatus:
        """
        One status check for a payout nobody is polling any more.
        Winners that never got a reference, or are still pending past the
        stale limit, are failed.
        """
        age = utcnow() - (winner.created_at or utcnow())

        if not winner.payment_reference:
            if age >= stale_after:
                await self._mark_failed(winner.id, None, "Disbursement was never initiated")
                return PaymentStatus.FAILED
            return PaymentStatus.PENDING

        try:
            result = await self.gateway.check_status(
                winner.payment_reference, winner.payment_provider, OperationType.DISBURSEMENT
            )
        except ProviderError as e:
            # 404: the transfer never reached the provider
            if e.http_status == 404 and age >= stale_after:
                await self._mark_failed(winner.id, winner.payment_reference,
                                        "Transaction not found at provider")
                return PaymentStatus.FAILED
            logger.warning(f"⚠️ Reconcile status check failed for winner={winner.id}: {e}")
            return PaymentStatus.PENDING
        except Exception as e:
            logger.warning(f"⚠️ Reconcile status check failed for winner={winner.id}: {e}")
            return PaymentStatus.PENDING

        if result.status is PaymentStatus.SUCCESSFUL:
            await self._mark_successful(winner, winner.payment_reference, result.external_transaction_id)
            return PaymentStatus.SUCCESSFUL

        if result.status is PaymentStatus.FAILED:
            await self._mark_failed(winner.id, winner.payment_reference,
                                    f"Provider reported {result.raw_status or 'FAILED'}")
            return PaymentStatus.FAILED

        if age >= stale_after * 2:
            await self._mark_failed(winner.id, winner.payment_reference, "Settlement timed out")
            return PaymentStatus.FAILED

        return PaymentStatus.PENDING
