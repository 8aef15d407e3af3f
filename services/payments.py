# ================================================================
# services/payments.py
# ================================================================
"""
Subscription collections, manual payouts and payment history.
Winner payouts live in services/disbursement.py.
"""
import calendar
import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, select

from db import Database
from errors import NotFoundError, ValidationError
from helpers import get_user_by_id, mask_sensitive, utcnow
from models import PAYMENT_STATUSES, Payment
from services.providers.types import OperationType, PaymentStatus, ProviderName
from services.settlement import SettlementPoller

logger = logging.getLogger(__name__)

SUBSCRIPTION_TYPES = ("WEEKLY", "MONTHLY")


def add_month(start: datetime) -> datetime:
    """Same day next month, clamped to the month's last day."""
    year = start.year + (start.month // 12)
    month = start.month % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def subscription_period(subscription_type: str, start: datetime) -> tuple:
    if subscription_type == "WEEKLY":
        return start, start + timedelta(days=7)
    if subscription_type == "MONTHLY":
        return start, add_month(start)
    raise ValidationError("Invalid subscriptionType (expected WEEKLY or MONTHLY)")


def normalize_payment_status(value) -> str:
    status = str(value or "").strip().upper()
    if status == "SUCCESS":
        status = "SUCCESSFUL"
    if status not in PAYMENT_STATUSES:
        raise ValidationError("Invalid payment status.")
    return status


def _validate_transfer(amount, phone_number, provider) -> ProviderName:
    if not amount or not phone_number or not provider:
        raise ValidationError("Missing required fields in the request body")
    if amount <= 0:
        raise ValidationError("Invalid amount: Amount must be greater than 0")
    if len("".join(ch for ch in phone_number if ch.isdigit())) < 9:
        raise ValidationError("Invalid phone number format")
    return ProviderName.parse(provider)


# ------------------------------------------------------
# 1. Subscription collection (request to pay)
# ------------------------------------------------------
async def initiate_subscription_payment(
    db: Database,
    gateway,
    poller: SettlementPoller,
    *,
    amount: int,
    phone_number: str,
    provider: str,
    subscription_type: str,
    user_id,
) -> Payment:
    """
    Collect a subscription fee and record the settled Payment.
    Provider errors and SettlementTimeout propagate to the caller.
    """
    provider = _validate_transfer(amount, phone_number, provider)
    subscription_type = str(subscription_type or "").upper()
    if subscription_type not in SUBSCRIPTION_TYPES:
        raise ValidationError("Invalid subscriptionType (expected WEEKLY or MONTHLY)")
    if not user_id:
        raise ValidationError("Missing required fields in the request body")

    async with db.session() as session:
        if not await get_user_by_id(session, user_id):
            raise NotFoundError("User not found")

    reference = str(uuid.uuid4())
    await gateway.get_token(provider, OperationType.COLLECTION)
    await gateway.initiate_collection(provider, amount, phone_number, reference)
    logger.info(
        f"💳 Collection initiated provider={provider.value} phone={mask_sensitive(phone_number)} "
        f"amount={amount} reference={reference}"
    )

    terminal = await poller.poll_until_terminal(reference, provider, OperationType.COLLECTION)

    payment = Payment(
        user_id=user_id,
        phone_number=phone_number,
        amount=amount,
        provider=provider.value,
        operation_type="COLLECTION",
        reference=reference,
        transaction_id=terminal.external_transaction_id,
        status=terminal.status.value,
        subscription_type=subscription_type,
    )
    if terminal.status is PaymentStatus.SUCCESSFUL:
        payment.start_date, payment.end_date = subscription_period(subscription_type, utcnow())

    async with db.session() as session:
        session.add(payment)
        await session.commit()
        await session.refresh(payment)

    logger.info(f"🧾 Payment saved reference={reference} status={payment.status}")
    return payment


# ------------------------------------------------------
# 2. Manual disbursement (admin reward payout)
# ------------------------------------------------------
async def disburse_to_phone(
    db: Database,
    gateway,
    poller: SettlementPoller,
    *,
    amount: int,
    phone_number: str,
    provider: str,
    user_id=None,
) -> Payment:
    provider = _validate_transfer(amount, phone_number, provider)

    reference = str(uuid.uuid4())
    await gateway.get_token(provider, OperationType.DISBURSEMENT)
    await gateway.initiate_disbursement(provider, amount, phone_number, reference)
    terminal = await poller.poll_until_terminal(reference, provider, OperationType.DISBURSEMENT)

    payment = Payment(
        user_id=user_id,
        phone_number=phone_number,
        amount=amount,
        provider=provider.value,
        operation_type="DISBURSEMENT",
        reference=reference,
        transaction_id=terminal.external_transaction_id,
        status=terminal.status.value,
    )
    async with db.session() as session:
        session.add(payment)
        await session.commit()
        await session.refresh(payment)

    logger.info(f"💸 Manual disbursement reference={reference} status={payment.status}")
    return payment


# ------------------------------------------------------
# 3. History / status updates / provider callback
# ------------------------------------------------------
async def list_user_payments(db: Database, user_id) -> List[Payment]:
    async with db.session() as session:
        result = await session.execute(
            select(Payment)
            .where(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())


async def update_payment_status(db: Database, payment_id, status) -> Payment:
    status = normalize_payment_status(status)
    async with db.session() as session:
        payment = await session.get(Payment, payment_id)
        if not payment:
            raise NotFoundError("Payment not found.")
        payment.status = status
        await session.commit()
    logger.info(f"🔄 Payment {payment_id} status → {status}")
    return payment


async def handle_callback(db: Database, reference: Optional[str], status) -> Payment:
    """Provider callback: match on our reference or the provider transaction id."""
    if not reference:
        raise ValidationError("transactionId is required")
    status = normalize_payment_status(status)

    async with db.session() as session:
        result = await session.execute(
            select(Payment).where(
                or_(Payment.reference == reference, Payment.transaction_id == reference)
            )
        )
        payment = result.scalars().first()
        if not payment:
            raise NotFoundError("Payment not found.")
        payment.status = status
        await session.commit()

    logger.info(f"📨 Callback applied reference={reference} status={status}")
    return payment
