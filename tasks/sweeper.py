# ========================================================
# tasks/sweeper.py
# ========================================================
"""
Sweeper task:
- deactivate expired reward questions
- reconcile winner payouts stuck in PENDING
"""

import asyncio
import logging
from datetime import timedelta

from sqlalchemy import select, update

from db import Database
from helpers import utcnow
from models import PAYMENT_PENDING, RewardQuestion, Winner
from services.disbursement import PaymentOrchestrator

logger = logging.getLogger(__name__)


async def sweeper_loop(db: Database, orchestrator: PaymentOrchestrator, interval_seconds: int, stale_minutes: int):
    """Loop that periodically runs one sweep; errors never stop it."""
    while True:
        try:
            await deactivate_expired_questions(db)
            await reconcile_stale_payouts(db, orchestrator, stale_minutes)
        except Exception as e:
            logger.exception(f"Sweeper task error: {e}")
        await asyncio.sleep(interval_seconds)


async def deactivate_expired_questions(db: Database) -> int:
    """Mark active questions past their expiry time as inactive."""
    async with db.session() as session:
        result = await session.execute(
            update(RewardQuestion)
            .where(RewardQuestion.is_active.is_(True))
            .where(RewardQuestion.expiry_time.is_not(None))
            .where(RewardQuestion.expiry_time < utcnow())
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    if result.rowcount:
        logger.info(f"Deactivated {result.rowcount} expired reward questions.")
    else:
        logger.debug("No expired reward questions to deactivate.")
    return result.rowcount


async def reconcile_stale_payouts(db: Database, orchestrator: PaymentOrchestrator, stale_minutes: int) -> dict:
    """Re-check PENDING winners older than stale_minutes."""
    stale_after = timedelta(minutes=stale_minutes)
    async with db.session() as session:
        result = await session.execute(
            select(Winner)
            .where(Winner.payment_status == PAYMENT_PENDING)
            .where(Winner.created_at < utcnow() - stale_after)
            .order_by(Winner.created_at)
            .limit(100)
        )
        winners = list(result.scalars().all())

    counts = {}
    for winner in winners:
        status = await orchestrator.reconcile(winner, stale_after)
        counts[status.value] = counts.get(status.value, 0) + 1

    if winners:
        logger.info(f"Reconciled {len(winners)} stale payouts: {counts}")
    return counts
