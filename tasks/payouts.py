# ========================================================
# tasks/payouts.py
# ========================================================
"""
Runs winner payouts as tracked asyncio tasks.

The HTTP response waits a bounded time for the outcome; the payout itself
keeps running (shielded) if the wait times out or the client disconnects.
"""
import asyncio
import logging
from typing import Optional, Set

from services.disbursement import PaymentOrchestrator, PaymentOutcome

logger = logging.getLogger(__name__)


class PayoutRunner:
    def __init__(self, orchestrator: PaymentOrchestrator):
        self.orchestrator = orchestrator
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, winner) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self.orchestrator.disburse(winner), name=f"payout-{winner.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for(self, task: asyncio.Task, timeout: float) -> Optional[PaymentOutcome]:
        """Outcome if it lands within timeout, else None (still PENDING)."""
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            return None

    async def drain(self, timeout: float):
        """Give in-flight payouts a grace period at shutdown."""
        if not self._tasks:
            return
        logger.info(f"⏳ Waiting for {len(self._tasks)} in-flight payouts...")
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(
                f"⚠️ {len(pending)} payouts still running at shutdown; "
                f"the sweeper will reconcile them"
            )
