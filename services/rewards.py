# ================================================================
# services/rewards.py — points ledger queries
# ================================================================
from typing import List

from sqlalchemy import select

from db import Database
from errors import NotFoundError
from helpers import get_user_by_id
from models import Reward


async def list_user_rewards(db: Database, user_id) -> List[Reward]:
    async with db.session() as session:
        user = await get_user_by_id(session, user_id)
        if not user:
            raise NotFoundError("User not found.")

        result = await session.execute(
            select(Reward)
            .where(Reward.user_email == user.email)
            .order_by(Reward.created_at.desc())
        )
        return list(result.scalars().all())
