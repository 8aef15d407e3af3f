# =====================================================
# routes/rewards.py
# =====================================================
import uuid

from fastapi import APIRouter, Depends

from db import Database
from routes.deps import get_db
from schemas import RewardOut
from services.rewards import list_user_rewards

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("/user/{user_id}", response_model=list[RewardOut])
async def get_rewards_by_user_id(user_id: uuid.UUID, db: Database = Depends(get_db)):
    return await list_user_rewards(db, user_id)
