# ===============================================================
# helpers.py
# ===============================================================
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db import Database
from models import QuestionAttempt, User

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp (every TIMESTAMP column stores naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# -------------------------------------------------
# Users
# -------------------------------------------------
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# -------------------------------------------------
# Add points (atomic increment)
# -------------------------------------------------
async def add_points(session: AsyncSession, email: str, points: int) -> int:
    """
    Increment a user's points balance in the database itself.
    NOTE: This function does not commit — caller must handle commit.
    Returns the number of user rows touched (0 if the email is unknown).
    """
    result = await session.execute(
        update(User)
        .where(User.email == email)
        .values(points=User.points + points)
    )
    logger.info(f"🪙 Added {points} points → user={mask_sensitive(email, 6)}")
    return result.rowcount


# -------------------------------------------------
# Record a question attempt (best-effort audit)
# -------------------------------------------------
async def record_attempt(
    db: Database,
    user_email: str,
    question_id,
    selected_answer: str,
    is_correct: bool,
) -> bool:
    """
    Append one QuestionAttempt row in its own transaction.
    Failures are logged and swallowed so scoring is never blocked by audit.
    """
    try:
        async with db.session() as session:
            session.add(QuestionAttempt(
                user_email=user_email,
                reward_question_id=question_id,
                selected_answer=selected_answer,
                is_correct=is_correct,
            ))
            await session.commit()
        return True
    except Exception as e:
        logger.error(f"⚠️ Could not record attempt for question={question_id}: {e}")
        return False


# -------------------------------------------------
# Phone number helpers
# -------------------------------------------------
def _digits(phone: str) -> str:
    return "".join(ch for ch in (phone or "") if ch.isdigit())


def normalize_msisdn(phone: str, country_code: str = "256") -> str:
    """
    International MSISDN without '+': 0772123456 → 256772123456.
    """
    p = _digits(phone)
    if p.startswith(country_code):
        return p
    if p.startswith("0"):
        p = p[1:]
    return f"{country_code}{p}"


def national_msisdn(phone: str, country_code: str = "256") -> str:
    """
    National number without trunk prefix: +256772123456 → 772123456.
    """
    p = _digits(phone)
    if p.startswith(country_code) and len(p) > len(country_code) + 6:
        p = p[len(country_code):]
    return p.lstrip("0")


# ----------------------------
# 🧩 Mask Sensitive Helper
# ----------------------------
def mask_sensitive(data: str, visible: int = 4) -> str:
    """Mask all but last few visible characters of sensitive data."""
    if not data:
        return ""
    data = str(data)
    if len(data) <= visible:
        return data
    return f"{'*' * (len(data) - visible)}{data[-visible:]}"
