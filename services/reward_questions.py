# ==================================================================
# services/reward_questions.py (create / list / update / delete)
# ==================================================================
import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from db import Database
from errors import ConflictError, NotFoundError, ValidationError
from helpers import get_user_by_id, to_naive_utc, utcnow
from models import RewardQuestion, Winner
from services.providers.types import ProviderName

logger = logging.getLogger(__name__)

MIN_WINNERS = 1
MAX_WINNERS = 10
DEFAULT_MAX_WINNERS = 2

# Fields an owner may change; winners_count / is_completed belong to the allocator
UPDATABLE_FIELDS = {
    "text", "options", "correct_answer", "reward_amount", "expiry_time", "is_active",
    "is_instant_reward", "max_winners", "payment_provider", "phone_number",
}
# Only these may be cleared with an explicit null
NULLABLE_FIELDS = {"expiry_time", "payment_provider", "phone_number"}


def _validate_instant_fields(is_instant: bool, max_winners, payment_provider) -> tuple:
    """Returns (max_winners, provider) normalized; raises ValidationError."""
    if not is_instant:
        return max_winners or DEFAULT_MAX_WINNERS, payment_provider

    if payment_provider is None:
        raise ValidationError("paymentProvider is required for instant reward questions (MTN or AIRTEL)")
    provider = ProviderName.parse(payment_provider).value

    if max_winners is None:
        max_winners = DEFAULT_MAX_WINNERS
    if isinstance(max_winners, bool) or not isinstance(max_winners, int):
        raise ValidationError("maxWinners must be an integer")
    if not MIN_WINNERS <= max_winners <= MAX_WINNERS:
        raise ValidationError(f"maxWinners must be between {MIN_WINNERS} and {MAX_WINNERS}")
    return max_winners, provider


def _validate_common(text, options, correct_answer, reward_amount):
    if not text or not options or not correct_answer or reward_amount is None:
        raise ValidationError("Text, options, correctAnswer, rewardAmount, and userId are required")
    if not isinstance(options, list) or len(options) < 2:
        raise ValidationError("options must be a list with at least two entries")
    if correct_answer not in options:
        raise ValidationError("correctAnswer must be one of the options")
    if reward_amount <= 0:
        raise ValidationError("Reward amount must be greater than 0")


# ------------------------------------------------------
# 1. Create
# ------------------------------------------------------
async def create_reward_question(
    db: Database,
    *,
    text: str,
    options: list,
    correct_answer: str,
    reward_amount: int,
    user_id,
    expiry_time=None,
    is_instant_reward: bool = False,
    max_winners: Optional[int] = None,
    payment_provider: Optional[str] = None,
    phone_number: Optional[str] = None,
) -> RewardQuestion:
    """Validates everything before touching the database."""
    if not user_id:
        raise ValidationError("Text, options, correctAnswer, rewardAmount, and userId are required")
    _validate_common(text, options, correct_answer, reward_amount)
    max_winners, payment_provider = _validate_instant_fields(is_instant_reward, max_winners, payment_provider)

    async with db.session() as session:
        user = await get_user_by_id(session, user_id)
        if not user:
            raise NotFoundError("User not found")

        question = RewardQuestion(
            text=text,
            options=options,
            correct_answer=correct_answer,
            reward_amount=reward_amount,
            expiry_time=to_naive_utc(expiry_time),
            is_active=True,
            is_instant_reward=bool(is_instant_reward),
            max_winners=max_winners,
            winners_count=0,
            is_completed=False,
            payment_provider=payment_provider,
            phone_number=phone_number,
            user_id=user.id,
        )
        session.add(question)
        await session.commit()

    logger.info(
        f"📝 Reward question created id={question.id} instant={question.is_instant_reward} "
        f"max_winners={question.max_winners}"
    )
    return await get_question(db, question.id)


# ------------------------------------------------------
# 2. Queries
# ------------------------------------------------------
def _open_filter():
    now = utcnow()
    return (
        RewardQuestion.is_active.is_(True),
        or_(RewardQuestion.expiry_time.is_(None), RewardQuestion.expiry_time > now),
    )


async def list_active(db: Database) -> List[RewardQuestion]:
    async with db.session() as session:
        result = await session.execute(
            select(RewardQuestion)
            .options(selectinload(RewardQuestion.user))
            .where(*_open_filter())
            .order_by(RewardQuestion.created_at.desc())
        )
        return list(result.scalars().all())


async def list_instant(db: Database) -> List[RewardQuestion]:
    """Active, incomplete instant-reward questions with their current winners."""
    async with db.session() as session:
        result = await session.execute(
            select(RewardQuestion)
            .options(selectinload(RewardQuestion.winners), selectinload(RewardQuestion.user))
            .where(
                *_open_filter(),
                RewardQuestion.is_instant_reward.is_(True),
                RewardQuestion.is_completed.is_(False),
            )
            .order_by(RewardQuestion.created_at.desc())
        )
        return list(result.scalars().all())


async def list_by_user(db: Database, user_id) -> List[RewardQuestion]:
    async with db.session() as session:
        result = await session.execute(
            select(RewardQuestion)
            .options(selectinload(RewardQuestion.user))
            .where(RewardQuestion.user_id == user_id)
            .order_by(RewardQuestion.created_at.desc())
        )
        return list(result.scalars().all())


async def get_question(db: Database, question_id) -> RewardQuestion:
    async with db.session() as session:
        result = await session.execute(
            select(RewardQuestion)
            .options(selectinload(RewardQuestion.winners), selectinload(RewardQuestion.user))
            .where(RewardQuestion.id == question_id)
        )
        question = result.scalar_one_or_none()
    if not question:
        raise NotFoundError("Reward question not found")
    return question


# ------------------------------------------------------
# 3. Update
# ------------------------------------------------------
async def update_reward_question(db: Database, question_id, changes: dict) -> RewardQuestion:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    nulled = {field for field, value in changes.items() if value is None} - NULLABLE_FIELDS
    if nulled:
        raise ValidationError(f"Fields cannot be null: {', '.join(sorted(nulled))}")

    async with db.session() as session:
        async with session.begin():
            result = await session.execute(
                select(RewardQuestion)
                .where(RewardQuestion.id == question_id)
                .with_for_update()
            )
            question = result.scalar_one_or_none()
            if not question:
                raise NotFoundError("Reward question not found")

            merged = {field: getattr(question, field) for field in UPDATABLE_FIELDS}
            merged.update(changes)
            _validate_common(merged["text"], merged["options"], merged["correct_answer"], merged["reward_amount"])
            max_winners, provider = _validate_instant_fields(
                merged["is_instant_reward"], merged["max_winners"], merged["payment_provider"]
            )
            if max_winners < question.winners_count:
                raise ConflictError(
                    f"maxWinners cannot go below the {question.winners_count} winners already recorded"
                )

            merged["max_winners"] = max_winners
            merged["payment_provider"] = provider
            merged["expiry_time"] = to_naive_utc(merged["expiry_time"])
            for field in changes:
                setattr(question, field, merged[field])
            question.max_winners = max_winners
            question.payment_provider = provider
            if question.is_instant_reward:
                question.is_completed = question.winners_count >= question.max_winners

    logger.info(f"✏️ Reward question updated id={question_id} fields={sorted(changes)}")
    return await get_question(db, question_id)


# ------------------------------------------------------
# 4. Delete
# ------------------------------------------------------
async def delete_reward_question(db: Database, question_id):
    async with db.session() as session:
        async with session.begin():
            question = await session.get(RewardQuestion, question_id)
            if not question:
                raise NotFoundError("Reward question not found")

            has_winners = await session.execute(
                select(Winner.id).where(Winner.reward_question_id == question_id).limit(1)
            )
            if has_winners.first():
                raise ConflictError("Reward question already has winners and cannot be deleted")

            await session.delete(question)

    logger.info(f"🗑️ Reward question deleted id={question_id}")
