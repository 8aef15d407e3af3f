# ==================================================================
# services/allocator.py (instant-reward winner slots + points awards)
# ==================================================================
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError

from db import Database
from errors import (
    AlreadyWonError,
    NotFoundError,
    QuestionExpiredError,
    QuestionInactiveError,
    ValidationError,
)
from helpers import add_points, get_user_by_email, mask_sensitive, record_attempt, utcnow
from models import PAYMENT_PENDING, Reward, RewardQuestion, Winner
from utils.templates import SLOTS_TAKEN_MESSAGE, WINNER_MESSAGE, render_template

logger = logging.getLogger(__name__)

INCORRECT_MESSAGE = "Incorrect answer. Try again!"
POINTS_MESSAGE = "Correct answer! Points awarded."
ALREADY_REWARDED_MESSAGE = "Correct answer! Points for this question were already awarded."


@dataclass
class SubmissionResult:
    is_correct: bool
    is_winner: bool = False
    position: Optional[int] = None
    points_awarded: int = 0
    message: str = ""
    winner: Optional[Winner] = None


# ===============================================================
# STEP 1 — Load + validate (no mutation happens before this passes)
# ===============================================================
async def _load_question(db: Database, question_id, user_email: str, phone_number: Optional[str]):
    async with db.session() as session:
        question = await session.get(RewardQuestion, question_id)
        if not question:
            raise NotFoundError("Reward question not found")

        if not question.is_active:
            raise QuestionInactiveError()

        if question.expiry_time and question.expiry_time < utcnow():
            raise QuestionExpiredError()

        user = await get_user_by_email(session, user_email)

        if question.is_instant_reward:
            existing = await session.execute(
                select(Winner.id).where(
                    Winner.reward_question_id == question.id,
                    Winner.user_email == user_email,
                )
            )
            if existing.first():
                raise AlreadyWonError()

            payout_phone = phone_number or (user.phone if user else None)
            if not payout_phone:
                raise ValidationError("A phone number is required to receive instant rewards")
            return question, payout_phone

        if not user:
            raise NotFoundError("User not found")
        return question, None


# ===============================================================
# STEP 2 — Atomic slot reservation (compare-and-swap on winners_count)
# ===============================================================
async def reserve_slot(db: Database, question: RewardQuestion, user_email: str, phone_number: str) -> Optional[Winner]:
    """
    Increment winners_count only while it is below max_winners and create
    the Winner at the returned position, in one transaction.

    Returns None when every slot is already taken.
    Raises AlreadyWonError if the (question, user) uniqueness constraint trips;
    the increment is rolled back with it.
    """
    new_count = RewardQuestion.winners_count + 1
    stmt = (
        update(RewardQuestion)
        .where(
            RewardQuestion.id == question.id,
            RewardQuestion.is_completed.is_(False),
            RewardQuestion.winners_count < RewardQuestion.max_winners,
        )
        .values(
            winners_count=new_count,
            is_completed=case((new_count >= RewardQuestion.max_winners, True), else_=False),
        )
        .returning(RewardQuestion.winners_count)
        .execution_options(synchronize_session=False)
    )

    try:
        async with db.session() as session:
            async with session.begin():
                position = (await session.execute(stmt)).scalar()
                if position is None:
                    return None

                winner = Winner(
                    reward_question_id=question.id,
                    user_email=user_email,
                    position=position,
                    amount_awarded=question.reward_amount,
                    payment_status=PAYMENT_PENDING,
                    payment_provider=question.payment_provider,
                    phone_number=phone_number,
                )
                session.add(winner)
                await session.flush()
    except IntegrityError:
        logger.warning(
            f"🔁 Duplicate win rejected for question={question.id} user={mask_sensitive(user_email, 6)}"
        )
        raise AlreadyWonError()

    logger.info(
        f"🏆 Slot {position}/{question.max_winners} reserved on question={question.id} "
        f"for user={mask_sensitive(user_email, 6)}"
    )
    return winner


# ===============================================================
# STEP 3 — Points for non-instant questions (idempotent per user/question)
# ===============================================================
async def award_points(db: Database, question: RewardQuestion, user_email: str) -> int:
    """
    Write the reward ledger row and increment the balance together.
    A second correct answer by the same user awards nothing.
    """
    try:
        async with db.session() as session:
            async with session.begin():
                session.add(Reward(
                    user_email=user_email,
                    points=question.reward_amount,
                    reward_question_id=question.id,
                    description=f"Correct answer to reward question: {question.text[:50]}...",
                ))
                await session.flush()
                await add_points(session, user_email, question.reward_amount)
    except IntegrityError:
        logger.info(
            f"ℹ️ Points already granted for question={question.id} user={mask_sensitive(user_email, 6)}"
        )
        return 0

    return question.reward_amount


# ===============================================================
# ENTRY POINT — submit an answer
# ===============================================================
async def submit_answer(
    db: Database,
    question_id,
    user_email: str,
    selected_answer: str,
    phone_number: Optional[str] = None,
) -> SubmissionResult:
    user_email = (user_email or "").strip()
    if not user_email:
        raise ValidationError("userEmail is required")
    if selected_answer is None:
        raise ValidationError("selectedAnswer is required")

    question, payout_phone = await _load_question(db, question_id, user_email, phone_number)

    # Exact, case-sensitive match against the authored answer
    is_correct = selected_answer == question.correct_answer

    await record_attempt(db, user_email, question.id, selected_answer, is_correct)

    if not is_correct:
        return SubmissionResult(is_correct=False, message=INCORRECT_MESSAGE)

    if not question.is_instant_reward:
        points = await award_points(db, question, user_email)
        return SubmissionResult(
            is_correct=True,
            points_awarded=points,
            message=POINTS_MESSAGE if points else ALREADY_REWARDED_MESSAGE,
        )

    slots_taken = SubmissionResult(
        is_correct=True,
        message=render_template(SLOTS_TAKEN_MESSAGE, {"max_winners": question.max_winners}),
    )
    if question.is_completed:
        return slots_taken

    winner = await reserve_slot(db, question, user_email, payout_phone)
    if winner is None:
        return slots_taken

    return SubmissionResult(
        is_correct=True,
        is_winner=True,
        position=winner.position,
        message=render_template(WINNER_MESSAGE, {
            "position": winner.position,
            "amount": winner.amount_awarded,
            "provider": winner.payment_provider,
        }),
        winner=winner,
    )
