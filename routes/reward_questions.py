# =====================================================
# routes/reward_questions.py
# =====================================================
import logging
import uuid

from fastapi import APIRouter, Depends

from db import Database
from routes.deps import get_db, get_payout_runner, get_settings
from schemas import (
    AnswerRequest,
    AnswerResponse,
    CreateRewardQuestionRequest,
    RewardQuestionDetail,
    RewardQuestionOut,
    UpdateRewardQuestionRequest,
)
from services import allocator
from services import reward_questions as service
from services.providers.types import PaymentStatus
from utils.security import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reward-questions", tags=["reward-questions"])


@router.post("/create", status_code=201)
async def create_reward_question(
    body: CreateRewardQuestionRequest,
    db: Database = Depends(get_db),
    _claims: dict = Depends(require_user),
):
    question = await service.create_reward_question(db, **body.model_dump())
    return {
        "message": "Reward question created successfully",
        "rewardQuestion": RewardQuestionDetail.model_validate(question).model_dump(by_alias=True, mode="json"),
    }


@router.get("/all")
async def get_all_reward_questions(db: Database = Depends(get_db)):
    questions = await service.list_active(db)
    return {
        "message": "All reward questions fetched successfully",
        "rewardQuestions": [RewardQuestionOut.model_validate(q).model_dump(by_alias=True, mode="json") for q in questions],
    }


@router.get("/instant")
async def get_instant_reward_questions(db: Database = Depends(get_db)):
    questions = await service.list_instant(db)
    return {
        "message": "Instant reward questions fetched successfully",
        "rewardQuestions": [RewardQuestionDetail.model_validate(q).model_dump(by_alias=True, mode="json") for q in questions],
    }


@router.get("/user/{user_id}", response_model=list[RewardQuestionOut])
async def get_reward_questions_by_user(user_id: uuid.UUID, db: Database = Depends(get_db)):
    return await service.list_by_user(db, user_id)


@router.put("/{question_id}/update", response_model=RewardQuestionDetail)
async def update_reward_question(
    question_id: uuid.UUID,
    body: UpdateRewardQuestionRequest,
    db: Database = Depends(get_db),
    _claims: dict = Depends(require_user),
):
    return await service.update_reward_question(db, question_id, body.model_dump(exclude_unset=True))


@router.delete("/{question_id}/delete")
async def delete_reward_question(
    question_id: uuid.UUID,
    db: Database = Depends(get_db),
    _claims: dict = Depends(require_user),
):
    await service.delete_reward_question(db, question_id)
    return {"message": "Reward question deleted successfully"}


@router.post("/{question_id}/answer", response_model=AnswerResponse)
async def submit_answer(
    question_id: uuid.UUID,
    body: AnswerRequest,
    db: Database = Depends(get_db),
    runner=Depends(get_payout_runner),
    settings=Depends(get_settings),
):
    """
    Score the answer, reserve a winner slot if one is left, and start the
    payout. The payout outcome is reported if it lands within
    PAYOUT_RESPONSE_WAIT_SECONDS, otherwise PENDING.
    """
    result = await allocator.submit_answer(
        db, question_id, body.user_email, body.selected_answer, body.phone_number
    )

    response = AnswerResponse(
        message=result.message,
        is_correct=result.is_correct,
        points_awarded=result.points_awarded,
        is_winner=result.is_winner,
        position=result.position,
    )

    if result.winner is not None:
        task = runner.submit(result.winner)
        outcome = await runner.wait_for(task, settings.payout_response_wait_seconds)
        if outcome is None:
            response.payment_status = PaymentStatus.PENDING.value
        else:
            response.payment_status = outcome.status.value
            response.payment_reference = outcome.reference

    return response
