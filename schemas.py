# ===============================================================
# schemas.py — request / response bodies (camelCase on the wire)
# ===============================================================
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ----------------------
# Reward questions
# ----------------------
class CreateRewardQuestionRequest(CamelModel):
    text: str
    options: List[str]
    correct_answer: str
    reward_amount: int
    user_id: uuid.UUID
    expiry_time: Optional[datetime] = None
    is_instant_reward: bool = False
    max_winners: Optional[int] = None
    payment_provider: Optional[str] = None
    phone_number: Optional[str] = None


class UpdateRewardQuestionRequest(CamelModel):
    text: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    reward_amount: Optional[int] = None
    expiry_time: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_instant_reward: Optional[bool] = None
    max_winners: Optional[int] = None
    payment_provider: Optional[str] = None
    phone_number: Optional[str] = None


class AnswerRequest(CamelModel):
    user_email: str
    selected_answer: str
    phone_number: Optional[str] = None


class AnswerResponse(CamelModel):
    message: str
    is_correct: bool
    points_awarded: int
    is_winner: bool
    position: Optional[int] = None
    payment_status: Optional[str] = None
    payment_reference: Optional[str] = None


class UserSummary(CamelModel):
    id: uuid.UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None


class WinnerOut(CamelModel):
    id: uuid.UUID
    user_email: str
    position: int
    amount_awarded: int
    payment_status: str
    payment_provider: str
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class RewardQuestionOut(CamelModel):
    id: uuid.UUID
    text: str
    options: List[str]
    reward_amount: int
    expiry_time: Optional[datetime] = None
    is_active: bool
    is_instant_reward: bool
    max_winners: int
    winners_count: int
    is_completed: bool
    payment_provider: Optional[str] = None
    user_id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None


class RewardQuestionDetail(RewardQuestionOut):
    winners: List[WinnerOut] = []


# ----------------------
# Payments
# ----------------------
class InitiatePaymentRequest(CamelModel):
    amount: int
    phone_number: str
    provider: str
    subscription_type: str
    user_id: uuid.UUID


class DisburseRequest(CamelModel):
    amount: int
    phone_number: str
    provider: str
    user_id: Optional[uuid.UUID] = None


class CallbackRequest(CamelModel):
    transaction_id: Optional[str] = None
    reference: Optional[str] = None
    status: str
    provider: Optional[str] = None


class UpdatePaymentStatusRequest(CamelModel):
    status: str


class PaymentOut(CamelModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    phone_number: str
    amount: int
    provider: str
    operation_type: str
    reference: str
    transaction_id: Optional[str] = None
    status: str
    subscription_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


# ----------------------
# Rewards (points ledger)
# ----------------------
class RewardOut(CamelModel):
    id: uuid.UUID
    user_email: str
    points: int
    description: Optional[str] = None
    reward_question_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
