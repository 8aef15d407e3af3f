#=================================================================
# models.py (users, reward questions, winners, attempts, payments)
#=================================================================
import uuid
from sqlalchemy import (
    Column, String, Integer, ForeignKey, Text, TIMESTAMP, CheckConstraint,
    Boolean, JSON, UniqueConstraint, Uuid
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from base import Base  # from base.py


# Payment / winner status values (stored upper-case)
PAYMENT_PENDING = "PENDING"
PAYMENT_SUCCESSFUL = "SUCCESSFUL"
PAYMENT_FAILED = "FAILED"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_SUCCESSFUL, PAYMENT_FAILED)


# ================================================================
# 1. USERS
# ================================================================
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String(20), nullable=True)
    avatar = Column(String, nullable=True)

    # Only ever changed through an atomic "points = points + n" update
    points = Column(Integer, default=0, nullable=False)

    created_at = Column(TIMESTAMP, server_default=func.now())

    reward_questions = relationship("RewardQuestion", back_populates="user")
    payments = relationship("Payment", back_populates="user")


# ================================================================
# 2. REWARD QUESTIONS
# ================================================================
class RewardQuestion(Base):
    __tablename__ = "reward_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)
    correct_answer = Column(String, nullable=False)
    reward_amount = Column(Integer, nullable=False)

    # Instant reward (first N correct answers get paid out)
    is_instant_reward = Column(Boolean, default=False, nullable=False)
    max_winners = Column(Integer, default=2, nullable=False)
    winners_count = Column(Integer, default=0, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    payment_provider = Column(String, nullable=True)
    phone_number = Column(String(20), nullable=True)

    expiry_time = Column(TIMESTAMP, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "winners_count >= 0 AND winners_count <= max_winners",
            name="check_winners_count_bounds"
        ),
        CheckConstraint("reward_amount > 0", name="check_reward_amount_positive"),
    )

    user = relationship("User", back_populates="reward_questions")
    winners = relationship(
        "Winner",
        back_populates="reward_question",
        order_by="Winner.position",
    )


# ================================================================
# 3. WINNERS (one reserved slot on an instant-reward question)
# ================================================================
class Winner(Base):
    __tablename__ = "winners"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reward_question_id = Column(
        Uuid, ForeignKey("reward_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_email = Column(String, nullable=False)
    position = Column(Integer, nullable=False)
    amount_awarded = Column(Integer, nullable=False)

    payment_status = Column(String, default=PAYMENT_PENDING, nullable=False)
    payment_provider = Column(String, nullable=False)
    phone_number = Column(String(20), nullable=False)
    payment_reference = Column(String, nullable=True, index=True)
    external_transaction_id = Column(String, nullable=True)
    failure_reason = Column(Text, nullable=True)
    paid_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("reward_question_id", "user_email", name="uq_winner_question_user"),
        UniqueConstraint("reward_question_id", "position", name="uq_winner_question_position"),
        CheckConstraint(
            "payment_status IN ('PENDING','SUCCESSFUL','FAILED')",
            name="check_winner_payment_status"
        ),
        CheckConstraint("position >= 1", name="check_winner_position"),
    )

    reward_question = relationship("RewardQuestion", back_populates="winners")


# ================================================================
# 4. QUESTION ATTEMPTS (append-only audit)
# ================================================================
class QuestionAttempt(Base):
    __tablename__ = "question_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_email = Column(String, nullable=False, index=True)
    reward_question_id = Column(Uuid, nullable=False, index=True)
    selected_answer = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    attempted_at = Column(TIMESTAMP, server_default=func.now())


# ================================================================
# 5. REWARDS (points ledger)
# ================================================================
class Reward(Base):
    __tablename__ = "rewards"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_email = Column(String, nullable=False, index=True)
    points = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    # NULL for manual grants; set when the points came from a question
    reward_question_id = Column(Uuid, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_email", "reward_question_id", name="uq_reward_user_question"),
    )


# ================================================================
# 6. PAYMENTS (settled collections and disbursements)
# ================================================================
class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    phone_number = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=False)
    provider = Column(String, nullable=False)
    operation_type = Column(String, nullable=False, default="COLLECTION")
    reference = Column(String, unique=True, nullable=False)
    transaction_id = Column(String, nullable=True, index=True)
    status = Column(String, default=PAYMENT_PENDING, nullable=False)

    subscription_type = Column(String, nullable=True)
    start_date = Column(TIMESTAMP, nullable=True)
    end_date = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','SUCCESSFUL','FAILED')",
            name="check_payment_status"
        ),
        CheckConstraint(
            "operation_type IN ('COLLECTION','DISBURSEMENT')",
            name="check_payment_operation_type"
        ),
    )

    user = relationship("User", back_populates="payments")
