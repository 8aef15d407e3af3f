# ========================================================
# tests/conftest.py
# ========================================================
import asyncio
import uuid
from datetime import timedelta

import pytest

from config import AirtelSettings, MtnSettings, Settings
from db import Database
from helpers import utcnow
from models import RewardQuestion, User
from services.providers.types import (
    AccessToken,
    OperationType,
    PaymentStatus,
    ProviderName,
    ProviderReference,
    StatusResult,
)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'delipucash.db'}",
        jwt_secret="test-jwt-secret",
        mtn=MtnSettings(
            user_id="mtn-user",
            api_key="mtn-key",
            primary_key="mtn-primary",
            base_url="https://mtn.test",
        ),
        airtel=AirtelSettings(
            client_id="airtel-client",
            client_secret="airtel-secret",
            base_url="https://airtel.test",
        ),
        settlement_interval_ms=0,
        enable_background_tasks=False,
        auto_create_tables=True,
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def make_user(database):
    async def _make(email=None, phone="0772123456", **fields):
        user = User(
            id=uuid.uuid4(),
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            phone=phone,
            first_name="Test",
            last_name="User",
            points=0,
            **fields,
        )
        async with database.session() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_question(database):
    async def _make(owner, **overrides):
        fields = dict(
            id=uuid.uuid4(),
            text="What is the capital of Uganda?",
            options=["Kampala", "Entebbe", "Gulu"],
            correct_answer="Kampala",
            reward_amount=500,
            is_instant_reward=True,
            max_winners=2,
            winners_count=0,
            is_completed=False,
            payment_provider="MTN",
            is_active=True,
            user_id=owner.id,
        )
        fields.update(overrides)
        question = RewardQuestion(**fields)
        async with database.session() as session:
            session.add(question)
            await session.commit()
        return question

    return _make


async def fetch(database, model, pk):
    async with database.session() as session:
        return await session.get(model, pk)


def seed(settings, *rows):
    """Insert rows from synchronous tests (before the app starts)."""

    async def _seed():
        db = Database(settings.database_url)
        await db.create_all()
        async with db.session() as session:
            session.add_all(rows)
            await session.commit()
        await db.dispose()

    asyncio.run(_seed())


class FakeGateway:
    """
    Stand-in for ProviderGateway.

    `statuses` is consumed one entry per check_status call (the last entry
    repeats); an Exception entry is raised instead of returned.
    """

    def __init__(self, statuses=None, initiate_error=None):
        self.statuses = list(statuses or [PaymentStatus.SUCCESSFUL])
        self.initiate_error = initiate_error
        self.calls = []
        self.status_calls = 0

    async def get_token(self, provider, operation=OperationType.COLLECTION):
        provider = ProviderName.parse(provider)
        self.calls.append(("token", provider, operation))
        return AccessToken("fake-token", utcnow() + timedelta(hours=1), provider)

    async def _initiate(self, kind, provider, amount, phone, reference):
        provider = ProviderName.parse(provider)
        self.calls.append((kind, provider, amount, phone, reference))
        if self.initiate_error:
            raise self.initiate_error
        return ProviderReference(provider=provider, reference=reference)

    async def initiate_collection(self, provider, amount, phone, reference):
        return await self._initiate("collection", provider, amount, phone, reference)

    async def initiate_disbursement(self, provider, amount, phone, reference):
        return await self._initiate("disbursement", provider, amount, phone, reference)

    async def check_status(self, reference, provider, operation):
        item = self.statuses[min(self.status_calls, len(self.statuses) - 1)]
        self.status_calls += 1
        self.calls.append(("status", reference, operation))
        if isinstance(item, Exception):
            raise item
        return StatusResult(status=item, external_transaction_id="ext-1", raw_status=item.value)

    def count(self, kind):
        return sum(1 for call in self.calls if call[0] == kind)
