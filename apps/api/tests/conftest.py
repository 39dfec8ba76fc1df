import hashlib
import hmac
import json
import time
import uuid
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from database import Base, build_engine, get_db
from main import app
from models.enums import CreditTransactionType
from models.flux_job import FluxData
from routers import rate_limit
from services.credits import adjust_credit, append_ledger_entry, get_account
from services.flux_client import get_flux_client
from services.session_token import create_session_token


TEST_WEBHOOK_SECRET = "whsec_test_secret_for_ledger"


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit.reset_local_windows()
    yield
    rate_limit.reset_local_windows()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def webhook_secret():
    with patch.object(settings, "STRIPE_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET):
        yield TEST_WEBHOOK_SECRET


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_flux_client, None)


@pytest.fixture
def auth_header():
    def _build(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_session_token(user_id)}"}

    return _build


@pytest.fixture
def seed_credit(session_maker):
    """Grant credits through the account store so the ledger stays balanced."""

    async def _seed(user_id: str, amount: int) -> int:
        async with session_maker() as session:
            account = await get_account(user_id, session)
            balance = await adjust_credit(account.id, amount, session)
            await append_ledger_entry(
                session,
                user_id=user_id,
                credit=amount,
                balance=balance,
                entry_type=CreditTransactionType.CHARGE,
            )
            await session.commit()
            return balance

    return _seed


@pytest.fixture
def sign_webhook():
    def _sign(payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = int(timestamp if timestamp is not None else time.time())
        digest = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def stripe_event():
    def _build(event_type: str, metadata: dict, intent_id: str = "pi_test_1") -> str:
        return json.dumps(
            {
                "id": f"evt_{uuid.uuid4().hex[:12]}",
                "object": "event",
                "type": event_type,
                "data": {
                    "object": {
                        "id": intent_id,
                        "object": "payment_intent",
                        "amount": 999,
                        "currency": "usd",
                        "metadata": metadata,
                    }
                },
            }
        )

    return _build


class FakeFluxClient:
    """Stands in for the provider: records the task in the shared database like the real one."""

    def __init__(self, session_maker, *, write_record: bool = True, error: Exception | None = None):
        self.session_maker = session_maker
        self.write_record = write_record
        self.error = error
        self.calls = []

    async def create_task(self, request) -> str:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        replicate_id = f"rep-{len(self.calls)}-{uuid.uuid4().hex[:8]}"
        if self.write_record:
            async with self.session_maker() as session:
                session.add(
                    FluxData(
                        user_id=request.user_id,
                        replicate_id=replicate_id,
                        model=request.model,
                        input_prompt=request.input_prompt,
                        aspect_ratio=request.aspect_ratio,
                        is_private=request.is_private,
                        locale=request.locale,
                    )
                )
                await session.commit()
        return replicate_id


@pytest.fixture
def fake_flux(session_maker):
    def _build(**kwargs) -> FakeFluxClient:
        client = FakeFluxClient(session_maker, **kwargs)
        app.dependency_overrides[get_flux_client] = lambda: client
        return client

    yield _build
    app.dependency_overrides.pop(get_flux_client, None)
