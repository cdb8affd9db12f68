"""Shared test fixtures."""

from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from paylink.audit.notifier import TransactionNotifier
from paylink.database import init_db
from paylink.models.enums import TransactionStatus
from paylink.models.transaction import Transaction
from paylink.providers.base import PaymentLink, PaymentProvider, Success
from paylink.providers.registry import ProviderRegistry
from paylink.providers.sample import SampleProvider


class FakeProvider(PaymentProvider):
    """Scriptable adapter: returns queued outcomes and records every call."""

    def __init__(self, name: str = "fake", outcomes=None):
        self._name = name
        self.outcomes = list(outcomes or [Success()])
        self.link_requests = []
        self.approval_calls = []
        self.link_error: Optional[Exception] = None
        self.approval_error: Optional[Exception] = None
        self.during_approval = None  # async callable run once while the gateway call is in flight

    @property
    def name(self) -> str:
        return self._name

    async def create_payment_link(self, request):
        self.link_requests.append(request)
        if self.link_error:
            raise self.link_error
        return PaymentLink(url=f"https://pay.example/{self._name}/ref-1", reference="ref-1")

    async def resolve_approval(self, reference):
        self.approval_calls.append(reference)
        if self.during_approval:
            hook, self.during_approval = self.during_approval, None
            await hook()
        if self.approval_error:
            raise self.approval_error
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class RecordingSink:
    def __init__(self):
        self.created = []
        self.changed = []

    async def transaction_created(self, transaction):
        self.created.append(transaction.id)

    async def status_changed(self, transaction, old_status, new_status):
        self.changed.append((transaction.id, old_status, new_status))


@pytest_asyncio.fixture
async def engine():
    """A fresh in-memory database per test, shared by every session of that test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def registry(fake_provider):
    registry = ProviderRegistry()
    registry.register("fake", lambda: fake_provider)
    registry.register("sample", SampleProvider)
    return registry


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier(sink):
    return TransactionNotifier([sink])


@pytest.fixture
def make_transaction(db_session):
    """Persist a transaction directly in a given status."""

    async def _make(
        status: TransactionStatus = TransactionStatus.PROCESSING,
        provider: str = "fake",
        pending_reference: Optional[str] = "ref-1",
        amount: Decimal = Decimal("100.00"),
        currency: str = "USD",
        owner_id: Optional[str] = None,
    ) -> Transaction:
        transaction = Transaction(
            amount=amount,
            currency=currency,
            provider=provider,
            owner_id=owner_id,
            status=TransactionStatus(status).value,
            payment_link=f"https://pay.example/{provider}/{pending_reference}",
            pending_reference=pending_reference,
        )
        db_session.add(transaction)
        await db_session.commit()
        return transaction

    return _make
