"""HTTP tests for the payment link and transaction endpoints."""

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from paylink.api.dependencies import get_notifier, get_registry
from paylink.audit.notifier import AuditTrailSink, TransactionNotifier
from paylink.config import ApiToken, settings
from paylink.database import get_session
from paylink.engine.errors import ProviderUnavailable
from paylink.main import app
from paylink.models.enums import TransactionStatus
from paylink.providers.base import Failed, RequiresAction, Success


@pytest.fixture
def audited_notifier(session_factory, sink):
    return TransactionNotifier([sink, AuditTrailSink(session_factory)])


@pytest_asyncio.fixture
async def client(session_factory, registry, audited_notifier):
    """HTTP client against the app, wired to the test database and registry."""

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_notifier] = lambda: audited_notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def tokens(monkeypatch):
    monkeypatch.setattr(settings, "api_tokens", {
        "merchant-token": ApiToken(owner_id="merchant-1", scopes=["create-transaction", "update-transaction"]),
        "other-token": ApiToken(owner_id="merchant-2", scopes=["create-transaction", "update-transaction"]),
        "read-only-token": ApiToken(owner_id="merchant-1", scopes=[]),
    })


async def _create(client, headers=None, **overrides):
    body = {"amount": "100.00", "currency": "USD", "provider": "sample", **overrides}
    return await client.post("/api/payment-links", json=body, headers=headers or {})


async def _set_status(client, transaction_id, status, headers=None):
    return await client.post(
        f"/api/transactions/{transaction_id}/status",
        json={"status": status},
        headers=headers or {},
    )


# ---------------------------------------------------------------------------
# Payment links
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_payment_link(client):
    resp = await _create(client)

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "success"
    assert data["message"] == "Payment link created successfully"
    assert data["transaction"]["status"] == "new"
    assert data["transaction"]["currency"] == "USD"
    assert data["transaction"]["payment_link"].startswith("https://example.com/payment/")


@pytest.mark.asyncio
async def test_create_accepts_payment_platform_field(client):
    resp = await client.post(
        "/api/payment-links",
        json={"amount": 25, "currency": "eur", "payment_platform": "sample"},
    )

    assert resp.status_code == 201
    assert resp.json()["transaction"]["provider"] == "sample"


@pytest.mark.asyncio
async def test_create_unknown_provider(client):
    resp = await _create(client, provider="bitcoin")

    assert resp.status_code == 422
    assert resp.json()["status"] == "error"
    assert resp.json()["error"] == "unknown provider"


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [{"amount": "0"}, {"amount": "-5"}, {"currency": "DOLLARS"}])
async def test_create_rejects_invalid_input(client, overrides):
    resp = await _create(client, **overrides)

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_provider_unavailable(client, fake_provider):
    fake_provider.link_error = ProviderUnavailable("fake", "request timed out")

    resp = await _create(client, provider="fake")

    assert resp.status_code == 502
    assert resp.json()["error"] == "provider unavailable"

    listed = await client.get("/api/transactions")
    assert listed.json() == []


# ---------------------------------------------------------------------------
# Status updates
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_full_lifecycle(client, sink):
    created = (await _create(client)).json()["transaction"]

    moved = await _set_status(client, created["id"], "processing")
    assert moved.status_code == 200
    assert moved.json()["message"] == "Transaction status updated successfully"
    assert moved.json()["transaction"]["status"] == "processing"

    completed = await _set_status(client, created["id"], "completed")
    assert completed.status_code == 200
    data = completed.json()
    assert data["status"] == "success"
    assert data["message"] == "Transaction completed successfully"
    assert data["transaction"]["status"] == "completed"
    assert "error" not in data

    assert [change[2] for change in sink.changed] == ["processing", "completed"]


@pytest.mark.asyncio
async def test_illegal_transition(client):
    created = (await _create(client)).json()["transaction"]

    resp = await _set_status(client, created["id"], "completed")

    assert resp.status_code == 422
    data = resp.json()
    assert data["status"] == "error"
    assert data["error"] == "invalid transition"
    assert data["from"] == "new"
    assert data["to"] == "completed"

    detail = (await client.get(f"/api/transactions/{created['id']}")).json()
    assert detail["status"] == "new"


@pytest.mark.asyncio
async def test_unsupported_target_status(client, make_transaction):
    transaction = await make_transaction()

    resp = await _set_status(client, transaction.id, "new")

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_success_includes_payer_details(client, make_transaction, fake_provider):
    fake_provider.outcomes = [Success(payer_name="John", amount=Decimal("100.00"), currency="USD")]
    transaction = await make_transaction()

    resp = await _set_status(client, transaction.id, "completed")

    data = resp.json()
    assert data["status"] == "success"
    assert data["payer_name"] == "John"
    assert Decimal(str(data["amount"])) == Decimal("100.00")
    assert data["currency"] == "USD"


@pytest.mark.asyncio
async def test_decline(client, make_transaction, fake_provider):
    fake_provider.outcomes = [Failed("Payment declined")]
    transaction = await make_transaction()

    resp = await _set_status(client, transaction.id, "completed")

    assert resp.status_code == 200
    assert resp.json() == {"status": "error", "error": "Payment declined"}

    detail = (await client.get(f"/api/transactions/{transaction.id}")).json()
    assert detail["status"] == "failed"


@pytest.mark.asyncio
async def test_requires_action(client, make_transaction, fake_provider):
    action = {"type": "redirect_to_url", "redirect_url": "https://hooks.stripe.com/3ds"}
    fake_provider.outcomes = [RequiresAction(action), Success()]
    transaction = await make_transaction()

    resp = await _set_status(client, transaction.id, "completed")

    assert resp.status_code == 200
    assert resp.json() == {
        "status": "requires_action",
        "message": "You need to complete one more action",
        "action": action,
    }
    detail = (await client.get(f"/api/transactions/{transaction.id}")).json()
    assert detail["status"] == "processing"

    follow_up = await _set_status(client, transaction.id, "completed")
    assert follow_up.json()["status"] == "success"


@pytest.mark.asyncio
async def test_status_provider_unavailable(client, make_transaction, fake_provider):
    fake_provider.approval_error = ProviderUnavailable("fake", "gateway returned HTTP 503", status_code=503)
    transaction = await make_transaction()

    resp = await _set_status(client, transaction.id, "completed")

    assert resp.status_code == 502
    detail = (await client.get(f"/api/transactions/{transaction.id}")).json()
    assert detail["status"] == "processing"


@pytest.mark.asyncio
async def test_unknown_transaction(client):
    resp = await _set_status(client, "doesnotexist", "processing")

    assert resp.status_code == 404
    assert resp.json()["error"] == "not found"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_filters(client, make_transaction):
    await make_transaction(status=TransactionStatus.NEW, provider="sample")
    await make_transaction(status=TransactionStatus.PROCESSING, provider="fake")

    resp = await client.get("/api/transactions", params={"status": "processing"})

    assert resp.status_code == 200
    assert [t["provider"] for t in resp.json()] == ["fake"]

    resp = await client.get("/api/transactions", params={"provider": "sample"})
    assert [t["status"] for t in resp.json()] == ["new"]


@pytest.mark.asyncio
async def test_trace(client):
    created = (await _create(client)).json()["transaction"]
    await _set_status(client, created["id"], "processing")
    await _set_status(client, created["id"], "failed")

    resp = await client.get(f"/api/transactions/{created['id']}/trace")

    assert resp.status_code == 200
    data = resp.json()
    assert data["transaction"]["status"] == "failed"
    actions = [e["action"] for e in data["audit_trail"]]
    assert actions == ["transaction_created", "status_changed", "status_changed"]
    assert data["audit_trail"][-1]["details"] == {"from": "processing", "to": "failed"}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")

    assert resp.json() == {"status": "ok", "providers": ["fake", "sample"]}


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_token(client, tokens):
    resp = await _create(client)

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_unknown_token(client, tokens):
    resp = await _create(client, headers={"Authorization": "Bearer nope"})

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_missing_scope(client, tokens):
    resp = await _create(client, headers={"Authorization": "Bearer read-only-token"})

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_transactions_are_scoped_to_owner(client, tokens):
    mine = {"Authorization": "Bearer merchant-token"}
    theirs = {"Authorization": "Bearer other-token"}

    created = await _create(client, headers=mine)
    assert created.status_code == 201
    transaction = created.json()["transaction"]
    assert transaction["owner_id"] == "merchant-1"

    assert (await client.get(f"/api/transactions/{transaction['id']}", headers=theirs)).status_code == 404
    assert (await _set_status(client, transaction["id"], "processing", headers=theirs)).status_code == 404
    assert (await client.get("/api/transactions", headers=theirs)).json() == []

    moved = await _set_status(client, transaction["id"], "processing", headers=mine)
    assert moved.status_code == 200
