"""HTTP-level tests: auth, validation, error envelope and one full request path.

Services are rebuilt over in-memory fakes and the DB session dependency is
overridden, so no database is needed.
"""

from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from jose import jwt

from config.settings import settings
from src.main import app
from src.rb_common.database import get_db_session
from src.rb_ledger.application.service import LedgerApplicationService
from src.rb_ledger.domain.engine import LedgerEngine
from tests.unit.fakes import FakeLedgerRepository, FakeSession, FakeStreamerDirectory, RecordingPublisher


def _auth(sub: str, role: str = "user") -> dict[str, str]:
    token = jwt.encode(
        {"sub": sub, "role": role, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def ledger(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeLedgerRepository]:
    repo = FakeLedgerRepository()
    repo.add_user("u1")
    streamers = FakeStreamerDirectory()
    streamers.add("s1", "owner-1", is_live=True)
    service = LedgerApplicationService(
        LedgerEngine(repo, streamers), repo, streamers, RecordingPublisher()
    )
    monkeypatch.setattr("src.rb_ledger.api.router._service", service)
    app.dependency_overrides[get_db_session] = lambda: FakeSession(repo)
    yield repo
    app.dependency_overrides.pop(get_db_session, None)


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0"}


class TestAuth:
    @pytest.mark.asyncio
    async def test_wallet_requires_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/wallet")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_mint_requires_admin(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/admin/rubis/mint", json={"user_id": "u1", "amount": 5}, headers=_auth("u1")
        )
        assert resp.status_code == 403
        body = resp.json()
        assert body["code"] == 4030
        assert body["data"] is None
        assert body["request_id"].startswith("req_")

    @pytest.mark.asyncio
    async def test_audit_requires_admin(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/admin/ledger/audit", headers=_auth("u1", "streamer"))
        assert resp.status_code == 403


class TestValidation:
    @pytest.mark.asyncio
    async def test_non_positive_amount(self, client: AsyncClient, ledger: FakeLedgerRepository) -> None:
        resp = await client.post(
            "/api/v1/admin/rubis/mint",
            json={"user_id": "u1", "amount": 0},
            headers=_auth("admin-1", "admin"),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_spend_kind(self, client: AsyncClient, ledger: FakeLedgerRepository) -> None:
        resp = await client.post(
            "/api/v1/wallet/spend",
            json={"amount": 1, "kind": "gift", "purpose": "x"},
            headers=_auth("u1"),
        )
        assert resp.status_code == 422


class TestLedgerFlow:
    @pytest.mark.asyncio
    async def test_mint_spend_and_read_wallet(
        self, client: AsyncClient, ledger: FakeLedgerRepository
    ) -> None:
        resp = await client.post(
            "/api/v1/admin/rubis/mint",
            json={"user_id": "u1", "amount": 10},
            headers=_auth("admin-1", "admin"),
        )
        assert resp.status_code == 200
        minted = resp.json()["data"]
        assert minted["weight_bp"] == 10_000
        assert minted["balance_after"] == 10

        resp = await client.post(
            "/api/v1/wallet/spend",
            json={"amount": 4, "kind": "support", "purpose": "gift", "beneficiary_id": "s1"},
            headers=_auth("u1"),
        )
        assert resp.status_code == 200
        spent = resp.json()["data"]
        assert spent["spent"] == 4
        assert spent["support_value"] == 4
        assert spent["balance_after"] == 6

        resp = await client.get("/api/v1/wallet", headers=_auth("u1"))
        wallet = resp.json()["data"]
        assert wallet["balance"] == 6
        assert wallet["weighted_value"] == 6

    @pytest.mark.asyncio
    async def test_overspend_returns_error_envelope(
        self, client: AsyncClient, ledger: FakeLedgerRepository
    ) -> None:
        resp = await client.post(
            "/api/v1/wallet/spend",
            json={"amount": 3, "kind": "sink", "purpose": "wheel_spin"},
            headers=_auth("u1"),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 3001

    @pytest.mark.asyncio
    async def test_unknown_user_wallet(self, client: AsyncClient, ledger: FakeLedgerRepository) -> None:
        resp = await client.get("/api/v1/wallet", headers=_auth("ghost"))
        assert resp.status_code == 404
        assert resp.json()["code"] == 2001
