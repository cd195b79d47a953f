"""Integration tests for work API endpoints.

- POST /api/works/{work_id}/publish - Publish a draft work
- GET /api/works/{work_id} - Read publish/mint status
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from storymint.app import app
from storymint.models.work import WorkStatus

from .conftest import OTHER_WALLET, OWNER_WALLET


@pytest_asyncio.fixture
async def test_client(uow_factory, session_factory):
    """Provide AsyncClient for testing API endpoints with database access."""
    # Inject factories into app.state (lifespan does not run under ASGITransport)
    app.state.uow_factory = uow_factory
    app.state.session_factory = session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def wallet_header(wallet: str = OWNER_WALLET) -> dict:
    return {"X-Wallet-Address": wallet}


@pytest.mark.asyncio
class TestPublishEndpoint:
    """Test POST /api/works/{work_id}/publish."""

    async def test_publish_success(self, test_client, make_work, uow_factory):
        work = await make_work()

        response = await test_client.post(
            f"/api/works/{work.id}/publish", headers=wallet_header()
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "work_id": str(work.id)}

        async with await uow_factory() as uow:
            stored = await uow.works.get_by_id(work.id)
            events = await uow.outbox.get_by_aggregate(work.id)
        assert stored.status == WorkStatus.PUBLISHING
        assert len(events) == 1

    async def test_publish_without_wallet_is_unauthorized(self, test_client, make_work):
        work = await make_work()

        response = await test_client.post(f"/api/works/{work.id}/publish")

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert response.json()["error"] == "unauthorized"

    async def test_publish_malformed_id(self, test_client):
        response = await test_client.post("/api/works/not-a-uuid/publish", headers=wallet_header())

        assert response.status_code == 400
        assert response.json()["error"] == "validation"

    async def test_publish_unknown_work(self, test_client):
        response = await test_client.post(f"/api/works/{uuid4()}/publish", headers=wallet_header())

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    async def test_publish_foreign_work(self, test_client, make_work):
        work = await make_work(owner_wallet=OTHER_WALLET)

        response = await test_client.post(
            f"/api/works/{work.id}/publish", headers=wallet_header()
        )

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    async def test_publish_twice_conflicts(self, test_client, make_work):
        work = await make_work()

        first = await test_client.post(f"/api/works/{work.id}/publish", headers=wallet_header())
        second = await test_client.post(f"/api/works/{work.id}/publish", headers=wallet_header())

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["error"] == "conflict"
        assert "publishing" in second.json()["detail"]

    async def test_publish_without_metadata(self, test_client, make_work):
        work = await make_work(metadata_uri=None)

        response = await test_client.post(
            f"/api/works/{work.id}/publish", headers=wallet_header()
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation"


@pytest.mark.asyncio
class TestWorkStatusEndpoint:
    """Test GET /api/works/{work_id}."""

    async def test_get_draft_work(self, test_client, make_work):
        work = await make_work()

        response = await test_client.get(f"/api/works/{work.id}")

        assert response.status_code == 200
        assert response.json() == {
            "work_id": str(work.id),
            "status": "draft",
            "nft_token_id": None,
            "nft_tx_hash": None,
        }

    async def test_get_minted_work(self, test_client, make_work, uow_factory):
        work = await make_work(status=WorkStatus.PUBLISHING)
        tx_hash = "0x" + "ab" * 32
        async with await uow_factory() as uow:
            await uow.works.mark_minted(work.id, token_id=42, tx_hash=tx_hash)

        response = await test_client.get(f"/api/works/{work.id}")

        data = response.json()
        assert data["status"] == "minted"
        assert data["nft_token_id"] == "42"
        assert data["nft_tx_hash"] == tx_hash

    async def test_get_minted_work_with_uint256_token_id(self, test_client, make_work, uow_factory):
        work = await make_work(status=WorkStatus.PUBLISHING)
        token_id = 2**256 - 1
        async with await uow_factory() as uow:
            await uow.works.mark_minted(work.id, token_id=token_id, tx_hash="0x" + "cd" * 32)

        response = await test_client.get(f"/api/works/{work.id}")

        assert response.json()["nft_token_id"] == str(token_id)

    async def test_get_unknown_work(self, test_client):
        response = await test_client.get(f"/api/works/{uuid4()}")

        assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_check(test_client):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
