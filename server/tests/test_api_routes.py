"""
HTTP surface tests through FastAPI's TestClient with dependency overrides.
"""

import hashlib
import hmac
import json
from typing import AsyncIterator, Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from eventdesk.api.dependencies.database import get_db
from eventdesk.api.dependencies.esignature import get_signature_provider
from eventdesk.api.dependencies.redis import get_redis_client
from eventdesk.core.config import clear_settings_cache
from eventdesk.core.security import create_access_token
from eventdesk.db.base import Base
from eventdesk.integrations.esignature import ProviderRejected, ProviderUnavailable
from eventdesk.main import app
from eventdesk.models.contract import Contract, ContractStatus
from eventdesk.models.webhook import WebhookDelivery


OWNER = "owner@example.com"
STRANGER = "someone-else@example.com"
WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def database(tmp_path):
    """Sync engine for seeding and asserting; the app gets an async engine on the same file."""
    path = tmp_path / "api.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    # NullPool: TestClient runs every request on its own event loop.
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    factory = async_sessionmaker(async_engine, expire_on_commit=False, class_=AsyncSession)

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield sync_engine
    sync_engine.dispose()


@pytest.fixture
def provider(mock_provider):
    async def override_provider():
        yield mock_provider

    app.dependency_overrides[get_signature_provider] = override_provider
    return mock_provider


@pytest.fixture
def redis_client() -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[True, True])
    pipe.__aenter__.return_value = pipe
    client = MagicMock()
    client.pipeline.return_value = pipe
    client.delete = AsyncMock()

    async def override_redis():
        yield client

    app.dependency_overrides[get_redis_client] = override_redis
    return client


@pytest.fixture
def client(database, redis_client, upload_dir) -> Iterator[TestClient]:
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed(engine, **overrides) -> int:
    values = {
        "title": "Master Services Agreement",
        "file_name": "msa.pdf",
        "file_reference": "/uploads/contracts/msa.pdf",
        "uploader_identity": OWNER,
        "internal_status": ContractStatus.UPLOADED,
    }
    values.update(overrides)
    with Session(engine) as session:
        contract = Contract(**values)
        session.add(contract)
        session.commit()
        return contract.id


def load(engine, contract_id: int) -> Contract:
    with Session(engine, expire_on_commit=False) as session:
        return session.get(Contract, contract_id)


def auth(identity: str = OWNER) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestGetContract:
    def test_owner_reads_contract(self, client, database):
        contract_id = seed(database)

        response = client.get(f"/contracts/{contract_id}", headers=auth())

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == contract_id
        assert body["internal_status"] == "uploaded"
        assert body["provider_document_id"] is None

    def test_requires_token(self, client, database):
        contract_id = seed(database)

        assert client.get(f"/contracts/{contract_id}").status_code == 401
        assert client.get(f"/contracts/{contract_id}", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_other_caller(self, client, database):
        contract_id = seed(database)

        response = client.get(f"/contracts/{contract_id}", headers=auth(STRANGER))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    def test_unknown(self, client):
        response = client.get("/contracts/404", headers=auth())

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "contract_not_found"


class TestSubmit:
    def test_submit(self, client, database, provider):
        contract_id = seed(database)

        response = client.post(f"/contracts/{contract_id}/submit", headers=auth())

        assert response.status_code == 200
        assert response.json() == {
            "contract_id": contract_id,
            "provider_document_id": "doc-123",
            "provider_status": "uploaded",
            "internal_status": "pending_signature_setup",
        }
        stored = load(database, contract_id)
        assert stored.internal_status is ContractStatus.PENDING_SIGNATURE_SETUP
        assert stored.provider_document_id == "doc-123"

    def test_already_submitted(self, client, database, provider):
        contract_id = seed(database, provider_document_id="doc-old")

        response = client.post(f"/contracts/{contract_id}/submit", headers=auth())

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "already_submitted"
        provider.upload_document.assert_not_awaited()

    def test_missing_file(self, client, database, provider):
        contract_id = seed(database, file_reference="/uploads/contracts/gone.pdf")

        response = client.post(f"/contracts/{contract_id}/submit", headers=auth())

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "file_unavailable"

    def test_provider_unavailable(self, client, database, provider):
        contract_id = seed(database)
        provider.upload_document.side_effect = ProviderUnavailable("timeout", error_code="provider_timeout")

        response = client.post(f"/contracts/{contract_id}/submit", headers=auth())

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["code"] == "provider_unavailable"
        assert detail["provider_error_code"] == "provider_timeout"
        assert load(database, contract_id).provider_document_id is None

    def test_document_id_already_linked(self, client, database, provider):
        seed(database, provider_document_id="doc-123")
        contract_id = seed(database)

        response = client.post(f"/contracts/{contract_id}/submit", headers=auth())

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "duplicate_provider_document"
        assert load(database, contract_id).provider_document_id is None

    def test_provider_not_configured(self, client, database):
        contract_id = seed(database)

        response = client.post(f"/contracts/{contract_id}/submit", headers=auth())

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "provider_not_configured"


class TestSignatureRequests:
    payload = {
        "signers": [
            {"fullName": "Ana Souza", "email": "ana@example.com"},
            {"full_name": "Bruno Lima", "email": "bruno@example.com"},
        ]
    }

    def test_create(self, client, database, provider):
        contract_id = seed(
            database,
            provider_document_id="doc-123",
            internal_status=ContractStatus.PENDING_SIGNATURE_SETUP,
        )

        response = client.post(f"/contracts/{contract_id}/signature-requests", json=self.payload, headers=auth())

        assert response.status_code == 200
        assert response.json() == {
            "contract_id": contract_id,
            "provider_signature_request_id": "assignment-1",
            "provider_status": "pending_signature",
            "internal_status": "pending_signatures",
        }
        assert provider.create_signer.await_count == 2

    def test_invalid_signers(self, client, database, provider):
        contract_id = seed(database, provider_document_id="doc-123")

        response = client.post(
            f"/contracts/{contract_id}/signature-requests",
            json={"signers": [{"fullName": "Ana", "email": "ana-at-example"}]},
            headers=auth(),
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "invalid_signers"
        assert detail["errors"]
        provider.create_signer.assert_not_awaited()

    def test_not_yet_submitted(self, client, database, provider):
        contract_id = seed(database)

        response = client.post(f"/contracts/{contract_id}/signature-requests", json=self.payload, headers=auth())

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "not_yet_submitted"

    def test_signed_contract_cannot_be_reopened(self, client, database, provider):
        contract_id = seed(
            database,
            provider_document_id="doc-9",
            provider_status="certificated",
            internal_status=ContractStatus.SIGNED,
        )

        response = client.post(f"/contracts/{contract_id}/signature-requests", json=self.payload, headers=auth())

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "contract_finalized"
        provider.create_signer.assert_not_awaited()
        assert load(database, contract_id).internal_status is ContractStatus.SIGNED

    def test_provider_rejects_signer(self, client, database, provider):
        contract_id = seed(
            database,
            provider_document_id="doc-123",
            internal_status=ContractStatus.PENDING_SIGNATURE_SETUP,
        )
        provider.create_signer.side_effect = ["signer-1", ProviderRejected("Invalid email", http_status=400)]

        response = client.post(f"/contracts/{contract_id}/signature-requests", json=self.payload, headers=auth())

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "provider_rejected"
        stored = load(database, contract_id)
        assert stored.internal_status is ContractStatus.PENDING_SIGNATURE_SETUP
        assert stored.provider_signature_request_id is None


def completion_body(document_id: str = "doc-123") -> bytes:
    return json.dumps(
        {
            "event": "document_ready",
            "data": {
                "document": {
                    "id": document_id,
                    "status": "certificated",
                    "artifacts": {"certificated": "https://files.example.com/c.pdf"},
                }
            },
        }
    ).encode()


class TestAssinafyWebhook:
    def test_completion_signs_contract(self, client, database):
        contract_id = seed(
            database,
            provider_document_id="doc-123",
            internal_status=ContractStatus.PENDING_SIGNATURES,
        )

        response = client.post("/webhooks/assinafy", content=completion_body())

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "outcome": "applied"}
        stored = load(database, contract_id)
        assert stored.internal_status is ContractStatus.SIGNED
        assert stored.provider_certified_url == "https://files.example.com/c.pdf"
        with Session(database) as session:
            assert len(session.execute(select(WebhookDelivery)).scalars().all()) == 1

    def test_unknown_document_is_acknowledged(self, client, database):
        response = client.post("/webhooks/assinafy", content=completion_body("doc-nobody"))

        assert response.status_code == 200
        assert response.json()["outcome"] == "unknown_document"

    def test_malformed_payload(self, client, database):
        response = client.post("/webhooks/assinafy", content=b"not json")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "malformed_payload"

    def test_missing_document_id(self, client, database):
        response = client.post("/webhooks/assinafy", json={"event": "document_ready"})

        assert response.status_code == 400

    def test_duplicate_delivery_short_circuits(self, client, database, redis_client):
        contract_id = seed(database, provider_document_id="doc-123")
        redis_client.pipeline.return_value.execute.return_value = [False, True]

        response = client.post("/webhooks/assinafy", content=completion_body())

        assert response.status_code == 200
        assert response.json() == {"status": "duplicate"}
        assert load(database, contract_id).internal_status is ContractStatus.UPLOADED


class TestWebhookSignature:
    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setenv("ASSINAFY_WEBHOOK_SECRET", WEBHOOK_SECRET)
        clear_settings_cache()

    def test_valid_signature(self, client, database):
        seed(database, provider_document_id="doc-123")
        body = completion_body()
        signature = hmac.new(WEBHOOK_SECRET.encode(), b"1760868000." + body, hashlib.sha256).hexdigest()

        response = client.post(
            "/webhooks/assinafy",
            content=body,
            headers={"X-Assinafy-Signature": signature, "X-Assinafy-Timestamp": "1760868000"},
        )

        assert response.status_code == 200

    def test_bad_signature(self, client, database):
        contract_id = seed(database, provider_document_id="doc-123")

        response = client.post(
            "/webhooks/assinafy",
            content=completion_body(),
            headers={"X-Assinafy-Signature": "0" * 64},
        )

        assert response.status_code == 401
        assert load(database, contract_id).internal_status is ContractStatus.UPLOADED

    def test_missing_signature(self, client, database):
        response = client.post("/webhooks/assinafy", content=completion_body())

        assert response.status_code == 401


def test_processing_error_survives_failed_lock_release(client, database, redis_client):
    redis_client.delete.side_effect = RedisConnectionError("redis went away")

    with patch(
        "eventdesk.api.routes.webhooks.process_event",
        AsyncMock(side_effect=RuntimeError("database unavailable")),
    ):
        with patch("eventdesk.api.routes.webhooks.logger") as mock_logger:
            with pytest.raises(RuntimeError, match="database unavailable"):
                client.post("/webhooks/assinafy", content=completion_body())

    redis_client.delete.assert_awaited_once()
    assert mock_logger.warning.call_args.args[0] == "webhook.dedupe_release_failed"


def test_run_serves_the_application():
    from eventdesk import main

    with patch("eventdesk.main.uvicorn.run") as mock_run:
        main.run()

    mock_run.assert_called_once_with("eventdesk.main:app", host="0.0.0.0", port=8000, log_config=None)
