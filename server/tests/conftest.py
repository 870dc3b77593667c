"""
Shared test configuration and fixtures for the Event Desk test suite.
"""

from typing import AsyncIterator, Iterator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventdesk.core.config import clear_settings_cache
from eventdesk.db.base import Base
from eventdesk.integrations.esignature import ESignatureProvider, UploadedDocument
from eventdesk.models.contract import Contract, ContractStatus


OWNER = "owner@example.com"
STRANGER = "someone-else@example.com"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path) -> Iterator[None]:
    """Point settings at throwaway resources and reset the cache around each test."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-for-testing-only")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/15")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    for name in (
        "ASSINAFY_API_BASE_URL",
        "ASSINAFY_API_KEY",
        "ASSINAFY_ACCOUNT_ID",
        "ASSINAFY_WEBHOOK_SECRET",
        "ASSINAFY_REQUIRE_WEBHOOK_SIGNATURE",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def upload_dir(tmp_path):
    root = tmp_path / "uploads"
    (root / "contracts").mkdir(parents=True)
    (root / "contracts" / "msa.pdf").write_bytes(b"%PDF-1.4 master services agreement")
    return root


@pytest.fixture
def make_contract(db_session):
    async def _make(**overrides) -> Contract:
        values = {
            "title": "Master Services Agreement",
            "file_name": "msa.pdf",
            "file_reference": "/uploads/contracts/msa.pdf",
            "uploader_identity": OWNER,
            "internal_status": ContractStatus.UPLOADED,
        }
        values.update(overrides)
        contract = Contract(**values)
        db_session.add(contract)
        await db_session.commit()
        await db_session.refresh(contract)
        return contract

    return _make


@pytest.fixture
def mock_provider() -> AsyncMock:
    """Provider double that succeeds unless a test says otherwise."""
    provider = AsyncMock(spec=ESignatureProvider)
    provider.upload_document.return_value = UploadedDocument(
        provider_document_id="doc-123",
        provider_status="uploaded",
        original_artifact_url="https://files.example.com/doc-123/original.pdf",
    )
    provider.create_signer.side_effect = ["signer-1", "signer-2", "signer-3"]
    provider.create_signature_assignment.return_value = "assignment-1"
    return provider
