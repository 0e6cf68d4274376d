"""Fixtures for API tests."""

from collections.abc import AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from src.api.dependencies import get_process_invoices_use_case, get_repository, get_storage
from src.api.main import app
from src.core.entities import BatchResult


@pytest.fixture
def api_prefix() -> str:
    return "/api"


@pytest.fixture
def mock_repository():
    repository = AsyncMock()
    repository.get_by_id.return_value = None
    repository.get_all.return_value = []
    repository.count.return_value = 0
    repository.delete.return_value = True
    return repository


@pytest.fixture
def mock_storage():
    storage = MagicMock()
    storage.delete = AsyncMock(return_value=True)
    return storage


@pytest.fixture
def mock_use_case():
    use_case = MagicMock()
    use_case.process_batch = AsyncMock(return_value=BatchResult())
    return use_case


@pytest.fixture
def client(mock_repository, mock_storage, mock_use_case) -> Generator[TestClient, None, None]:
    """Test client with storage and processing replaced by mocks (no lifespan)."""
    app.dependency_overrides[get_repository] = lambda: mock_repository
    app.dependency_overrides[get_storage] = lambda: mock_storage
    app.dependency_overrides[get_process_invoices_use_case] = lambda: mock_use_case
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async client on the test's event loop, for endpoints that open the pool."""
    from src.infrastructure.storage.sqlite import close_pool

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await close_pool()
