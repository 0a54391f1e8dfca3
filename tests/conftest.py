import pytest
from httpx import ASGITransport, AsyncClient

from app.core.store import MemoryStore, get_store


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
async def client(store, anyio_backend):
    from app.main import app

    app.dependency_overrides[get_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
