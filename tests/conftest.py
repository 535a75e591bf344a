import pytest
import httpx
from fastapi.testclient import TestClient

from server import app
from services.share_registry import MemoryShareRegistry
from utils.config import Settings, get_settings
from utils.database import get_registry


@pytest.fixture
def registry():
    return MemoryShareRegistry()


@pytest.fixture
def settings():
    return Settings(registry_backend="memory", teacher_password="school123")


@pytest.fixture
def test_app(registry, settings):
    """The FastAPI app wired to a fresh in-memory registry"""
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_settings] = lambda: settings
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def api(test_app):
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
async def http_client(test_app):
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def class_payload():
    """Builder for a published class body in wire format"""
    def _build(**overrides):
        data = {
            "id": "1700000000000",
            "name": "Grade 5-A",
            "createdAt": 1700000000000,
            "students": [
                {"id": "1", "name": "Aarav Patel", "rollNo": "01"},
                {"id": "2", "name": "Bianca Rossi", "rollNo": "02"},
            ],
            "attendance": {"March": {"1": {"3": "P", "4": "A"}}},
            "holidays": {"March": [5]},
        }
        data.update(overrides)
        return data

    return _build
