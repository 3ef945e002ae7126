# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies.clock import get_now
from app.api.dependencies.repository import get_repository
from app.main import create_app
from app.services.mentorship_repository import MentorshipRepository
from tests.factories import FIXED_NOW, FakeBaseQLClient


@pytest.fixture
def baseql() -> FakeBaseQLClient:
    """
    In-memory BaseQL backing the API under test. Tests seed `sessions` /
    `tasks` on it before issuing requests.
    """
    return FakeBaseQLClient()


@pytest.fixture
def client(baseql: FakeBaseQLClient) -> TestClient:
    """
    TestClient over a fresh app whose repository talks to the fake BaseQL
    client and whose clock is pinned to FIXED_NOW.
    """
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: MentorshipRepository(baseql)
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    with TestClient(app) as test_client:
        yield test_client
