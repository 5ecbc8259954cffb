"""
Core pytest configuration and fixtures for POCUS AI testing.

This module provides shared test fixtures for the stores, the orchestrator and
the application shell.
"""

import tempfile
from pathlib import Path
from typing import List
from unittest.mock import MagicMock

import pytest
from pocusai.auth import CredentialStore
from pocusai.engine import Orchestrator
from pocusai.llm import LLM
from pocusai.models import MODEL_ROLE, USER_ROLE, Message
from pocusai.storage import InMemory
from pocusai.store import SessionStore
from pocusai.usage import UsageCounter

ADMIN_USERNAME = "test-admin"
ADMIN_PASSWORD = "test-admin-pw"

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg=="


# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[Message]:
    """A short adult conversation, welcome message first."""
    return [
        Message(id="welcome", role=MODEL_ROLE, text="Welcome"),
        Message(role=USER_ROLE, text="RUSH protocol for hypotension"),
        Message(role=MODEL_ROLE, text="FINDINGS: Pump, Tank, Pipes"),
    ]


@pytest.fixture
def png_data_uri() -> str:
    return PNG_DATA_URI


# ===== DIRECTORY FIXTURES =====


@pytest.fixture
def temp_dir():
    """Temporary directory for file-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ===== STORE FIXTURES =====


@pytest.fixture
def storage():
    return InMemory(prefix="pocus_ai_")


@pytest.fixture
def credentials(storage):
    store = CredentialStore(
        storage, admin_username=ADMIN_USERNAME, admin_password=ADMIN_PASSWORD
    )
    store.bootstrap()
    return store


@pytest.fixture
def sessions(storage):
    return SessionStore(storage)


@pytest.fixture
def usage(storage):
    return UsageCounter(storage)


# ===== MOCK FIXTURES =====


@pytest.fixture
def mock_llm():
    """Model boundary stub answering with a fixed text."""
    mock = MagicMock(spec=LLM)
    mock.generate.return_value = "FINDINGS: free fluid in Morison's pouch"
    return mock


@pytest.fixture
def orchestrator(mock_llm, sessions, credentials, usage):
    return Orchestrator(mock_llm, sessions, credentials, usage=usage, language="en")


# ===== APP FIXTURES =====


@pytest.fixture
def test_app():
    """A PocusAI app with in-memory storage and the Echo model."""
    from pocusai import PocusAI
    from pocusai.config import Settings
    from pocusai.llm import Echo

    settings = Settings(
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        default_language="en",
        storage_dir=None,
    )
    return PocusAI(llm=Echo(), storage=InMemory(), settings=settings)


@pytest.fixture
def client(test_app):
    """The client behind one signed-out browser tab of ``test_app``."""
    from pocusai.clients import new_token

    return test_app.clients.get(new_token(), new_token())


@pytest.fixture
def signed_in_client(client):
    assert client.auth.login(ADMIN_USERNAME, ADMIN_PASSWORD).success
    return client


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
