"""Pytest configuration and shared fixtures for CostScan tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timezone


# ============================================================================
# Ensure local imports work (models/, services/, config/, validators/)
# ============================================================================
#
# Our codebase uses absolute imports like `from models...` / `from services...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def mock_settings(monkeypatch):
    """Deterministic settings and fresh process-wide state for every test."""
    from config.ai_config import get_ai_config
    from config.secrets import clear_secret_cache
    from config.settings import settings
    from services.localization_service import set_registry

    monkeypatch.setattr(settings, "ai_provider", None)
    monkeypatch.setattr(settings, "ai_model", None)
    monkeypatch.setattr(settings, "llm_temperature", 0.1)
    monkeypatch.setattr(settings, "max_upload_bytes", 50 * 1024 * 1024)
    monkeypatch.setattr(settings, "file_timeout_seconds", 120.0)
    monkeypatch.setattr(settings, "default_country", "US")
    monkeypatch.setattr(settings, "localization_config_path", None)
    monkeypatch.setattr(settings, "exchange_rate_api_url", None)
    monkeypatch.setattr(settings, "storage_bucket", None)
    monkeypatch.setattr(settings, "use_firebase_emulators", False)

    get_ai_config.cache_clear()
    clear_secret_cache()
    set_registry(None)
    yield settings
    get_ai_config.cache_clear()
    clear_secret_cache()
    set_registry(None)


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client.

    Every document in the users/{uid}/projects/{pid}/... chain resolves to the
    same document mock, so tests can configure one object.
    """
    client = MagicMock()

    collection_mock = MagicMock()
    document_mock = MagicMock()

    # Set up chain: client.collection().document().collection().document()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock
    document_mock.collection.return_value = collection_mock

    document_mock.get = AsyncMock(return_value=MagicMock(exists=False))
    document_mock.set = AsyncMock()
    document_mock.update = AsyncMock()
    document_mock.delete = AsyncMock()

    return client


@pytest.fixture
def mock_firestore_service(mock_firestore_client):
    """FirestoreService with mocked client."""
    from services.firestore_service import FirestoreService

    return FirestoreService(db=mock_firestore_client)


@pytest.fixture
def mock_bucket():
    """Mock Cloud Storage bucket whose blobs share one mock."""
    bucket = MagicMock()
    bucket.blob.return_value.download_as_bytes.return_value = b"file-bytes"
    return bucket


# ============================================================================
# In-memory Backends
# ============================================================================

@pytest.fixture
def memory_store():
    from tests.fixtures.fakes import InMemoryProjectStore

    return InMemoryProjectStore()


@pytest.fixture
def memory_storage():
    from tests.fixtures.fakes import InMemoryStorage

    return InMemoryStorage()


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_model():
    """Mock LangChain chat model."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content="Mock response content",
        usage_metadata={"total_tokens": 100},
        response_metadata={}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_model):
    """LLMService wired to the mock chat model."""
    from config.ai_config import AIProvider
    from services.llm_service import LLMService

    service = LLMService(provider=AIProvider.OPENAI, api_key="test-api-key")
    service._client = mock_chat_model
    return service


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def sample_user_id():
    return "user-1"


@pytest.fixture
def sample_project(sample_user_id):
    """Completed sample project."""
    from models.project import Project, ProjectStatus

    return Project(
        id="proj-123",
        user_id=sample_user_id,
        name="Riverside Villa",
        type="Residential",
        status=ProjectStatus.COMPLETED,
        total_cost=100950.0,
        accuracy=92.5,
        processing_time="14s",
        created_at=datetime(2024, 3, 5, 10, 30, tzinfo=timezone.utc),
        updated_at=datetime(2024, 3, 5, 10, 31, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_line_items():
    """Canonical (USD, metric) line items totalling 100,950."""
    from models.project import LineItem

    return [
        LineItem.create("Structural", "Concrete Foundation", 100, "m³", 450.0),
        LineItem.create("Civil", "Brick Work", 200, "m²", 85.0),
        LineItem.create("Structural", "Reinforcement Bars", 1000, "kg", 1.2),
        LineItem.create("Finishing", "Interior Painting", 650, "m²", 35.0),
        LineItem.create("Electrical", "Distribution Panel", 1, "unit", 15000.0),
    ]
