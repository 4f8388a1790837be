"""Shared fixtures for the PHI redaction test suite."""

import random
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from phi_redaction.core.exceptions import PersistenceError  # noqa: E402
from phi_redaction.engine.scoring import create_default_model  # noqa: E402
from phi_redaction.service.config import Settings  # noqa: E402
from phi_redaction.service.pipeline import PHIDetectionService  # noqa: E402
from phi_redaction.service.storage import KeyValueStorage, MemoryStorage  # noqa: E402


class FailingStorage(KeyValueStorage):
    """Storage whose every operation fails."""

    def get(self, key):
        raise PersistenceError("read failed")

    def set(self, key, value):
        raise PersistenceError("write failed")

    def delete(self, key):
        raise PersistenceError("delete failed")


@pytest.fixture
def rng():
    """Seeded random source for reproducible shuffles."""
    return random.Random(1234)


@pytest.fixture
def default_model():
    return create_default_model()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def test_settings():
    """Settings with small pretraining corpora and no startup pretraining."""
    return Settings(
        storage_backend="memory",
        corpus_sources=["http://example.invalid/rows"],
        fetch_timeout=1.0,
        max_pretrain_notes=20,
        synthetic_note_count=20,
        pretrain_on_startup=False,
        shuffle_seed=7,
    )


@pytest.fixture
def offline_fetcher():
    """Corpus fetcher that never returns notes."""
    calls = []

    def fetch(sources, timeout):
        calls.append(list(sources))
        return []

    fetch.calls = calls
    return fetch


@pytest.fixture
def service(memory_storage, test_settings, offline_fetcher, rng):
    """Initialized service with default weights and an empty training store."""
    svc = PHIDetectionService(
        memory_storage, settings=test_settings, fetcher=offline_fetcher, rng=rng
    )
    svc.initialize()
    return svc
