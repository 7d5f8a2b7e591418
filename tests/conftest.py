"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Configuration:
    Tests read the real YAML files under config/settings/, located through
    the .project_root marker. Run pytest from the project root.
"""

from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from modules.spark.core.concurrency import reset_semaphores
from modules.spark.core.config import get_app_config, get_settings
from modules.spark.schemas.note import RemoteNoteRecord

PROJECT_ROOT = Path(__file__).parent.parent

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_semaphores() -> Generator[None, None, None]:
    """Named semaphores are module globals; start every test without them."""
    reset_semaphores()
    yield
    reset_semaphores()


@pytest.fixture
def clear_config_cache() -> Generator[None, None, None]:
    """Clear lru_cache so a test gets a fresh configuration load."""
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


# =============================================================================
# Record Factory
# =============================================================================


def make_record(
    remote_id: str,
    content: str = "Note",
    *,
    owner_id: str = "user-1",
    minutes: int = 0,
    is_task: bool = False,
    completed: bool = False,
    categories: list[str] | None = None,
) -> RemoteNoteRecord:
    """Build a remote record created ``minutes`` after BASE_TIME."""
    created = BASE_TIME + timedelta(minutes=minutes)
    return RemoteNoteRecord(
        remote_id=remote_id,
        owner_id=owner_id,
        content=content,
        is_task=is_task,
        completed=completed,
        categories=categories or ["general"],
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def record_factory():
    """Expose make_record to tests that prefer fixture injection."""
    return make_record
