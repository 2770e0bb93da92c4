# backend/tests/conftest.py
"""
Pytest configuration for Olimpo Gym backend tests.

- Ensures that the project root (backend/) is added to sys.path
  so that `import olimpo_gym.*` works correctly in tests.
- Ensures required environment variables for tests are set
  with safe dummy values (e.g., SUPABASE_URL, SUPABASE_SERVICE_KEY).
- Clears cached settings / singletons between tests.
"""

import os
import sys
from pathlib import Path

import pytest


def _ensure_project_root_in_sys_path() -> None:
    # This file is located at: backend/tests/conftest.py
    # parents[1] -> backend/
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)

    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)


def _ensure_test_env_vars() -> None:
    """
    Set dummy environment variables required for tests.

    These values are only for local testing and do NOT contain real secrets.
    """
    os.environ.setdefault("SUPABASE_URL", "https://dummy-project.supabase.co")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "dummy-service-key-for-tests")
    os.environ.setdefault("ENVIRONMENT", "local")


_ensure_project_root_in_sys_path()
_ensure_test_env_vars()


@pytest.fixture(autouse=True)
def _reset_cached_settings():
    from olimpo_gym.db.config import get_supabase_config
    from olimpo_gym.memberships.config import get_membership_settings
    from olimpo_gym.notifications.config import get_notification_settings
    from olimpo_gym.utils.config import get_app_settings

    caches = (
        get_app_settings,
        get_supabase_config,
        get_membership_settings,
        get_notification_settings,
    )
    for cached in caches:
        cached.cache_clear()
    yield
    for cached in caches:
        cached.cache_clear()


@pytest.fixture(autouse=True)
def _reset_singletons():
    yield
    from olimpo_gym.db.state import reset_state
    from olimpo_gym.memberships.factory import reset_membership_service
    from olimpo_gym.notifications.factory import reset_notification_service

    reset_membership_service()
    reset_notification_service()
    reset_state()
