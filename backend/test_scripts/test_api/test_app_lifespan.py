"""
Application lifespan tests.

Startup/shutdown can run more than once in a process (e.g. one test client
after another); each startup must come up with the same state.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database

setup_test_database()

from backend.app.main import app, lifespan


@pytest.mark.asyncio
async def test_auth_listener_present_on_every_startup():
    manager = app.state.session_manager

    for _ in range(2):
        async with lifespan(app):
            assert manager.listener_count == 1
            auth_session = manager.create_session("user-1", "ama@example.com")
            assert manager.get_user_id(auth_session.session_id) == "user-1"

        assert manager.listener_count == 0
        assert manager.get_active_session_count() == 0
