"""
Root conftest.py for all backend tests.

This file makes fixtures available to all test files across all apps.
"""
import pytest


# ============================================================================
# AUTO-USE FIXTURES (Run automatically for every test)
# ============================================================================

@pytest.fixture(autouse=True)
def reset_app_settings():
    """
    Drop cached GlobalSettings values before each test.

    The AppSettings singleton outlives the per-test transaction rollback;
    without this a business name saved in one test leaks into the next.
    """
    from settings.config import app_settings

    app_settings.invalidate()
    yield
    app_settings.invalidate()


@pytest.fixture(autouse=True)
def reset_print_service():
    """Make sure no test leaves a process-wide PrintService behind."""
    from printing.services import set_print_service

    yield
    set_print_service(None)


@pytest.fixture
def in_memory_channel_layer(settings):
    """Fresh in-memory channel layer for tests that inspect group messages."""
    from channels.layers import channel_layers

    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    channel_layers.backends.clear()
    yield channel_layers["default"]
    channel_layers.backends.clear()


# ============================================================================
# IMPORT ALL FIXTURES FROM core_backend/tests/fixtures.py
# ============================================================================
from core_backend.tests.fixtures import *  # noqa: E402,F401,F403
