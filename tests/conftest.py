"""
Pytest configuration and shared fixtures for the fund analytics tests.
"""

import os
from unittest.mock import patch

import pytest

from fund_analytics import create_app
from fund_analytics.config import reset_global_settings


@pytest.fixture
def app():
    """Create an application configured for testing."""
    with patch.dict(os.environ, {"APP_ENV": "testing", "LOG_LEVEL": "WARNING"}):
        reset_global_settings()
        application = create_app()
        yield application
    reset_global_settings()


@pytest.fixture
def client(app):
    """Test client for the application."""
    return app.test_client()
