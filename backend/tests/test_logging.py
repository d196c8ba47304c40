"""
Tests for the structlog processors added on top of the stock setup.
"""

from eventease.core.config import Settings
from eventease.core.logging import _service_context


def test_service_context_stamps_events():
    settings = Settings(ENVIRONMENT="production")
    add_context = _service_context(settings)

    event = add_context(None, "info", {"event": "registration_created"})

    assert event["service"] == settings.APP_NAME
    assert event["env"] == "production"


def test_service_context_keeps_explicit_fields():
    settings = Settings(ENVIRONMENT="staging")
    add_context = _service_context(settings)

    event = add_context(None, "info", {"event": "x", "env": "override"})

    assert event["env"] == "override"
    assert event["service"] == settings.APP_NAME
