"""Tests for structured logging setup."""

import json

import pytest
import structlog

from illustration_versions.config import Settings
from illustration_versions.logging_config import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_json_rendering(capsys):
    configure_logging(Settings(log_format="json", log_level="INFO"))
    structlog.get_logger().info("version_created", version_id="v-1")

    event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert event["event"] == "version_created"
    assert event["version_id"] == "v-1"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filters_events(capsys):
    configure_logging(Settings(log_format="json", log_level="WARNING"))
    structlog.get_logger().info("refresh_completed")
    assert capsys.readouterr().out == ""
