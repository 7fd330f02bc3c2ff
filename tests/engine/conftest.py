"""Fixtures for the adherence engine tests."""
import pytest


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations():
    """Engine tests run without a Home Assistant instance."""
    yield
