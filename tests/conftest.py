import pytest

from batch_replay.config_schema import ApiConfig


@pytest.fixture
def make_config():
    def _make(**overrides):
        data = {"api_endpoint": "https://api.example.com", "method": "POST"}
        data.update(overrides)
        return ApiConfig(**data)
    return _make


@pytest.fixture
def messages():
    """Collects diagnostics passed to a `log` callable."""
    return []
