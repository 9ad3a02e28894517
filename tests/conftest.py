"""Shared test fixtures for kryten-foldingbot."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from kryten_foldingbot.command_handler import FoldingCommandHandler
from kryten_foldingbot.config import FoldingBotConfig
from kryten_foldingbot.folding_client import FoldingApiClient


# ── Minimal config dict matching FoldingBotConfig schema ─────

def make_config_dict(**overrides) -> dict:
    """Build a valid config dict with sensible test defaults."""
    base = {
        "nats": {"servers": ["nats://localhost:4222"]},
        "channels": [{"domain": "cytu.be", "channel": "testchannel"}],
        "bot": {"username": "TestBot"},
        "folding": {
            "api_uri": "https://stats.test.com",
            "download_url": "https://fah.test.com/download",
            "home_url": "https://fah.test.com",
        },
        "commands": {"chat_max_length": 240, "send_interval": 0, "reply_on_error": False},
        "admin": {"owner_level": 3},
        "ignored_users": ["IgnoredBot"],
        "development": False,
    }
    base.update(overrides)
    return base


def make_event(
    username: str,
    message: str,
    channel: str = "testchannel",
    rank: int = 1,
) -> MagicMock:
    """Create a mock ChatMessageEvent for chat/PM testing."""
    event = MagicMock()
    event.username = username
    event.message = message
    event.channel = channel
    event.domain = "cytu.be"
    event.timestamp = "2026-01-01T00:00:00"
    event.rank = rank
    return event


def make_response(body, status: int = 200) -> AsyncMock:
    """Simulate an aiohttp response usable as ``async with session.get(...)``."""
    mock_resp = AsyncMock()
    mock_resp.status = status
    text = body if isinstance(body, str) else json.dumps(body)
    mock_resp.text = AsyncMock(return_value=text)
    mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
    mock_resp.__aexit__ = AsyncMock(return_value=False)
    return mock_resp


def make_session(response) -> MagicMock:
    mock_session = MagicMock()
    mock_session.get = MagicMock(return_value=response)
    mock_session.close = AsyncMock()
    return mock_session


@pytest.fixture
def sample_config_dict() -> dict:
    """Return a config dict suitable for tests."""
    return make_config_dict()


@pytest.fixture
def sample_config(sample_config_dict: dict) -> FoldingBotConfig:
    """Return a parsed FoldingBotConfig."""
    return FoldingBotConfig(**sample_config_dict)


@pytest.fixture
def dev_config() -> FoldingBotConfig:
    """Config with development commands switched on."""
    return FoldingBotConfig(**make_config_dict(development=True))


@pytest.fixture
def mock_client() -> MagicMock:
    """Return a mock KrytenClient with async methods."""
    client = MagicMock()
    client.send_pm = AsyncMock(return_value="corr-id-123")
    client.send_chat = AsyncMock(return_value="corr-id-456")
    client.get_user = AsyncMock(return_value=None)
    client.connect = AsyncMock()
    client.run = AsyncMock()
    client.stop = AsyncMock()
    return client


@pytest.fixture
def mock_api_client() -> MagicMock:
    """Mock FoldingApiClient with async methods."""
    client = MagicMock(spec=FoldingApiClient)
    client.get_user_stats = AsyncMock(return_value="stats reply")
    client.lookup_user = AsyncMock(return_value="lookup reply")
    client.start = AsyncMock()
    client.stop = AsyncMock()
    client.failures = 0
    return client


@pytest.fixture
def api_client(sample_config: FoldingBotConfig) -> FoldingApiClient:
    """Real FoldingApiClient; tests swap in a mock session."""
    return FoldingApiClient(sample_config.folding, logging.getLogger("test.api"))


@pytest.fixture
def handler(
    sample_config: FoldingBotConfig,
    mock_client: MagicMock,
    mock_api_client: MagicMock,
) -> FoldingCommandHandler:
    """FoldingCommandHandler with mocked collaborators."""
    return FoldingCommandHandler(
        config=sample_config,
        client=mock_client,
        api_client=mock_api_client,
        logger=logging.getLogger("test.cmd"),
    )
