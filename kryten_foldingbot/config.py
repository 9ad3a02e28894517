"""Configuration system for kryten-foldingbot.

Pydantic models layered on top of KrytenConfig (which already carries the
NATS, channel and metrics sections) and a YAML loader with ``${VAR}``
expansion.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from kryten import KrytenConfig
from pydantic import BaseModel, Field


class BotConfig(BaseModel):
    username: str = "FoldingBot"
    display_name: str | None = Field(
        default=None,
        description="Name shown in help usage; defaults to username",
    )

    @property
    def help_name(self) -> str:
        return self.display_name or self.username


class FoldingConfig(BaseModel):
    api_uri: str = "http://localhost:5000"
    download_url: str = "https://foldingathome.org/start-folding/"
    home_url: str = "https://foldingathome.org/"


class CommandsConfig(BaseModel):
    chat_max_length: int = Field(default=240, description="Platform single-message limit")
    send_interval: float = Field(default=1.0, description="Seconds between chunks of a split reply")
    reply_on_error: bool = False
    error_message: str = "Something went wrong processing your command."


class AdminConfig(BaseModel):
    owner_level: int = 4


class FoldingBotConfig(KrytenConfig):
    """Full bot config — extends KrytenConfig with the bot's own sections."""

    bot: BotConfig = Field(default_factory=BotConfig)
    folding: FoldingConfig = Field(default_factory=FoldingConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)
    ignored_users: list[str] = Field(default_factory=list)
    development: bool = False
    # NOTE: metrics is inherited from KrytenConfig (kryten.config.MetricsConfig)


# ═══════════════════════════════════════════════════════════════
#  Config Loading
# ═══════════════════════════════════════════════════════════════

def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(obj, str):
        return re.sub(
            r"\$\{([^}:]+)(?::-(.*?))?\}",
            lambda m: os.environ.get(m.group(1), m.group(2) or ""),
            obj,
        )
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def load_config(config_path: str) -> FoldingBotConfig:
    """Load and validate YAML config file into FoldingBotConfig."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a YAML mapping at the top level.")

    raw = _expand_env_vars(raw)
    return FoldingBotConfig(**raw)
