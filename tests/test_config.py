"""Tests for kryten_foldingbot.config module."""

from __future__ import annotations

import pytest
import yaml

from kryten_foldingbot.config import (
    BotConfig,
    CommandsConfig,
    FoldingBotConfig,
    _expand_env_vars,
    load_config,
)


class TestFoldingBotConfig:
    """Test FoldingBotConfig model parsing and validation."""

    def test_minimal_config(self):
        """Config with only required fields (nats, channels) should parse."""
        cfg = FoldingBotConfig(
            nats={"servers": ["nats://localhost:4222"]},
            channels=[{"domain": "cytu.be", "channel": "test"}],
        )
        assert cfg.bot.username == "FoldingBot"
        assert cfg.admin.owner_level == 4
        assert cfg.development is False
        assert cfg.commands.reply_on_error is False

    def test_full_config(self, sample_config_dict: dict):
        cfg = FoldingBotConfig(**sample_config_dict)
        assert cfg.folding.api_uri == "https://stats.test.com"
        assert cfg.bot.username == "TestBot"
        assert cfg.ignored_users == ["IgnoredBot"]
        assert cfg.channels[0].channel == "testchannel"

    def test_help_name_defaults_to_username(self):
        assert BotConfig(username="Folder").help_name == "Folder"
        assert BotConfig(username="Folder", display_name="Fold Bot").help_name == "Fold Bot"

    def test_commands_defaults(self):
        cc = CommandsConfig()
        assert cc.chat_max_length == 240
        assert cc.error_message


class TestEnvExpansion:
    def test_expands_set_variable(self, monkeypatch):
        monkeypatch.setenv("FOLDING_API", "https://api.example.org")
        assert _expand_env_vars("${FOLDING_API}") == "https://api.example.org"

    def test_uses_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert _expand_env_vars("${MISSING_VAR:-fallback}") == "fallback"

    def test_recurses_into_containers(self, monkeypatch):
        monkeypatch.setenv("BOT", "Folder")
        result = _expand_env_vars({"bot": {"username": "${BOT}"}, "list": ["${BOT}", 3]})
        assert result == {"bot": {"username": "Folder"}, "list": ["Folder", 3]}


class TestLoadConfig:
    def test_load_yaml(self, tmp_path, sample_config_dict: dict, monkeypatch):
        monkeypatch.setenv("TEST_API_URI", "https://env.test.com")
        sample_config_dict["folding"]["api_uri"] = "${TEST_API_URI}"
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(sample_config_dict), encoding="utf-8")

        cfg = load_config(str(path))
        assert cfg.folding.api_uri == "https://env.test.com"
        assert cfg.bot.username == "TestBot"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(str(path))
