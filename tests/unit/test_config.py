"""Unit tests for configuration loading."""

from pathlib import Path

import pytest

from modmail.config import load_config, require_runtime
from modmail.core.errors import ConfigurationError

_ENV_VARS = ("DISCORD_TOKEN", "DISCORD_GUILD_ID", "FORUM_CHANNEL_ID", "ROLE_ID", "MODMAIL_LOG_LEVEL", "MODMAIL_CONFIG_PATH")

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "modmail.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_reads_yaml_and_expands_env(tmp_path, monkeypatch):
    monkeypatch.setenv("MY_TOKEN", "secret-token")
    path = _write(
        tmp_path,
        """
discord:
  token: ${MY_TOKEN}
  guild_id: 1
  forum_channel_id: 2
  staff_role_id: 3
relay:
  history_window: 50
""",
    )

    config = load_config(path)

    assert config.discord.token == "secret-token"
    assert config.discord.forum_channel_id == 2
    assert config.discord.staff_role_id == 3
    assert config.relay.history_window == 50
    assert config.relay.attachment_placeholder == "Sent an attachment"


def test_environment_overrides_file_values(tmp_path, monkeypatch):
    path = _write(tmp_path, "discord:\n  forum_channel_id: 2\n  staff_role_id: 3\n")
    monkeypatch.setenv("DISCORD_TOKEN", "env-token")
    monkeypatch.setenv("FORUM_CHANNEL_ID", "20")
    monkeypatch.setenv("ROLE_ID", "30")

    config = load_config(path)

    assert config.discord.token == "env-token"
    assert config.discord.forum_channel_id == 20
    assert config.discord.staff_role_id == 30


def test_missing_file_falls_back_to_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("DISCORD_TOKEN", "env-token")
    monkeypatch.setenv("FORUM_CHANNEL_ID", "20")
    monkeypatch.setenv("ROLE_ID", "30")

    config = load_config(tmp_path / "absent.yml")

    require_runtime(config)
    assert config.log_level == "INFO"


def test_require_runtime_lists_missing_settings(tmp_path):
    config = load_config(tmp_path / "absent.yml")

    with pytest.raises(ConfigurationError, match="DISCORD_TOKEN, FORUM_CHANNEL_ID, ROLE_ID"):
        require_runtime(config)


def test_unexpanded_token_reference_counts_as_missing(tmp_path):
    path = _write(
        tmp_path,
        "discord:\n  token: \"${DISCORD_TOKEN}\"\n  forum_channel_id: 20\n  staff_role_id: 30\n",
    )

    config = load_config(path)

    assert config.discord.token == "${DISCORD_TOKEN}"
    with pytest.raises(ConfigurationError, match="Missing required settings: DISCORD_TOKEN$"):
        require_runtime(config)


def test_invalid_values_raise_configuration_error(tmp_path):
    path = _write(tmp_path, "relay:\n  history_window: 500\n")

    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_config(path)


def test_non_mapping_file_is_rejected(tmp_path):
    path = _write(tmp_path, "- just\n- a list\n")

    with pytest.raises(ConfigurationError):
        load_config(path)


def test_unknown_keys_are_tolerated(tmp_path):
    path = _write(tmp_path, "discord:\n  forum_channel_id: 2\n  colour: blue\n")

    config = load_config(path)

    assert config.discord.model_extra == {"colour": "blue"}
