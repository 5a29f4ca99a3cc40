import os
import re
from pathlib import Path
from typing import Optional, cast

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ValidationError

from modmail.config.schema import ModmailConfig
from modmail.core.errors import ConfigurationError
from modmail.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("modmail.yml")
_UNEXPANDED_VAR = re.compile(r"\$\{[^}]+\}")

# Environment variables applied on top of the config file
_ENV_OVERRIDES: dict[str, str] = {
    "DISCORD_TOKEN": "token",
    "DISCORD_GUILD_ID": "guild_id",
    "FORUM_CHANNEL_ID": "forum_channel_id",
    "ROLE_ID": "staff_role_id",
}


def expand_env_vars(config: object) -> object:
    """Recursively expand environment variables in config.

    Replaces ${VAR} patterns with environment variable values.

    Args:
        config: Configuration object (dict, list, str, or primitive)

    Returns:
        Configuration with all ${VAR} patterns replaced
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            env_var = match.group(1)
            return os.getenv(env_var, match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))

    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def _apply_env_overrides(raw: dict[str, object]) -> dict[str, object]:
    discord_raw = raw.get("discord")
    discord_section: dict[str, object] = dict(discord_raw) if isinstance(discord_raw, dict) else {}
    for env_name, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_name, "").strip()
        if value:
            discord_section[key] = value
    log_level = os.getenv("MODMAIL_LOG_LEVEL", "").strip()
    if log_level:
        raw["log_level"] = log_level
    raw["discord"] = discord_section
    return raw


def load_config(path: Optional[Path] = None, *, env_file: Optional[Path] = None) -> ModmailConfig:
    """Load and validate modmail configuration.

    Reads ``.env`` into the environment, then the YAML file (``MODMAIL_CONFIG_PATH``
    or ``modmail.yml`` by default), expands ``${VAR}`` references and applies the
    ``DISCORD_TOKEN``/``DISCORD_GUILD_ID``/``FORUM_CHANNEL_ID``/``ROLE_ID`` overrides.

    Args:
        path: Path to the YAML config file. A missing file is not an error.
        env_file: Optional dotenv file to load first.

    Returns:
        The validated configuration model.

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation.
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv(find_dotenv(usecwd=True))

    if path is None:
        env_path = os.getenv("MODMAIL_CONFIG_PATH")
        path = Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_PATH

    raw: dict[str, object] = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read config file {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping at the top level")
        raw = loaded
    else:
        logger.debug("Config file %s not found; using environment only", path)

    expanded = cast(dict[str, object], expand_env_vars(raw))
    try:
        model = ModmailConfig.model_validate(_apply_env_overrides(expanded))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    _warn_unknown_keys(model, "root", path)
    return model


def require_runtime(config: ModmailConfig) -> None:
    """Fail fast when settings needed to run the bot are missing.

    Raises:
        ConfigurationError: If the token, forum channel or staff role is not set.
            A token still holding a ${VAR} reference counts as not set.
    """
    missing = []
    if not config.discord.token or _UNEXPANDED_VAR.search(config.discord.token):
        missing.append("DISCORD_TOKEN")
    if config.discord.forum_channel_id is None:
        missing.append("FORUM_CHANNEL_ID")
    if config.discord.staff_role_id is None:
        missing.append("ROLE_ID")
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
