"""Configuration management.

Config is loaded once at startup and passed explicitly to the components:
    from modmail.config import load_config
    config = load_config()
"""

from modmail.config.loader import load_config, require_runtime
from modmail.config.schema import DiscordConfig, ModmailConfig, RelayConfig

__all__ = ["DiscordConfig", "ModmailConfig", "RelayConfig", "load_config", "require_runtime"]
