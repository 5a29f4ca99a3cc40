from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modmail.constants import (
    DEFAULT_ATTACHMENT_PLACEHOLDER,
    DEFAULT_HISTORY_WINDOW,
    DEFAULT_PRESENCE,
    DISCORD_MAX_HISTORY_LIMIT,
)


class DiscordConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    token: str = ""
    guild_id: Optional[int] = None
    forum_channel_id: Optional[int] = None
    staff_role_id: Optional[int] = None
    presence: str = DEFAULT_PRESENCE

    @field_validator("token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        return v.strip()


class RelayConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    history_window: int = Field(default=DEFAULT_HISTORY_WINDOW, ge=1, le=DISCORD_MAX_HISTORY_LIMIT)
    attachment_placeholder: str = DEFAULT_ATTACHMENT_PLACEHOLDER


class ModmailConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    discord: DiscordConfig = DiscordConfig()
    relay: RelayConfig = RelayConfig()
    log_level: str = "INFO"
