"""Modmail service - the entry points the bot front end calls into.

Owns the session directory and wires it into the recovery, relay and
lifecycle components. Every component gets the same directory instance.
"""

from __future__ import annotations

from modmail.config.schema import ModmailConfig
from modmail.core.errors import ConfigurationError
from modmail.core.lifecycle import ThreadLifecycleManager
from modmail.core.models import Correspondent, IncomingMessage
from modmail.core.protocols import PlatformClient
from modmail.core.recovery import RecoveryEngine, RecoveryReport
from modmail.core.relay import RelayEngine
from modmail.core.session_directory import SessionDirectory


class ModmailService:
    """Facade over the modmail core."""

    def __init__(
        self,
        platform: PlatformClient,
        *,
        forum_channel_id: int,
        staff_role_id: int,
        history_window: int,
        attachment_placeholder: str,
        directory: SessionDirectory | None = None,
    ) -> None:
        self.directory = directory if directory is not None else SessionDirectory()
        self.recovery = RecoveryEngine(
            platform,
            self.directory,
            forum_channel_id=forum_channel_id,
            history_window=history_window,
        )
        self.relay = RelayEngine(
            platform,
            self.directory,
            forum_channel_id=forum_channel_id,
            staff_role_id=staff_role_id,
            attachment_placeholder=attachment_placeholder,
        )
        self.lifecycle = ThreadLifecycleManager(platform, self.directory)

    @classmethod
    def from_config(cls, platform: PlatformClient, config: ModmailConfig) -> "ModmailService":
        forum_channel_id = config.discord.forum_channel_id
        staff_role_id = config.discord.staff_role_id
        if forum_channel_id is None or staff_role_id is None:
            raise ConfigurationError("forum_channel_id and staff_role_id must be configured")
        return cls(
            platform,
            forum_channel_id=forum_channel_id,
            staff_role_id=staff_role_id,
            history_window=config.relay.history_window,
            attachment_placeholder=config.relay.attachment_placeholder,
        )

    async def run_recovery(self) -> RecoveryReport:
        return await self.recovery.run()

    async def handle_inbound_private(self, message: IncomingMessage) -> None:
        await self.relay.handle_inbound_private(message)

    async def handle_thread_message(self, message: IncomingMessage) -> None:
        await self.relay.handle_thread_message(message)

    async def handle_close_command(self, thread_id: int) -> str:
        return await self.lifecycle.close(thread_id)

    async def handle_modmail_command(self, author: Correspondent, text: str) -> str:
        return await self.relay.handle_modmail_command(author, text)

    async def handle_thread_deleted(self, thread_id: int) -> None:
        await self.lifecycle.forget_thread(thread_id)
