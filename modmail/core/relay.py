"""Relay engine - moves messages between correspondent DMs and staff threads.

Inbound: a DM from a correspondent is posted into their thread, opening one
when none exists or the recorded one was deleted. Outbound: a staff message
in a tracked thread is sent to the correspondent's DM and the outcome is
reported back into the thread.
"""

from __future__ import annotations

import asyncio

from modmail.constants import (
    ACK_RECEIVED,
    DISCORD_MAX_MESSAGE_CHARS,
    DISCORD_MAX_THREAD_NAME_CHARS,
    NOTICE_DELIVERED,
    NOTICE_DELIVERY_FAILED,
    NOTICE_DM_UNAVAILABLE,
    REPLY_MODMAIL_FAILED,
    REPLY_MODMAIL_SENT,
    STAFF_TAG,
    THREAD_TITLE_TEMPLATE,
    TRUNCATION_SUFFIX,
    USER_TAG,
)
from modmail.core.errors import ConfigurationError, PlatformError
from modmail.core.identity import build_opening_message
from modmail.core.models import Correspondent, IncomingMessage
from modmail.core.protocols import PlatformClient
from modmail.core.session_directory import SessionDirectory
from modmail.logging_config import get_logger

logger = get_logger(__name__)


def fit_message_text(text: str, limit: int = DISCORD_MAX_MESSAGE_CHARS) -> str:
    """Truncate ``text`` to the platform message limit."""
    if len(text) <= limit:
        return text
    return text[: limit - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def build_thread_title(correspondent: Correspondent) -> str:
    title = THREAD_TITLE_TEMPLATE.format(name=correspondent.label)
    # Discord channel names must be 1-100 characters
    if len(title) > DISCORD_MAX_THREAD_NAME_CHARS:
        title = title[: DISCORD_MAX_THREAD_NAME_CHARS - 3] + "..."
    return title


class RelayEngine:
    """Routes messages between correspondents and their modmail threads."""

    def __init__(
        self,
        platform: PlatformClient,
        directory: SessionDirectory,
        *,
        forum_channel_id: int,
        staff_role_id: int,
        attachment_placeholder: str,
    ) -> None:
        self._platform = platform
        self._directory = directory
        self._forum_channel_id = forum_channel_id
        self._staff_role_id = staff_role_id
        self._attachment_placeholder = attachment_placeholder
        # correspondent id -> lock serializing the check-then-create sequence, and
        # how many tasks currently hold or wait on it
        self._creation_locks: dict[int, asyncio.Lock] = {}
        self._creation_users: dict[int, int] = {}

    # =========================================================================
    # Inbound (correspondent -> staff)
    # =========================================================================

    async def handle_inbound_private(self, message: IncomingMessage) -> None:
        """Relay a correspondent's DM into their thread and acknowledge it."""
        if self._is_own_message(message):
            return

        text = self._format_relay_text(USER_TAG, message.author.mention, message)
        if text is None:
            logger.debug("Ignoring empty DM %s from %s", message.id, message.author.id)
            return

        try:
            thread_id = await self.ensure_thread(message.author)
        except (ConfigurationError, PlatformError) as exc:
            logger.error("Could not open modmail thread for %s: %s", message.author.id, exc)
            return

        try:
            await self._platform.post_message(thread_id, text, message.attachments)
        except PlatformError as exc:
            logger.error("Failed to relay DM %s to thread %s: %s", message.id, thread_id, exc)
            return

        try:
            await self._platform.post_message(message.channel_id, ACK_RECEIVED)
        except PlatformError as exc:
            logger.warning("Failed to acknowledge DM %s from %s: %s", message.id, message.author.id, exc)

    async def handle_modmail_command(self, author: Correspondent, text: str) -> str:
        """Open (or reuse) the invoking user's thread and post ``text`` into it.

        Returns:
            Reply text for the slash command invocation
        """
        try:
            thread_id = await self.ensure_thread(author)
            await self._platform.post_message(
                thread_id, fit_message_text(f"{USER_TAG} {author.mention}: {text.strip()}")
            )
        except (ConfigurationError, PlatformError) as exc:
            logger.error("/modmail from %s failed: %s", author.id, exc)
            return REPLY_MODMAIL_FAILED.format(reason=exc)
        return REPLY_MODMAIL_SENT

    async def ensure_thread(self, correspondent: Correspondent) -> int:
        """Return the correspondent's live thread, opening one if needed.

        Creation is serialized per correspondent: a second caller waits for the
        first and then reuses the thread it installed.

        Raises:
            ConfigurationError: If the forum channel is missing or not a forum
            PlatformError: If the thread cannot be created
        """
        thread_id = await self._live_thread(correspondent.id)
        if thread_id is not None:
            return thread_id

        lock = self._creation_locks.setdefault(correspondent.id, asyncio.Lock())
        self._creation_users[correspondent.id] = self._creation_users.get(correspondent.id, 0) + 1
        try:
            async with lock:
                thread_id = await self._live_thread(correspondent.id)
                if thread_id is not None:
                    return thread_id
                return await self._create_thread(correspondent)
        finally:
            self._release_creation_lock(correspondent.id)

    def _release_creation_lock(self, correspondent_id: int) -> None:
        remaining = self._creation_users[correspondent_id] - 1
        if remaining:
            self._creation_users[correspondent_id] = remaining
            return
        del self._creation_users[correspondent_id]
        del self._creation_locks[correspondent_id]

    async def _live_thread(self, correspondent_id: int) -> int | None:
        thread_id = await self._directory.lookup_thread(correspondent_id)
        if thread_id is None:
            return None
        try:
            channel = await self._platform.resolve_channel(thread_id)
        except PlatformError as exc:
            logger.warning("Could not resolve thread %s: %s", thread_id, exc)
            channel = None
        if channel is None:
            logger.info("Thread %s for %s no longer exists; opening a new one", thread_id, correspondent_id)
            return None
        return thread_id

    async def _create_thread(self, correspondent: Correspondent) -> int:
        forum = await self._platform.resolve_channel(self._forum_channel_id)
        if forum is None:
            raise ConfigurationError(f"Could not find the forum channel {self._forum_channel_id}")
        if not self._platform.is_forum(forum):
            raise ConfigurationError(f"Channel {self._forum_channel_id} is not a forum channel")

        opening = build_opening_message(staff_role_id=self._staff_role_id, correspondent_id=correspondent.id)
        thread, opening_message_id = await self._platform.create_thread(
            forum, build_thread_title(correspondent), opening
        )

        try:
            await self._platform.pin_message(thread.id, opening_message_id)
        except PlatformError as exc:
            logger.warning("Failed to pin opening message of thread %s: %s", thread.id, exc)

        await self._directory.insert(correspondent.id, thread.id)
        logger.info("Opened modmail thread %s for %s (%s)", thread.id, correspondent.id, correspondent.label)
        return thread.id

    # =========================================================================
    # Outbound (staff -> correspondent)
    # =========================================================================

    async def handle_thread_message(self, message: IncomingMessage) -> None:
        """Relay a staff message from a tracked thread to the correspondent's DM."""
        if self._is_own_message(message):
            return

        thread_id = message.channel_id
        correspondent_id = await self._directory.lookup_correspondent(thread_id)
        if correspondent_id is None:
            return

        text = self._format_relay_text(STAFF_TAG, message.author.label, message)
        if text is None:
            return

        try:
            dm_channel_id = await self._platform.open_dm_channel(correspondent_id)
        except PlatformError as exc:
            logger.info("Cannot DM %s from thread %s: %s", correspondent_id, thread_id, exc)
            await self._notify_thread(thread_id, NOTICE_DM_UNAVAILABLE.format(name=f"<@{correspondent_id}>"))
            return

        try:
            await self._platform.post_message(dm_channel_id, text, message.attachments)
        except PlatformError as exc:
            logger.warning("Failed to deliver message %s to %s: %s", message.id, correspondent_id, exc)
            await self._notify_thread(thread_id, NOTICE_DELIVERY_FAILED)
            return

        await self._notify_thread(thread_id, NOTICE_DELIVERED)

    async def _notify_thread(self, thread_id: int, text: str) -> None:
        try:
            await self._platform.post_message(thread_id, text)
        except PlatformError as exc:
            logger.warning("Failed to post notice into thread %s: %s", thread_id, exc)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _is_own_message(self, message: IncomingMessage) -> bool:
        if message.author.bot:
            return True
        self_id = self._platform.self_identity()
        return self_id is not None and self_id == message.author.id

    def _format_relay_text(self, tag: str, who: str, message: IncomingMessage) -> str | None:
        """Prefix the body with the role tag, or None when there is nothing to relay."""
        if message.has_text:
            body = message.content.strip()
        elif message.attachments:
            body = self._attachment_placeholder
        else:
            return None
        return fit_message_text(f"{tag} {who}: {body}")
