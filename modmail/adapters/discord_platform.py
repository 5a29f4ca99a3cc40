"""discord.py implementation of the modmail platform client.

Converts between discord.py objects and the core's value types, and turns
discord.py HTTP exceptions into ``PlatformError`` subclasses at the call site.
"""

from __future__ import annotations

import io
from types import ModuleType
from typing import Awaitable, Callable, Sequence, cast

import httpx

from modmail.core.errors import DeliveryError, NotFoundError, PlatformError
from modmail.core.models import Attachment, Correspondent, HistoryMessage, IncomingMessage, ThreadRef
from modmail.logging_config import get_logger

logger = get_logger(__name__)

ATTACHMENT_DOWNLOAD_TIMEOUT = 30.0


def parse_optional_int(value: object) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    return None


def correspondent_from_user(user: object) -> Correspondent:
    """Build a ``Correspondent`` from a discord.py ``User``/``Member``."""
    user_id = parse_optional_int(getattr(user, "id", None))
    if user_id is None:
        raise ValueError("Discord user has no numeric id")
    name = str(getattr(user, "name", "") or user_id)
    display_name = getattr(user, "display_name", None) or getattr(user, "global_name", None)
    return Correspondent(
        id=user_id,
        name=name,
        display_name=str(display_name) if display_name else None,
        bot=bool(getattr(user, "bot", False)),
    )


def attachments_from_message(message: object) -> tuple[Attachment, ...]:
    result: list[Attachment] = []
    for attachment in getattr(message, "attachments", None) or ():
        url = getattr(attachment, "url", None)
        if not url:
            continue
        result.append(
            Attachment(
                url=str(url),
                filename=str(getattr(attachment, "filename", None) or "attachment"),
                content_type=getattr(attachment, "content_type", None),
                size=getattr(attachment, "size", None),
            )
        )
    return tuple(result)


def incoming_from_message(message: object) -> IncomingMessage:
    """Build an ``IncomingMessage`` from a discord.py ``Message``."""
    channel = getattr(message, "channel", None)
    channel_id = parse_optional_int(getattr(channel, "id", None))
    if channel_id is None:
        raise ValueError("Discord message has no channel id")
    content = getattr(message, "content", None)
    return IncomingMessage(
        id=parse_optional_int(getattr(message, "id", None)) or 0,
        author=correspondent_from_user(getattr(message, "author", None)),
        content=content if isinstance(content, str) else "",
        channel_id=channel_id,
        attachments=attachments_from_message(message),
        is_private=getattr(message, "guild", None) is None,
    )


class DiscordPlatform:
    """``PlatformClient`` backed by a discord.py ``Client``."""

    def __init__(self, client: object, *, discord_module: ModuleType, guild_id: int | None) -> None:
        self._client = client
        self._discord = discord_module
        self._guild_id = guild_id
        # DM channel id -> DM channel, so replies don't need a fetch
        self._dm_channels: dict[int, object] = {}

    def self_identity(self) -> int | None:
        return parse_optional_int(getattr(getattr(self._client, "user", None), "id", None))

    async def resolve_channel(self, channel_id: int) -> object | None:
        cached_dm = self._dm_channels.get(channel_id)
        if cached_dm is not None:
            return cached_dm

        get_fn = getattr(self._client, "get_channel", None)
        if callable(get_fn):
            cached = get_fn(channel_id)
            if cached is not None:
                return cached

        fetch_fn = _require_async_callable(getattr(self._client, "fetch_channel", None), label="fetch_channel")
        try:
            return await fetch_fn(channel_id)
        except (self._discord.NotFound, self._discord.Forbidden) as exc:
            logger.debug("Discord fetch_channel(%s) failed: %s", channel_id, exc)
            return None
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Failed to resolve channel {channel_id}: {exc}") from exc

    @staticmethod
    def is_forum(channel: object) -> bool:
        return "forum" in type(channel).__name__.lower()

    async def list_active_threads(self) -> list[ThreadRef]:
        guild = await self._resolve_guild()
        active_threads = _require_async_callable(getattr(guild, "active_threads", None), label="active_threads")
        try:
            threads = cast(list[object], await active_threads())
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Failed to fetch active threads: {exc}") from exc

        refs: list[ThreadRef] = []
        for thread in threads:
            thread_id = parse_optional_int(getattr(thread, "id", None))
            if thread_id is None:
                continue
            refs.append(
                ThreadRef(
                    id=thread_id,
                    parent_id=parse_optional_int(getattr(thread, "parent_id", None)),
                    name=str(getattr(thread, "name", "") or ""),
                )
            )
        return refs

    async def fetch_earliest_messages(self, thread_id: int, limit: int) -> list[HistoryMessage]:
        thread = await self._require_channel(thread_id)
        history_fn = getattr(thread, "history", None)
        if not callable(history_fn):
            raise PlatformError(f"Channel {thread_id} has no message history")

        messages: list[HistoryMessage] = []
        try:
            async for message in history_fn(limit=limit, oldest_first=True):
                mentions = getattr(message, "mentions", None) or ()
                mention_ids = tuple(
                    uid for uid in (parse_optional_int(getattr(user, "id", None)) for user in mentions) if uid
                )
                messages.append(
                    HistoryMessage(
                        id=parse_optional_int(getattr(message, "id", None)) or 0,
                        content=str(getattr(message, "content", "") or ""),
                        created_at=getattr(message, "created_at"),
                        author_id=parse_optional_int(getattr(getattr(message, "author", None), "id", None)),
                        mention_ids=mention_ids,
                    )
                )
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Failed to read history of thread {thread_id}: {exc}") from exc
        return messages

    async def create_thread(self, parent: object, title: str, opening_message: str) -> tuple[ThreadRef, int]:
        create_thread_fn = _require_async_callable(getattr(parent, "create_thread", None), label="create_thread")
        try:
            result = await create_thread_fn(name=title, content=opening_message)
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Error creating modmail thread: {exc}") from exc

        thread = getattr(result, "thread", None)
        starter_message = getattr(result, "message", None)
        if thread is None and isinstance(result, tuple) and result:
            thread = result[0]
            if len(result) > 1:
                starter_message = result[1]
        if thread is None:
            thread = result

        thread_id = parse_optional_int(getattr(thread, "id", None))
        if thread_id is None:
            raise PlatformError("Discord create_thread() returned invalid thread id")
        starter_message_id = parse_optional_int(getattr(starter_message, "id", None))
        ref = ThreadRef(
            id=thread_id,
            parent_id=parse_optional_int(getattr(parent, "id", None)),
            name=title,
        )
        # Forum starter messages share the thread's id
        return ref, starter_message_id if starter_message_id is not None else thread_id

    async def post_message(self, channel_id: int, text: str, attachments: Sequence[Attachment] = ()) -> int:
        channel = await self._require_channel(channel_id)
        send_fn = _require_async_callable(getattr(channel, "send", None), label="channel send")

        kwargs: dict[str, object] = {"content": text}
        files = await self._download_attachments(attachments)
        if files:
            kwargs["files"] = files

        try:
            sent = await send_fn(**kwargs)
        except self._discord.NotFound as exc:
            raise NotFoundError(f"Channel {channel_id} no longer exists") from exc
        except self._discord.HTTPException as exc:
            raise DeliveryError(f"Failed to post message to {channel_id}: {exc}") from exc
        return parse_optional_int(getattr(sent, "id", None)) or 0

    async def pin_message(self, channel_id: int, message_id: int) -> None:
        channel = await self._require_channel(channel_id)
        fetch_fn = _require_async_callable(getattr(channel, "fetch_message", None), label="fetch_message")
        try:
            message = await fetch_fn(message_id)
            pin_fn = _require_async_callable(getattr(message, "pin", None), label="message pin")
            await pin_fn()
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Failed to pin message {message_id}: {exc}") from exc

    async def delete_thread(self, thread_id: int) -> None:
        thread = await self._require_channel(thread_id)
        delete_fn = _require_async_callable(getattr(thread, "delete", None), label="thread delete")
        try:
            await delete_fn()
        except self._discord.NotFound as exc:
            raise NotFoundError(f"Thread {thread_id} no longer exists") from exc
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Failed to delete thread {thread_id}: {exc}") from exc

    async def open_dm_channel(self, correspondent_id: int) -> int:
        try:
            user = await self._get_user(correspondent_id)
            if user is None:
                raise DeliveryError(f"User {correspondent_id} not found")
            dm_channel = getattr(user, "dm_channel", None)
            if dm_channel is None:
                create_dm = _require_async_callable(getattr(user, "create_dm", None), label="create_dm")
                dm_channel = await create_dm()
        except self._discord.HTTPException as exc:
            raise DeliveryError(f"Cannot open DM with {correspondent_id}: {exc}") from exc

        dm_channel_id = parse_optional_int(getattr(dm_channel, "id", None))
        if dm_channel_id is None:
            raise DeliveryError(f"DM channel for {correspondent_id} has no id")
        self._dm_channels[dm_channel_id] = dm_channel
        return dm_channel_id

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_channel(self, channel_id: int) -> object:
        channel = await self.resolve_channel(channel_id)
        if channel is None:
            raise NotFoundError(f"Channel {channel_id} not found")
        return channel

    async def _resolve_guild(self) -> object:
        if self._guild_id is None:
            guilds = list(getattr(self._client, "guilds", None) or [])
            if len(guilds) == 1:
                return guilds[0]
            raise PlatformError("DISCORD_GUILD_ID is not set and the bot is not in exactly one guild")

        get_guild = getattr(self._client, "get_guild", None)
        guild = get_guild(self._guild_id) if callable(get_guild) else None
        if guild is not None:
            return guild
        fetch_guild = _require_async_callable(getattr(self._client, "fetch_guild", None), label="fetch_guild")
        try:
            return await fetch_guild(self._guild_id)
        except self._discord.HTTPException as exc:
            raise PlatformError(f"Failed to resolve guild {self._guild_id}: {exc}") from exc

    async def _get_user(self, user_id: int) -> object | None:
        get_user = getattr(self._client, "get_user", None)
        user = get_user(user_id) if callable(get_user) else None
        if user is not None:
            return user
        fetch_user = _require_async_callable(getattr(self._client, "fetch_user", None), label="fetch_user")
        try:
            return await fetch_user(user_id)
        except self._discord.NotFound:
            return None

    async def _download_attachments(self, attachments: Sequence[Attachment]) -> list[object]:
        """Download attachments by URL and wrap them as ``discord.File`` uploads.

        An attachment that cannot be downloaded is skipped with a warning.
        """
        if not attachments:
            return []
        files: list[object] = []
        async with httpx.AsyncClient(timeout=ATTACHMENT_DOWNLOAD_TIMEOUT, follow_redirects=True) as http:
            for attachment in attachments:
                try:
                    response = await http.get(attachment.url)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    logger.warning("Failed to download attachment %s: %s", attachment.filename, exc)
                    continue
                files.append(self._discord.File(io.BytesIO(response.content), filename=attachment.filename))
        return files


def _require_async_callable(fn: object, *, label: str) -> Callable[..., Awaitable[object]]:
    if not callable(fn):
        raise PlatformError(f"Discord {label} is not callable")
    return cast(Callable[..., Awaitable[object]], fn)
