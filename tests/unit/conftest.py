"""Shared fixtures for core unit tests: an in-memory platform client."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Sequence

import pytest

from modmail.core.errors import DeliveryError, NotFoundError, PlatformError
from modmail.core.models import Attachment, HistoryMessage, ThreadRef
from modmail.core.session_directory import SessionDirectory

BOT_ID = 999
FORUM_ID = 444999
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeForumChannel:
    """Forum-like channel; type name contains 'forum'."""

    def __init__(self, channel_id: int) -> None:
        self.id = channel_id


class FakeTextChannel:
    def __init__(self, channel_id: int) -> None:
        self.id = channel_id


class FakeThreadChannel:
    def __init__(self, channel_id: int, parent_id: int | None) -> None:
        self.id = channel_id
        self.parent_id = parent_id


class FakePlatform:
    """In-memory PlatformClient recording every call."""

    def __init__(self) -> None:
        self.bot_id: int | None = BOT_ID
        self.forum_id = FORUM_ID
        self.channels: dict[int, object] = {FORUM_ID: FakeForumChannel(FORUM_ID)}
        self.history: dict[int, list[HistoryMessage]] = {}
        self.posts: list[tuple[int, str, tuple[Attachment, ...]]] = []
        self.created: list[tuple[int, str, str]] = []
        self.pinned: list[tuple[int, int]] = []
        self.deleted: list[int] = []
        self.dm_opened: list[int] = []
        self.list_calls = 0
        self.fail_list = False
        self.fail_create = False
        self.fail_pin = False
        self.fail_history: set[int] = set()
        self.fail_delete: set[int] = set()
        self.fail_dm: set[int] = set()
        self.fail_post: set[int] = set()
        self.create_delay = 0.0
        self._next_id = 500000

    # ---- helpers used by tests -------------------------------------------

    def add_thread(self, thread_id: int, parent_id: int | None, *contents: str) -> None:
        self.channels[thread_id] = FakeThreadChannel(thread_id, parent_id)
        self.history[thread_id] = [
            HistoryMessage(id=thread_id + i, content=text, created_at=_EPOCH + timedelta(minutes=i))
            for i, text in enumerate(contents)
        ]

    def texts_in(self, channel_id: int) -> list[str]:
        return [text for cid, text, _ in self.posts if cid == channel_id]

    @staticmethod
    def dm_id(correspondent_id: int) -> int:
        return 10_000_000 + correspondent_id

    # ---- PlatformClient --------------------------------------------------

    def self_identity(self) -> int | None:
        return self.bot_id

    async def resolve_channel(self, channel_id: int) -> object | None:
        return self.channels.get(channel_id)

    def is_forum(self, channel: object) -> bool:
        return "forum" in type(channel).__name__.lower()

    async def list_active_threads(self) -> list[ThreadRef]:
        self.list_calls += 1
        if self.fail_list:
            raise PlatformError("503 Service Unavailable")
        return [
            ThreadRef(id=cid, parent_id=channel.parent_id, name=f"thread-{cid}")
            for cid, channel in self.channels.items()
            if isinstance(channel, FakeThreadChannel)
        ]

    async def fetch_earliest_messages(self, thread_id: int, limit: int) -> list[HistoryMessage]:
        if thread_id in self.fail_history:
            raise PlatformError("403 Missing Access")
        return list(self.history.get(thread_id, []))[:limit]

    async def create_thread(self, parent: object, title: str, opening_message: str) -> tuple[ThreadRef, int]:
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.fail_create:
            raise PlatformError("500 Internal Server Error")
        self._next_id += 1
        thread_id = self._next_id
        parent_id = getattr(parent, "id", None)
        self.channels[thread_id] = FakeThreadChannel(thread_id, parent_id)
        self.history[thread_id] = [HistoryMessage(id=thread_id, content=opening_message, created_at=_EPOCH)]
        self.created.append((thread_id, title, opening_message))
        return ThreadRef(id=thread_id, parent_id=parent_id, name=title), thread_id

    async def post_message(self, channel_id: int, text: str, attachments: Sequence[Attachment] = ()) -> int:
        if channel_id in self.fail_post:
            raise DeliveryError(f"403 Cannot send messages to {channel_id}")
        if channel_id not in self.channels:
            raise NotFoundError(f"Channel {channel_id} not found")
        self.posts.append((channel_id, text, tuple(attachments)))
        self._next_id += 1
        return self._next_id

    async def pin_message(self, channel_id: int, message_id: int) -> None:
        if self.fail_pin:
            raise PlatformError("Missing Permissions")
        self.pinned.append((channel_id, message_id))

    async def delete_thread(self, thread_id: int) -> None:
        if thread_id in self.fail_delete:
            raise PlatformError("Missing Permissions")
        if self.channels.pop(thread_id, None) is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        self.history.pop(thread_id, None)
        self.deleted.append(thread_id)

    async def open_dm_channel(self, correspondent_id: int) -> int:
        if correspondent_id in self.fail_dm:
            raise DeliveryError("Cannot send messages to this user")
        dm_id = self.dm_id(correspondent_id)
        self.channels.setdefault(dm_id, FakeTextChannel(dm_id))
        self.dm_opened.append(correspondent_id)
        return dm_id


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def directory() -> SessionDirectory:
    return SessionDirectory()
