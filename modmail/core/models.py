"""Platform-neutral value types passed between the adapter and the core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Attachment:
    """A file attached to a message, re-uploaded by URL when relayed."""

    url: str
    filename: str
    content_type: str | None = None
    size: int | None = None


@dataclass(frozen=True)
class Correspondent:
    """A user as seen on the platform."""

    id: int
    name: str
    display_name: str | None = None
    bot: bool = False

    @property
    def label(self) -> str:
        """Human-readable name, preferring the display name."""
        return (self.display_name or "").strip() or self.name

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(frozen=True)
class IncomingMessage:
    """A message received from the platform.

    Attributes:
        id: Platform message id
        author: Message author
        content: Text body (may be empty for attachment-only messages)
        channel_id: Channel the message was posted in (the DM channel or the thread)
        attachments: Attached files
        is_private: True for direct messages
    """

    id: int
    author: Correspondent
    content: str
    channel_id: int
    attachments: tuple[Attachment, ...] = ()
    is_private: bool = False

    @property
    def has_text(self) -> bool:
        return bool(self.content.strip())


@dataclass(frozen=True)
class ThreadRef:
    """A discussion thread and the channel it lives under."""

    id: int
    parent_id: int | None
    name: str = ""


@dataclass(frozen=True)
class HistoryMessage:
    """A message read back from thread history during recovery."""

    id: int
    content: str
    created_at: datetime
    author_id: int | None = None
    mention_ids: tuple[int, ...] = field(default_factory=tuple)
