"""Protocol definitions for the chat-platform collaborator."""

from typing import Protocol, Sequence, runtime_checkable

from modmail.core.models import Attachment, HistoryMessage, ThreadRef


@runtime_checkable
class PlatformClient(Protocol):
    """Operations the modmail core consumes from the chat platform.

    Implementations convert platform exceptions into ``PlatformError``
    subclasses (``NotFoundError``, ``DeliveryError``) so the core can handle
    them without knowing the platform library.
    """

    def self_identity(self) -> int | None:
        """Id of the bot's own account, or None before login."""
        ...

    async def resolve_channel(self, channel_id: int) -> object | None:
        """Resolve a channel or thread by id.

        Returns:
            The channel object, or None if it does not exist or is not visible
        """
        ...

    def is_forum(self, channel: object) -> bool:
        """Whether ``channel`` is a forum channel."""
        ...

    async def list_active_threads(self) -> list[ThreadRef]:
        """List all active threads visible to the bot.

        Raises:
            PlatformError: If the listing fails
        """
        ...

    async def fetch_earliest_messages(self, thread_id: int, limit: int) -> list[HistoryMessage]:
        """Fetch up to ``limit`` of the earliest messages of a thread.

        Raises:
            PlatformError: If the history cannot be read
        """
        ...

    async def create_thread(self, parent: object, title: str, opening_message: str) -> tuple[ThreadRef, int]:
        """Open a thread under a forum channel.

        Returns:
            (thread, id of the opening message)

        Raises:
            PlatformError: If the thread cannot be created
        """
        ...

    async def post_message(self, channel_id: int, text: str, attachments: Sequence[Attachment] = ()) -> int:
        """Post a message (with re-uploaded attachments) to a thread or DM channel.

        Returns:
            Id of the posted message

        Raises:
            NotFoundError: If the channel no longer exists
            DeliveryError: If the message could not be posted
        """
        ...

    async def pin_message(self, channel_id: int, message_id: int) -> None: ...

    async def delete_thread(self, thread_id: int) -> None:
        """Delete a thread.

        Raises:
            PlatformError: If the thread cannot be deleted
        """
        ...

    async def open_dm_channel(self, correspondent_id: int) -> int:
        """Open (or reuse) the DM channel with a user.

        Returns:
            The DM channel id

        Raises:
            DeliveryError: If the user cannot be DMed
        """
        ...
