"""Thread lifecycle - closing modmail sessions."""

from __future__ import annotations

from modmail.constants import NOTICE_CLOSED, REPLY_CLOSE_FAILED, REPLY_CLOSED, REPLY_NOT_TRACKED
from modmail.core.errors import PlatformError
from modmail.core.protocols import PlatformClient
from modmail.core.session_directory import SessionDirectory
from modmail.logging_config import get_logger

logger = get_logger(__name__)


class ThreadLifecycleManager:
    """Tears down sessions on staff request or external thread deletion."""

    def __init__(self, platform: PlatformClient, directory: SessionDirectory) -> None:
        self._platform = platform
        self._directory = directory

    async def close(self, thread_id: int) -> str:
        """Close the session owning ``thread_id``.

        The thread is deleted first; directory entries are only removed once the
        deletion succeeded. The correspondent is then told, best effort.

        Returns:
            Reply text for the staff member who invoked the command
        """
        correspondent_id = await self._directory.lookup_correspondent(thread_id)
        if correspondent_id is None:
            return REPLY_NOT_TRACKED

        try:
            await self._platform.delete_thread(thread_id)
        except PlatformError as exc:
            logger.error("Failed to delete thread %s: %s", thread_id, exc)
            return REPLY_CLOSE_FAILED.format(reason=exc)

        await self._directory.remove_by_thread(thread_id)
        logger.info("Closed modmail thread %s for %s", thread_id, correspondent_id)

        try:
            dm_channel_id = await self._platform.open_dm_channel(correspondent_id)
            await self._platform.post_message(dm_channel_id, NOTICE_CLOSED)
        except PlatformError as exc:
            # No thread left to report into
            logger.debug("Could not notify %s about closed thread: %s", correspondent_id, exc)

        return REPLY_CLOSED

    async def forget_thread(self, thread_id: int) -> None:
        """Drop the session of a thread that was deleted outside the bot."""
        correspondent_id = await self._directory.remove_by_thread(thread_id)
        if correspondent_id is not None:
            logger.info("Thread %s deleted externally; dropped session of %s", thread_id, correspondent_id)
