"""Recovery engine - rebuilds the session directory from forum history.

No durable store exists: after a restart the only record of which thread
belongs to whom is the identity embedded in each thread's opening message.
"""

from __future__ import annotations

from dataclasses import dataclass

from modmail.core.errors import ConfigurationError, PlatformError, RecoveryError
from modmail.core.identity import extract_correspondent_id
from modmail.core.protocols import PlatformClient
from modmail.core.session_directory import SessionDirectory
from modmail.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RecoveryReport:
    """Outcome of a recovery pass."""

    scanned: int = 0
    recovered: int = 0
    orphaned: int = 0
    failed: int = 0


class RecoveryEngine:
    """Scans active forum threads and reinstalls the session directory."""

    def __init__(
        self,
        platform: PlatformClient,
        directory: SessionDirectory,
        *,
        forum_channel_id: int,
        history_window: int,
    ) -> None:
        self._platform = platform
        self._directory = directory
        self._forum_channel_id = forum_channel_id
        self._history_window = history_window

    async def run(self) -> RecoveryReport:
        """Rebuild the directory from the forum's active threads.

        The directory is replaced in one step once every thread has been
        inspected; on failure it is left as it was.

        Raises:
            ConfigurationError: If the forum channel is missing or not a forum
            RecoveryError: If the active threads cannot be listed
        """
        forum = await self._platform.resolve_channel(self._forum_channel_id)
        if forum is None:
            raise ConfigurationError(f"Could not find the forum channel {self._forum_channel_id}")
        if not self._platform.is_forum(forum):
            raise ConfigurationError(f"Channel {self._forum_channel_id} is not a forum channel")

        try:
            threads = await self._platform.list_active_threads()
        except PlatformError as exc:
            raise RecoveryError(f"Failed to fetch active threads: {exc}") from exc

        report = RecoveryReport()
        pairs: list[tuple[int, int]] = []
        for thread in threads:
            if thread.parent_id != self._forum_channel_id:
                continue
            report.scanned += 1

            try:
                messages = await self._platform.fetch_earliest_messages(thread.id, self._history_window)
            except PlatformError as exc:
                logger.warning("Skipping thread %s: history fetch failed: %s", thread.id, exc)
                report.failed += 1
                continue

            if not messages:
                logger.info("Skipping thread %s: no messages", thread.id)
                report.orphaned += 1
                continue

            first = min(messages, key=lambda m: (m.created_at, m.id))
            correspondent_id = extract_correspondent_id(first.content, first.mention_ids)
            if correspondent_id is None:
                logger.info("Skipping orphaned thread %s (%s): no correspondent id", thread.id, thread.name)
                report.orphaned += 1
                continue

            pairs.append((correspondent_id, thread.id))
            report.recovered += 1

        await self._directory.replace_all(pairs)
        logger.info(
            "Recovery complete: scanned=%d recovered=%d orphaned=%d failed=%d",
            report.scanned,
            report.recovered,
            report.orphaned,
            report.failed,
        )
        return report
