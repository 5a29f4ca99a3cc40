"""Discord bot front end for modmail."""

from __future__ import annotations

import asyncio
import contextlib
import importlib
from types import ModuleType
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, cast

from modmail.adapters.discord_platform import (
    DiscordPlatform,
    correspondent_from_user,
    incoming_from_message,
    parse_optional_int,
)
from modmail.constants import REPLY_NO_CONTENT
from modmail.core.errors import ConfigurationError, ModmailError
from modmail.core.modmail_service import ModmailService
from modmail.core.task_registry import TaskRegistry
from modmail.logging_config import get_logger

if TYPE_CHECKING:
    from modmail.config.schema import ModmailConfig

logger = get_logger(__name__)

READY_TIMEOUT_SECONDS = 20.0


class DiscordClientLike(Protocol):
    """Minimal discord.py client surface used by the bot."""

    user: object | None

    def event(self, coro: Callable[..., Awaitable[None]]) -> object: ...

    async def start(self, token: str) -> None: ...

    async def close(self) -> None: ...


class DiscordBot:
    """Connects modmail to the Discord gateway.

    Routes DMs and forum-thread messages to the relay, ``/close`` to the
    lifecycle manager and runs recovery once the gateway is ready.
    """

    def __init__(self, config: "ModmailConfig", *, task_registry: "TaskRegistry | None" = None) -> None:
        self.config = config
        self._owns_registry = task_registry is None
        self.task_registry = task_registry or TaskRegistry()
        self._discord: ModuleType = importlib.import_module("discord")
        self._token = config.discord.token
        self._guild_id = config.discord.guild_id
        self._forum_channel_id = config.discord.forum_channel_id
        self._client: DiscordClientLike | None = None
        self._tree: object | None = None
        self._gateway_task: asyncio.Task[object] | None = None
        self._ready_event = asyncio.Event()
        self._recovered = False
        # Set once the first recovery pass has finished, successfully or not
        self._recovery_done = asyncio.Event()
        self.platform: DiscordPlatform | None = None
        self.service: ModmailService | None = None

    async def start(self) -> None:
        """Create the Discord client, wire handlers and wait for the gateway."""
        if not self._token:
            raise ConfigurationError("DISCORD_TOKEN is required to start the bot")

        intents = self._discord.Intents.default()
        intents.guilds = True
        intents.messages = True
        intents.dm_messages = True
        intents.message_content = True

        activity = self._discord.CustomActivity(name=self.config.discord.presence)
        self._client = self._discord.Client(intents=intents, activity=activity, status=self._discord.Status.dnd)
        self.platform = DiscordPlatform(self._client, discord_module=self._discord, guild_id=self._guild_id)
        self.service = ModmailService.from_config(self.platform, self.config)

        self._register_slash_commands()
        self._register_gateway_handlers()
        self._ready_event.clear()

        self._gateway_task = self.task_registry.spawn(self._client.start(self._token), name="discord-gateway")

        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=READY_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as exc:
            if self._gateway_task and self._gateway_task.done():
                task_exc = self._gateway_task.exception()
                if task_exc:
                    raise RuntimeError(f"Discord gateway failed to start: {task_exc}") from task_exc
            raise RuntimeError(f"Discord bot did not become ready within {READY_TIMEOUT_SECONDS:.0f} seconds") from exc

    async def stop(self) -> None:
        """Close the client and wait for the gateway task to finish."""
        self._tree = None
        if self._client is not None:
            await self._client.close()
        if self._gateway_task and not self._gateway_task.done():
            self._gateway_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._gateway_task
        if self._owns_registry:
            await self.task_registry.shutdown(timeout=5.0)

    @property
    def gateway_task(self) -> "asyncio.Task[object] | None":
        return self._gateway_task

    # =========================================================================
    # Registration
    # =========================================================================

    def _register_gateway_handlers(self) -> None:
        if self._client is None:
            raise ModmailError("Discord client not initialized")

        async def on_ready() -> None:
            await self._handle_on_ready()

        async def on_message(message: object) -> None:
            await self._handle_on_message(message)

        async def on_raw_thread_delete(payload: object) -> None:
            await self._handle_thread_delete(payload)

        self._client.event(on_ready)
        self._client.event(on_message)
        self._client.event(on_raw_thread_delete)

    def _register_slash_commands(self) -> None:
        if self._client is None:
            return
        app_commands = getattr(self._discord, "app_commands", None)
        command_tree_cls = getattr(app_commands, "CommandTree", None) if app_commands else None
        command_cls = getattr(app_commands, "Command", None) if app_commands else None
        if not callable(command_tree_cls) or not callable(command_cls):
            logger.warning("Discord app_commands unavailable; slash commands not registered")
            return

        self._tree = command_tree_cls(self._client)

        # Callbacks are closures: discord.py treats the first parameter as the interaction
        async def close(interaction: object) -> None:
            await self._handle_close_slash(interaction)

        async def modmail(interaction: object, message: str) -> None:
            await self._handle_modmail_slash(interaction, message)

        describe = getattr(app_commands, "describe", None)
        if callable(describe):
            modmail = describe(message="The message to send as modmail")(modmail)

        commands = [
            command_cls(name="modmail", description="Send a modmail", callback=modmail),
            command_cls(name="close", description="Close the current modmail thread", callback=close),
        ]
        add_command = getattr(self._tree, "add_command", None)
        if not callable(add_command):
            return
        guild = self._guild_object()
        for command in commands:
            if guild is not None:
                add_command(command, guild=guild)
            else:
                add_command(command)

    def _guild_object(self) -> object | None:
        object_cls = getattr(self._discord, "Object", None)
        if self._guild_id is None or not callable(object_cls):
            return None
        return object_cls(id=self._guild_id)

    # =========================================================================
    # Gateway events
    # =========================================================================

    async def _handle_on_ready(self) -> None:
        if self._client is None or self.service is None:
            return
        logger.info("%s is connected!", getattr(self._client, "user", None))

        # on_ready fires again after reconnects; the directory is only rebuilt once
        if not self._recovered:
            self._recovered = True
            self.task_registry.spawn(self._run_recovery(), name="recovery")
        if self._tree is not None:
            self.task_registry.spawn(self._sync_commands(), name="command-sync")

        self._ready_event.set()

    async def _run_recovery(self) -> None:
        if self.service is None:
            return
        try:
            await self.service.run_recovery()
        except ModmailError as exc:
            logger.error("Error resyncing state: %s", exc)
        finally:
            self._recovery_done.set()

    async def _sync_commands(self) -> None:
        sync_fn = getattr(self._tree, "sync", None)
        if not callable(sync_fn):
            return
        try:
            guild = self._guild_object()
            sync = cast(Callable[..., Awaitable[object]], sync_fn)
            synced = await (sync(guild=guild) if guild is not None else sync())
            logger.info("Slash commands registered: %s", synced)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to sync Discord slash commands: %s", exc)

    async def _handle_on_message(self, message: object) -> None:
        if self.service is None:
            return
        author = getattr(message, "author", None)
        if author is None or bool(getattr(author, "bot", False)):
            return
        await self._recovery_done.wait()

        try:
            if getattr(message, "guild", None) is None:
                await self.service.handle_inbound_private(incoming_from_message(message))
            elif self._is_forum_thread_message(message):
                await self.service.handle_thread_message(incoming_from_message(message))
        except Exception as exc:  # noqa: BLE001 - keep the gateway task alive
            logger.error("Failed to handle Discord message %s: %s", getattr(message, "id", "?"), exc, exc_info=True)

    async def _handle_thread_delete(self, payload: object) -> None:
        if self.service is None:
            return
        thread_id = parse_optional_int(getattr(payload, "thread_id", None))
        if thread_id is None:
            return
        parent_id = parse_optional_int(getattr(payload, "parent_id", None))
        if parent_id is not None and parent_id != self._forum_channel_id:
            return
        await self._recovery_done.wait()
        await self.service.handle_thread_deleted(thread_id)

    def _is_forum_thread_message(self, message: object) -> bool:
        channel = getattr(message, "channel", None)
        if "thread" not in type(channel).__name__.lower():
            return False
        parent_id = parse_optional_int(getattr(channel, "parent_id", None))
        if parent_id is None:
            parent_id = parse_optional_int(getattr(getattr(channel, "parent", None), "id", None))
        return parent_id == self._forum_channel_id

    # =========================================================================
    # Slash commands
    # =========================================================================

    async def _handle_close_slash(self, interaction: object) -> None:
        if self.service is None:
            return
        response = getattr(interaction, "response", None)
        defer = getattr(response, "defer", None)
        if callable(defer):
            await cast(Callable[..., Awaitable[object]], defer)(ephemeral=True, thinking=True)
        await self._recovery_done.wait()

        channel_id = parse_optional_int(getattr(interaction, "channel_id", None))
        if channel_id is None:
            channel_id = parse_optional_int(getattr(getattr(interaction, "channel", None), "id", None))
        reply = await self.service.handle_close_command(channel_id) if channel_id is not None else None
        await self._send_followup(interaction, reply or "This command can only be used in a modmail thread.")

    async def _handle_modmail_slash(self, interaction: object, message: str) -> None:
        if self.service is None:
            return
        response = getattr(interaction, "response", None)
        defer = getattr(response, "defer", None)
        if callable(defer):
            await cast(Callable[..., Awaitable[object]], defer)(ephemeral=True, thinking=True)
        await self._recovery_done.wait()

        text = message.strip() if isinstance(message, str) else ""
        author = correspondent_from_user(getattr(interaction, "user", None))
        reply = await self.service.handle_modmail_command(author, text or REPLY_NO_CONTENT)
        await self._send_followup(interaction, reply)

    async def _send_followup(self, interaction: object, text: str) -> None:
        send_fn = getattr(getattr(interaction, "followup", None), "send", None)
        if not callable(send_fn):
            return
        try:
            await cast(Callable[..., Awaitable[object]], send_fn)(text, ephemeral=True)
        except Exception as exc:  # noqa: BLE001 - the channel may be gone after /close
            logger.warning("Cannot respond to slash command: %s", exc)
