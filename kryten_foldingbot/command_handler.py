"""Chat command handler — routes commands addressed to the bot.

Public chat messages must tag the bot (``@FoldingBot user <address>``);
PMs are treated as commands in full. The resolved command runs through the
disabled-command check, the admin gate and, for long-running commands, the
single-flight guard. Replies go back to wherever the command came from.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from .command_registry import (
    DISABLE_COMMAND,
    ENABLE_COMMAND,
    CommandDescriptor,
    CommandRegistry,
    DisabledCommands,
)
from .formatting import format_distribution, format_help, split_message
from .single_flight import SingleFlightGuard

if TYPE_CHECKING:
    from kryten import ChatMessageEvent, KrytenClient

    from .config import FoldingBotConfig
    from .folding_client import FoldingApiClient


COMMANDS: tuple[CommandDescriptor, ...] = (
    CommandDescriptor(
        name="bad bot", handler="_cmd_bad_bot", hidden=True,
        summary="Tell the bot it's being bad",
    ),
    CommandDescriptor(
        name="good bot", handler="_cmd_good_bot", hidden=True,
        summary="Tell the bot it's being good",
    ),
    CommandDescriptor(
        name=DISABLE_COMMAND, handler="_cmd_disable", aliases=("dc",),
        usage="{command name}", admin_only=True, hidden=True,
        summary="Disables a specified command",
    ),
    CommandDescriptor(
        name=ENABLE_COMMAND, handler="_cmd_enable", aliases=("ec",),
        usage="{command name}", admin_only=True, hidden=True,
        summary="Enables a specified command",
    ),
    CommandDescriptor(
        name="fah", handler="_cmd_fah",
        summary="Start folding today or update to the latest software",
    ),
    CommandDescriptor(
        name="website", handler="_cmd_website",
        summary="Learn more about this project",
    ),
    CommandDescriptor(
        name="distribution", handler="_cmd_distribution",
        summary="Get the date of our next distribution",
    ),
    CommandDescriptor(
        name="user", handler="_cmd_user", usage="{address}", long_running=True,
        summary="Get your stats for the next distribution based on your address",
    ),
    CommandDescriptor(
        name="help", handler="_cmd_help",
        summary="Show the list of available commands",
    ),
    CommandDescriptor(
        name="lookup", handler="_cmd_lookup", usage="{search criteria}", long_running=True,
        summary="Helps to find yourself, not case sensitive and searches the start and end for a match",
    ),
    CommandDescriptor(
        name="test admin", handler="_cmd_test_admin", admin_only=True, development=True,
        summary="Tests an admin only call",
    ),
    CommandDescriptor(
        name="test async", handler="_cmd_test_async", long_running=True, development=True,
        usage="{timeout in seconds defaults to 60 secs}",
        summary="Test long running async methods",
    ),
)

UNKNOWN_COMMAND = "Unknown command. Try 'help'."
ADMIN_REQUIRED = "This command requires admin privileges."
COMPLETED = "Completed"
DEFAULT_TEST_TIMEOUT = 60


class UsageError(ValueError):
    """Raised by a handler when its arguments are missing or malformed."""


@dataclass
class CommandContext:
    """Where a command came from and where its reply goes."""

    username: str
    channel: str
    rank: int
    private: bool
    event: Any = None


def build_registry(development: bool = False) -> CommandRegistry:
    """Build the command table; development commands only when enabled."""
    return CommandRegistry(c for c in COMMANDS if development or not c.development)


class FoldingCommandHandler:
    """Parses chat and PM events into commands and sends replies."""

    def __init__(
        self,
        config: FoldingBotConfig,
        client: KrytenClient | None,
        api_client: FoldingApiClient,
        logger: logging.Logger | None = None,
        registry: CommandRegistry | None = None,
        disabled: DisabledCommands | None = None,
        guard: SingleFlightGuard | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._config = config
        self._client = client
        self._api = api_client
        self._logger = logger or logging.getLogger("foldingbot.command")
        self.registry = registry or build_registry(config.development)
        self.disabled = disabled or DisabledCommands(self._logger)
        self.guard = guard or SingleFlightGuard(self._logger)
        self._clock = clock

        self._ignored_users: set[str] = {u.lower() for u in config.ignored_users}
        self._bot_username_lower = config.bot.username.lower()
        name = re.escape(config.bot.username)
        # Chat needs "@Bot" or "Bot:"; a PM may carry either or neither
        self._chat_tag = re.compile(rf"^(?:@{name}(?!\w)[:,]?|{name}:)\s*", re.IGNORECASE)
        self._pm_tag = re.compile(rf"^@?{name}(?!\w)[:,]?\s*", re.IGNORECASE)

        self.commands_processed: int = 0

    # ══════════════════════════════════════════════════════════
    #  Event entry points
    # ══════════════════════════════════════════════════════════

    async def handle_chat(self, event: ChatMessageEvent) -> None:
        """Public chat: only messages that tag the bot are commands."""
        if self._should_ignore(event.username):
            return
        text = event.message.strip()
        match = self._chat_tag.match(text)
        if not match:
            return
        ctx = CommandContext(
            username=event.username,
            channel=event.channel,
            rank=getattr(event, "rank", 0) or 0,
            private=False,
            event=event,
        )
        await self.dispatch(ctx, text[match.end():])

    async def handle_pm(self, event: ChatMessageEvent) -> None:
        """Private message: the whole text is the command."""
        if self._should_ignore(event.username):
            return
        text = event.message.strip()
        if not text:
            return
        ctx = CommandContext(
            username=event.username,
            channel=event.channel,
            rank=getattr(event, "rank", 0) or 0,
            private=True,
            event=event,
        )
        await self.dispatch(ctx, self._pm_tag.sub("", text, count=1))

    async def dispatch(self, ctx: CommandContext, text: str) -> None:
        """Resolve *text* to a command, run it and send the reply."""
        reply = await self.execute(ctx, text)
        if reply:
            await self._send_reply(ctx, reply)

    async def execute(self, ctx: CommandContext, text: str) -> str | None:
        """Run the command in *text* and return its reply.

        Returns None when there is nothing to say: the command is disabled,
        or the handler failed and error replies are switched off.
        """
        text = text.strip()
        if not text:
            descriptor = self.registry.get("help")
            remainder = ""
        else:
            resolved = self.registry.resolve(text)
            if resolved is None:
                return UNKNOWN_COMMAND
            descriptor, remainder = resolved

        if self.disabled.is_disabled(descriptor.name):
            self._logger.debug("Ignoring disabled command '%s'", descriptor.name)
            return None

        if descriptor.admin_only and not await self._is_admin(ctx):
            return ADMIN_REQUIRED

        handler: Callable[..., Awaitable[str]] = getattr(self, descriptor.handler)
        try:
            self._logger.info("Command invoked: %s", descriptor.name)
            if descriptor.long_running:
                reply = await self.guard.run(lambda: handler(ctx, descriptor, remainder))
            else:
                reply = await handler(ctx, descriptor, remainder)
            self._logger.info("Command finished: %s", descriptor.name)
        except UsageError:
            return f"Usage: {descriptor.name} {descriptor.usage or ''}".rstrip()
        except Exception:
            self._logger.exception(
                "Command handler error for %s/%s", ctx.username, descriptor.name,
            )
            if self._config.commands.reply_on_error:
                return self._config.commands.error_message
            return None

        self.commands_processed += 1
        return reply

    def help_commands(self) -> list[CommandDescriptor]:
        """Commands shown in help: everything registered that is not hidden."""
        return [c for c in self.registry.commands() if not c.hidden]

    # ══════════════════════════════════════════════════════════
    #  Commands
    # ══════════════════════════════════════════════════════════

    async def _cmd_bad_bot(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        return "D:"

    async def _cmd_good_bot(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        return ":D"

    async def _cmd_disable(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str | None:
        if not args:
            raise UsageError(args)
        if not self.disabled.disable(args):
            # Refused; the registry has already logged why
            return None
        self._logger.info("Command '%s' disabled by %s", args, ctx.username)
        return COMPLETED

    async def _cmd_enable(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        if not args:
            raise UsageError(args)
        self.disabled.enable(args)
        self._logger.info("Command '%s' enabled by %s", args, ctx.username)
        return COMPLETED

    async def _cmd_fah(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        return f"Visit {self._config.folding.download_url} to download folding@home"

    async def _cmd_website(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        return f"Visit {self._config.folding.home_url} to learn more about this project"

    async def _cmd_distribution(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        return format_distribution(self._clock())

    async def _cmd_user(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        if not args:
            raise UsageError(args)
        address = args.split()[0]
        return await self._api.get_user_stats(address)

    async def _cmd_help(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        return format_help(self._config.bot.help_name, self.help_commands())

    async def _cmd_lookup(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        if not args:
            raise UsageError(args)
        return await self._api.lookup_user(args)

    async def _cmd_test_admin(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        self._logger.debug("Testing an admin call")
        return "ACK"

    async def _cmd_test_async(self, ctx: CommandContext, descriptor: CommandDescriptor, args: str) -> str:
        timeout = DEFAULT_TEST_TIMEOUT
        if args:
            try:
                timeout = int(args.split()[0])
            except ValueError:
                raise UsageError(args) from None
        self._logger.debug("Testing async with timeout %d", timeout)
        await asyncio.sleep(timeout)
        return "Async test finished"

    # ══════════════════════════════════════════════════════════
    #  Helpers
    # ══════════════════════════════════════════════════════════

    def _should_ignore(self, username: str) -> bool:
        lowered = username.lower()
        return lowered in self._ignored_users or lowered == self._bot_username_lower

    async def _is_admin(self, ctx: CommandContext) -> bool:
        return await self._resolve_rank(ctx) >= self._config.admin.owner_level

    async def _resolve_rank(self, ctx: CommandContext) -> int:
        """Resolve the user's CyTube rank for admin gating.

        Chat and PM events may not carry the sender's rank reliably (often 0).
        If the event rank is missing or 0, fall back to querying the robot's
        live channel state via ``client.get_user()``.
        """
        if ctx.rank > 0:
            return ctx.rank

        if self._client is not None:
            try:
                user_info = await self._client.get_user(ctx.channel, ctx.username)
                if user_info:
                    if isinstance(user_info, dict):
                        return user_info.get("rank", 0) or 0
                    return getattr(user_info, "rank", 0) or 0
            except Exception:
                self._logger.debug(
                    "Could not resolve CyTube rank for %s via get_user, "
                    "falling back to event rank (%d)",
                    ctx.username,
                    ctx.rank,
                )
        return ctx.rank

    async def _send_reply(self, ctx: CommandContext, message: str) -> None:
        """Send *message* back to the chat or PM it came from, split to fit.

        Chunks after the first wait ``commands.send_interval`` seconds so a
        long reply does not trip the platform flood limit.
        """
        if self._client is None:
            return
        chunks = [
            c for c in split_message(message, self._config.commands.chat_max_length)
            if c.strip()
        ]
        interval = self._config.commands.send_interval
        for i, chunk in enumerate(chunks):
            if i and interval > 0:
                await asyncio.sleep(interval)
            try:
                if ctx.private:
                    await self._client.send_pm(ctx.channel, ctx.username, chunk)
                else:
                    await self._client.send_chat(ctx.channel, chunk)
            except Exception:
                self._logger.exception("Failed to send reply to %s", ctx.username)
