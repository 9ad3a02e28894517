"""Reply text builders for the folding bot.

Pure functions: nothing here touches the network or the clock, so every
reply can be checked with fixed inputs.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .command_registry import CommandDescriptor
    from .folding_client import DistroUser

MAX_REPLY_LENGTH = 2000
ELLIPSIS = "..."

HELP_INTRO = (
    "Are you trying to use me? Tag me, tell me a command, "
    "and provide additional information when needed."
)


def truncate(text: str, limit: int = MAX_REPLY_LENGTH) -> str:
    """Hard-truncate *text* to *limit* characters, ending in '...'."""
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


# ══════════════════════════════════════════════════════════
#  Help
# ══════════════════════════════════════════════════════════

def format_command_line(descriptor: CommandDescriptor) -> str:
    if descriptor.usage:
        return f"\t{descriptor.name} {descriptor.usage} - {descriptor.summary}"
    return f"\t{descriptor.name} - {descriptor.summary}"


def format_help(bot_name: str, commands: Iterable[CommandDescriptor]) -> str:
    """Build the help listing, one line per command sorted by name."""
    lines = [
        HELP_INTRO,
        "",
        f"Usage: @{bot_name} {{command}} {{data}}",
        "",
        "Commands -",
    ]
    for descriptor in sorted(commands, key=lambda d: d.name):
        lines.append(format_command_line(descriptor))
    return "\n".join(lines)


# ══════════════════════════════════════════════════════════
#  Distribution date
# ══════════════════════════════════════════════════════════

def distribution_date(year: int, month: int) -> datetime:
    """First Saturday of the given month, at midnight."""
    first = date(year, month, 1)
    offset = (calendar.SATURDAY - first.weekday()) % 7
    day = first + timedelta(days=offset)
    return datetime(day.year, day.month, day.day)


def next_distribution(now: datetime) -> datetime | None:
    """Return the upcoming distribution day, or None if it is today.

    The distribution window runs from midnight until one minute before the
    following midnight. Once it has passed, the next one is the first
    Saturday of the following month.
    """
    # Compare naive local times
    now = now.replace(tzinfo=None)
    start = distribution_date(now.year, now.month)
    end = start + timedelta(days=1) - timedelta(minutes=1)

    if now < start:
        return start
    if now <= end:
        return None

    if now.month == 12:
        return distribution_date(now.year + 1, 1)
    return distribution_date(now.year, now.month + 1)


def format_short_date(value: datetime) -> str:
    """M/D/YYYY without zero padding."""
    return f"{value.month}/{value.day}/{value.year}"


def format_distribution(now: datetime) -> str:
    upcoming = next_distribution(now)
    if upcoming is None:
        return "The distribution is today!"
    return f"The next distribution is {format_short_date(upcoming)}"


# ══════════════════════════════════════════════════════════
#  Stats API replies
# ══════════════════════════════════════════════════════════

def format_user_stats(user: DistroUser) -> str:
    return "\n".join([
        f"Results for: {user.bitcoin_address}",
        f"\tPoints gained: {user.points_gained}",
        f"\tWork units gained: {user.work_units_gained}",
        f"\tReceiving amount: {user.amount}",
    ])


def format_matches(names: Iterable[str]) -> str:
    body = ",\n\t".join(names)
    return truncate(f"Found the following matches:\n\t{body}")


# ══════════════════════════════════════════════════════════
#  Chat delivery
# ══════════════════════════════════════════════════════════

def split_message(message: str, limit: int) -> list[str]:
    """Split a long reply into chunks that fit the chat message limit.

    Splits at ``\\n`` boundaries, keeping each chunk ≤ *limit* chars.
    A single line longer than the limit is forced through unsplit.
    """
    if len(message) <= limit:
        return [message]

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0

    for line in message.split("\n"):
        # +1 accounts for the '\n' join character
        added_len = len(line) + (1 if current else 0)
        if current and current_len + added_len > limit:
            chunks.append("\n".join(current))
            current = [line]
            current_len = len(line)
        else:
            current.append(line)
            current_len += added_len

    if current:
        chunks.append("\n".join(current))

    return chunks
