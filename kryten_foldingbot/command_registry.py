"""Command descriptor table and the disabled-command set.

Every chat command is described once, at startup, by a CommandDescriptor.
The dispatcher resolves incoming text against this table and passes the
matching descriptor to the handler, so handlers never need to look up their
own metadata.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable

DISABLE_COMMAND = "disable command"
ENABLE_COMMAND = "enable command"


def normalize_command_name(name: str) -> str:
    """Collapse whitespace and case-fold a command name for matching."""
    return " ".join(name.split()).casefold()


@dataclass(frozen=True)
class CommandDescriptor:
    """Static metadata for a single chat command."""

    name: str
    handler: str
    summary: str
    usage: str | None = None
    aliases: tuple[str, ...] = field(default_factory=tuple)
    admin_only: bool = False
    hidden: bool = False
    long_running: bool = False
    development: bool = False

    @property
    def match_keys(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


class CommandRegistry:
    """Lookup table of command descriptors, keyed by name and alias."""

    def __init__(self, descriptors: Iterable[CommandDescriptor]) -> None:
        self._descriptors: dict[str, CommandDescriptor] = {}
        self._keys: dict[str, CommandDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise ValueError(f"Duplicate command: {descriptor.name}")
            self._descriptors[descriptor.name] = descriptor
            for key in descriptor.match_keys:
                self._keys[normalize_command_name(key)] = descriptor

        # Longest key first so "disable command" wins over a shorter prefix
        self._ordered_keys = sorted(self._keys, key=len, reverse=True)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: str) -> bool:
        return normalize_command_name(name) in self._keys

    def get(self, name: str) -> CommandDescriptor | None:
        return self._keys.get(normalize_command_name(name))

    def commands(self) -> list[CommandDescriptor]:
        """Return every registered descriptor in registration order."""
        return list(self._descriptors.values())

    def resolve(self, text: str) -> tuple[CommandDescriptor, str] | None:
        """Match the start of *text* against command names and aliases.

        Returns ``(descriptor, remainder)`` where remainder is the argument
        text with surrounding whitespace removed, or None when nothing matches.
        """
        words = text.split()
        if not words:
            return None
        folded = [w.casefold() for w in words]

        for key in self._ordered_keys:
            key_words = key.split(" ")
            if folded[: len(key_words)] == key_words:
                remainder = " ".join(words[len(key_words):])
                return self._keys[key], remainder
        return None


class DisabledCommands:
    """Mutable set of command names that are currently switched off.

    Names are not validated against the registry. The disable and enable
    commands themselves can never be added, so an admin cannot lock out the
    only way back.
    """

    PROTECTED: frozenset[str] = frozenset({DISABLE_COMMAND, ENABLE_COMMAND})

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._names: set[str] = set()
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger("foldingbot.commands")

    def disable(self, name: str) -> bool:
        """Add *name*. Returns False if the name is protected."""
        key = normalize_command_name(name)
        if key in self.PROTECTED:
            self._logger.warning("Refusing to disable '%s'", key)
            return False
        with self._lock:
            self._names.add(key)
        self._logger.debug("Disabled command '%s'", key)
        return True

    def enable(self, name: str) -> None:
        key = normalize_command_name(name)
        with self._lock:
            self._names.discard(key)
        self._logger.debug("Enabled command '%s'", key)

    def is_disabled(self, name: str) -> bool:
        key = normalize_command_name(name)
        with self._lock:
            return key in self._names

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._names)

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)
