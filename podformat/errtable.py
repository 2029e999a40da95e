"""Error tables: numbered messages grouped by table base, and error reporting."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

ERRCODE_RANGE = 8
BITS_PER_CHAR = 6

_CHAR_SET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_"

ErrorHook = Callable[[Optional[str], int, Optional[str], tuple], None]


@dataclass(frozen=True)
class ErrorTable:
    """A run of messages whose codes start at base."""

    messages: tuple[str, ...]
    base: int

    def __init__(self, messages: Sequence[str], base: int) -> None:
        object.__setattr__(self, "messages", tuple(messages))
        object.__setattr__(self, "base", base)


def error_table_name(num: int) -> str:
    """Decode the table name packed into the high bits of an error code."""
    num = (num >> ERRCODE_RANGE) & 0o77777777
    mask = (1 << BITS_PER_CHAR) - 1
    chars = []
    for i in range(4, -1, -1):
        ch = (num >> (BITS_PER_CHAR * i)) & mask
        if ch:
            chars.append(_CHAR_SET[ch - 1])
    return "".join(chars)


class ErrorTableRegistry:
    """The set of error tables consulted when turning codes into messages."""

    def __init__(self) -> None:
        self._tables: list[ErrorTable] = []

    @property
    def tables(self) -> tuple[ErrorTable, ...]:
        return tuple(self._tables)

    def add_table(self, table: ErrorTable) -> None:
        """Register a table; raise ValueError if its base is already taken."""
        if any(t.base == table.base for t in self._tables):
            raise ValueError(f"an error table with base {table.base} exists")
        self._tables.insert(0, table)

    def remove_table(self, table: ErrorTable) -> None:
        """Unregister the table with the same base; raise LookupError if none."""
        for index, existing in enumerate(self._tables):
            if existing.base == table.base:
                del self._tables[index]
                return
        raise LookupError(f"no error table with base {table.base}")

    def init_table(self, messages: Sequence[str], base: int) -> None:
        """Register messages at base; empty messages or a zero base do nothing."""
        if not base or not messages:
            return
        self._tables.insert(0, ErrorTable(messages, base))

    def error_message(self, code: int) -> str:
        """Return the message for an error code."""
        offset = code & ((1 << ERRCODE_RANGE) - 1)
        table_num = code - offset
        if not table_num:
            return os.strerror(offset)
        for table in self._tables:
            if table.base == table_num:
                if offset < len(table.messages):
                    return table.messages[offset]
                break
        return f"Unknown code {error_table_name(table_num)} {offset}"


_registry = ErrorTableRegistry()


def error_message(code: int) -> str:
    """Return the message for an error code from the default registry."""
    return _registry.error_message(code)


def add_error_table(table: ErrorTable) -> None:
    """Register a table with the default registry."""
    _registry.add_table(table)


def remove_error_table(table: ErrorTable) -> None:
    """Unregister a table from the default registry."""
    _registry.remove_table(table)


def _default_hook(
    whoami: Optional[str], code: int, fmt: Optional[str], args: tuple
) -> None:
    parts = []
    if whoami:
        parts.append(f"{whoami}: ")
    if code:
        parts.append(f"{error_message(code)} ")
    if fmt:
        parts.append(fmt % args)
    parts.append("\r\n")
    sys.stderr.write("".join(parts))
    sys.stderr.flush()


class _HookState:
    hook: ErrorHook = _default_hook


def com_err(whoami: Optional[str], code: int, fmt: Optional[str], *args) -> None:
    """Report an error through the current hook."""
    _HookState.hook(whoami, code, fmt, args)


def set_com_err_hook(hook: Optional[ErrorHook]) -> ErrorHook:
    """Install a reporting hook (None restores the default); return the old one."""
    previous = _HookState.hook
    _HookState.hook = hook if hook is not None else _default_hook
    return previous


def reset_com_err_hook() -> ErrorHook:
    """Restore the default reporting hook; return the old one."""
    return set_com_err_hook(None)