"""
User messages: the leveled, timestamped units of console output.

Messages carry semantics only (level + text, optionally a table). Colors and
prefixes are applied by the console renderer at print time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional, Sequence, Tuple, Union


class MessageLevel(IntEnum):
    """Severity of a user message."""

    PLAIN = 0
    INFO = 1
    NOTE = 2
    WARN = 3
    DEBUG = 4
    SUCCESS = 5


@dataclass(frozen=True)
class TableData:
    """A table to render alongside (or instead of) message text."""

    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...] = ()
    title: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UserMessage:
    """A single message destined for the operator console.

    Attributes:
        level: Severity; a MessageLevel, or a raw int coming from a backend.
        text: The message body.
        time: When the message was produced (UTC).
        is_error: Set by collaborators when the message reports a failure.
        table: Optional tabular payload rendered after the text.
    """

    level: Union[MessageLevel, int]
    text: str
    time: datetime = field(default_factory=_utcnow)
    is_error: bool = False
    table: Optional[TableData] = None


def plain(text: str, is_error: bool = False) -> UserMessage:
    return UserMessage(MessageLevel.PLAIN, text, is_error=is_error)


def info(text: str, is_error: bool = False) -> UserMessage:
    return UserMessage(MessageLevel.INFO, text, is_error=is_error)


def note(text: str, is_error: bool = False) -> UserMessage:
    return UserMessage(MessageLevel.NOTE, text, is_error=is_error)


def warn(text: str, is_error: bool = False) -> UserMessage:
    return UserMessage(MessageLevel.WARN, text, is_error=is_error)


def debug(text: str) -> UserMessage:
    return UserMessage(MessageLevel.DEBUG, text)


def success(text: str) -> UserMessage:
    return UserMessage(MessageLevel.SUCCESS, text)


def table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    title: Optional[str] = None,
    text: str = "",
) -> UserMessage:
    """Build a PLAIN message carrying a table."""
    data = TableData(
        headers=tuple(headers),
        rows=tuple(tuple(str(cell) for cell in row) for row in rows),
        title=title,
    )
    return UserMessage(MessageLevel.PLAIN, text, table=data)
