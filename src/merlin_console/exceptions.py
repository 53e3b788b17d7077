"""
Exception types shared by the console, the message bus and the backend contracts.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from merlin_console.messages import UserMessage


class ConsoleError(Exception):
    """Base class for errors raised by the operator console."""


class BackendError(ConsoleError):
    """Raised by a collaborator query; carries the message to surface verbatim."""

    def __init__(self, message: "UserMessage") -> None:
        super().__init__(message.text)
        self.user_message = message


class DuplicateRegistrationError(ConsoleError):
    """Raised when a client id is registered with the message bus twice."""


class UnknownClientError(ConsoleError):
    """Raised when reading messages for a client that never registered."""


class ShellExit(ConsoleError):
    """Raised by a command handler to end the interactive session."""
