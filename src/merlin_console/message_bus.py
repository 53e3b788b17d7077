"""
Message bus between backend operations and the console.

Producers (command handlers, or backend threads finishing work out of line)
publish UserMessages; each registered client owns a bounded FIFO inbox that a
single consumer drains. Inboxes are ``queue.Queue`` so publishing is safe from
any thread.
"""

import logging
import queue
import threading
import uuid
from typing import Dict, Optional

from merlin_console import messages
from merlin_console.exceptions import DuplicateRegistrationError, UnknownClientError
from merlin_console.messages import UserMessage

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1024
DEFAULT_PUBLISH_TIMEOUT = 0.5


class _Inbox:
    def __init__(self, maxsize: int) -> None:
        self.queue: "queue.Queue[UserMessage]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.lock = threading.Lock()


class MessageBus:
    """Thread-safe, per-client FIFO delivery of user messages."""

    def __init__(
        self,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT,
    ) -> None:
        self._queue_size = queue_size
        self._publish_timeout = publish_timeout
        self._inboxes: Dict[uuid.UUID, _Inbox] = {}
        self._lock = threading.Lock()

    def register(self, client_id: uuid.UUID) -> UserMessage:
        """Create an inbox for ``client_id``.

        Raises:
            DuplicateRegistrationError: if the client is already registered.
        """
        with self._lock:
            if client_id in self._inboxes:
                raise DuplicateRegistrationError(
                    f"client {client_id} is already registered"
                )
            self._inboxes[client_id] = _Inbox(self._queue_size)
        logger.info("Registered message client %s", client_id)
        return messages.debug(f"Registered client {client_id} with the message bus")

    def is_registered(self, client_id: uuid.UUID) -> bool:
        with self._lock:
            return client_id in self._inboxes

    def publish(
        self, message: UserMessage, client_id: Optional[uuid.UUID] = None
    ) -> bool:
        """Deliver ``message`` to one client, or to every registered client.

        Waits at most ``publish_timeout`` seconds per full inbox. Returns False
        if any delivery timed out; the drop is counted and announced to the
        affected client on its next read.
        """
        with self._lock:
            if client_id is None:
                targets = list(self._inboxes.values())
            elif client_id in self._inboxes:
                targets = [self._inboxes[client_id]]
            else:
                raise UnknownClientError(f"client {client_id} is not registered")

        delivered = True
        for inbox in targets:
            try:
                inbox.queue.put(message, timeout=self._publish_timeout)
            except queue.Full:
                with inbox.lock:
                    inbox.dropped += 1
                logger.warning("Message bus inbox full; dropped: %r", message.text)
                delivered = False
        return delivered

    def get_message(
        self, client_id: uuid.UUID, timeout: Optional[float] = None
    ) -> Optional[UserMessage]:
        """Return the next message for ``client_id``, or None on timeout."""
        with self._lock:
            inbox = self._inboxes.get(client_id)
        if inbox is None:
            raise UnknownClientError(f"client {client_id} is not registered")

        with inbox.lock:
            dropped, inbox.dropped = inbox.dropped, 0
        if dropped:
            return messages.warn(
                f"{dropped} message(s) dropped; the console could not keep up",
                is_error=True,
            )

        try:
            return inbox.queue.get(timeout=timeout)
        except queue.Empty:
            return None
