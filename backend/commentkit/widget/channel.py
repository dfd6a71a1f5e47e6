"""Bounded, origin-gated inbox for bridge messages.

deliver() is the receive boundary: the sender's origin is compared with
the one expected origin before any field of the data is looked at. Data
from other origins, with the wrong type or with an action outside the
accepted set is dropped silently. A full inbox drops as well instead of
blocking the sender.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable

from commentkit.widget.messages import BridgeAction, BridgeMessage

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 64


class ChannelClosedError(Exception):
    """receive() on a closed, drained channel."""


class MessageChannel:
    """Per-widget message queue with a mandatory origin gate."""

    def __init__(
        self,
        expected_origin: str,
        *,
        accepted_actions: Iterable[BridgeAction] | None = None,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if not expected_origin or expected_origin == "*":
            msg = "expected_origin must be a concrete origin"
            raise ValueError(msg)
        self.expected_origin = expected_origin
        self.accepted_actions = (
            frozenset(accepted_actions) if accepted_actions is not None else None
        )
        self._queue: asyncio.Queue[BridgeMessage | None] = asyncio.Queue(capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, origin: str, data: object) -> bool:
        """Offer raw postMessage data to the channel.

        Args:
            origin: Origin of the sending window (event.origin).
            data: Message data as posted.

        Returns:
            True if the message was queued.
        """
        if origin != self.expected_origin:
            logger.debug("Dropped message from unexpected origin %s", origin)
            return False
        if self._closed:
            return False

        message = BridgeMessage.from_wire(data)
        if message is None:
            return False
        if self.accepted_actions is not None and message.action not in self.accepted_actions:
            return False

        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Bridge channel full; dropped %s", message.action.value)
            return False
        return True

    async def receive(self) -> BridgeMessage:
        """Wait for the next message.

        Raises:
            ChannelClosedError: The channel was closed and is empty.
        """
        if self._closed and self._queue.empty():
            raise ChannelClosedError()
        message = await self._queue.get()
        if message is None:
            raise ChannelClosedError()
        return message

    def receive_nowait(self) -> BridgeMessage | None:
        """Next queued message, or None when nothing is waiting."""
        try:
            message = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return message

    def close(self) -> None:
        """Stop accepting messages and wake a pending receive()."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # receive() checks _closed once the backlog is drained
            pass

    def __len__(self) -> int:
        return self._queue.qsize()

    async def __aiter__(self) -> AsyncIterator[BridgeMessage]:
        while True:
            try:
                yield await self.receive()
            except ChannelClosedError:
                return
