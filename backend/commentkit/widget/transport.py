"""In-process postMessage transport between two windows.

Models the browser contract the bridge relies on:
- the sender names an explicit target origin; ``"*"`` is refused
- delivery only happens when the recipient's origin equals that target
- the recipient learns the sender's true origin (event.origin)
- data is structured-cloned, never shared
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from commentkit.widget.channel import MessageChannel

logger = logging.getLogger(__name__)


class MessageTransport(Protocol):
    """Outbound side of postMessage."""

    async def post_message(self, data: dict[str, Any], target_origin: str) -> None: ...


@dataclass
class Window:
    """A browsing context: its origin and the inbox its listener reads."""

    origin: str
    channel: MessageChannel


class PostMessageTransport:
    """Posts from one window to another."""

    def __init__(self, sender_origin: str, recipient: Window) -> None:
        self.sender_origin = sender_origin
        self.recipient = recipient

    async def post_message(self, data: dict[str, Any], target_origin: str) -> None:
        """Deliver data to the recipient if it lives at target_origin.

        Raises:
            ValueError: target_origin is "*" or empty.
        """
        if not target_origin or target_origin == "*":
            msg = "postMessage requires an explicit target origin"
            raise ValueError(msg)
        if target_origin != self.recipient.origin:
            # Browsers drop the message silently on a target mismatch
            logger.debug(
                "postMessage target %s does not match recipient %s",
                target_origin,
                self.recipient.origin,
            )
            return
        self.recipient.channel.deliver(self.sender_origin, copy.deepcopy(data))


def connect(host: Window, frame: Window) -> tuple[PostMessageTransport, PostMessageTransport]:
    """Wire a host page and its iframe together.

    Returns:
        (host_to_frame, frame_to_host) transports.
    """
    return (
        PostMessageTransport(host.origin, frame),
        PostMessageTransport(frame.origin, host),
    )
