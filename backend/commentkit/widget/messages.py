"""postMessage envelope and the fixed action vocabulary.

Every message is a dict ``{"type": "commentkit", "action": <action>, ...}``.
Anything else (wrong type, unknown action, non-dict data) is not a bridge
message and is ignored by receivers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MESSAGE_TYPE = "commentkit"


class BridgeAction(str, Enum):
    """Actions understood by the bridge."""

    # Host page -> iframe
    LOAD_COMMENTS = "loadComments"
    POST_COMMENT = "postComment"
    LOGIN = "login"
    LOGOUT = "logout"
    TOGGLE_PAGE_LIKE = "togglePageLike"
    TOGGLE_COMMENT_LIKE = "toggleCommentLike"

    # Iframe -> host page
    BRIDGE_READY = "bridgeReady"
    COMMENTS_LOADED = "commentsLoaded"
    COMMENT_POSTED = "commentPosted"
    AUTH_STATE_CHANGED = "authStateChanged"
    LOGIN_EMAIL_SENT = "loginEmailSent"
    ERROR = "error"


HOST_TO_FRAME = frozenset(
    {
        BridgeAction.LOAD_COMMENTS,
        BridgeAction.POST_COMMENT,
        BridgeAction.LOGIN,
        BridgeAction.LOGOUT,
        BridgeAction.TOGGLE_PAGE_LIKE,
        BridgeAction.TOGGLE_COMMENT_LIKE,
    }
)

# Like toggles are answered with the same action plus the request's messageId
FRAME_TO_HOST = frozenset(
    {
        BridgeAction.BRIDGE_READY,
        BridgeAction.COMMENTS_LOADED,
        BridgeAction.COMMENT_POSTED,
        BridgeAction.AUTH_STATE_CHANGED,
        BridgeAction.LOGIN_EMAIL_SENT,
        BridgeAction.ERROR,
        BridgeAction.TOGGLE_PAGE_LIKE,
        BridgeAction.TOGGLE_COMMENT_LIKE,
    }
)

_RESERVED_KEYS = ("type", "action", "messageId")


@dataclass(frozen=True)
class BridgeMessage:
    """One decoded bridge message.

    Attributes:
        action: What the message asks for or reports.
        payload: Remaining fields of the envelope.
        message_id: Correlation id for request/response pairs.
    """

    action: BridgeAction
    payload: dict[str, Any] = field(default_factory=dict)
    message_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Envelope dict suitable for postMessage."""
        data: dict[str, Any] = {"type": MESSAGE_TYPE, "action": self.action.value}
        data.update(self.payload)
        if self.message_id is not None:
            data["messageId"] = self.message_id
        return data

    @classmethod
    def from_wire(cls, data: object) -> "BridgeMessage | None":
        """Decode an envelope; None for anything that is not a bridge message."""
        if not isinstance(data, dict) or data.get("type") != MESSAGE_TYPE:
            return None
        try:
            action = BridgeAction(data.get("action"))
        except ValueError:
            return None
        message_id = data.get("messageId")
        payload = {k: v for k, v in data.items() if k not in _RESERVED_KEYS}
        return cls(
            action=action,
            payload=payload,
            message_id=str(message_id) if message_id is not None else None,
        )
