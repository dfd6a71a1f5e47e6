"""Widget bridge: the host-page side and iframe side of the postMessage protocol.

The host page never calls mutating endpoints itself. It obtains tokens
from /widget/init, hands them to a hidden iframe served from the widget
origin, and exchanges ``{"type": "commentkit", "action": ...}`` messages
with it. The iframe is the only component that writes through the API.
"""

from commentkit.widget.channel import MessageChannel
from commentkit.widget.frame import FrameBridge, FrameParams
from commentkit.widget.host import BridgeRequestError, BridgeTimeoutError, HostBridge, WidgetConfig
from commentkit.widget.messages import BridgeAction, BridgeMessage
from commentkit.widget.registry import WidgetHandle, WidgetRegistry
from commentkit.widget.state import WidgetPhase, WidgetState, dispatch
from commentkit.widget.transport import PostMessageTransport, Window, connect

__all__ = [
    "BridgeAction",
    "BridgeMessage",
    "BridgeRequestError",
    "BridgeTimeoutError",
    "FrameBridge",
    "FrameParams",
    "HostBridge",
    "MessageChannel",
    "PostMessageTransport",
    "WidgetConfig",
    "WidgetHandle",
    "WidgetPhase",
    "WidgetRegistry",
    "WidgetState",
    "Window",
    "connect",
    "dispatch",
]
