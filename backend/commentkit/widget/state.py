"""Widget application state and its reducer.

Uninitialized -> Initializing -> {Error, Ready}. Inside Ready the view
moves Loading -> Loaded -> Submitting -> Loaded, independently of whether
the visitor is a guest or signed in.

dispatch() is pure: it returns a new WidgetState and never performs I/O.
Every transition assigns values rather than toggling them, so replaying
the same message (a duplicate ``error`` or ``authStateChanged``) yields
the same state.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from commentkit.widget.messages import BridgeAction, BridgeMessage


class WidgetPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    ERROR = "error"
    READY = "ready"


class ViewPhase(str, Enum):
    """Sub-state of READY."""

    LOADING = "loading"
    LOADED = "loaded"
    SUBMITTING = "submitting"


class WidgetEventKind(str, Enum):
    """Local (non-postMessage) events fed to dispatch()."""

    INIT_STARTED = "init_started"
    INIT_SUCCEEDED = "init_succeeded"
    INIT_FAILED = "init_failed"
    LOAD_STARTED = "load_started"
    SUBMIT_STARTED = "submit_started"
    LOGIN_STARTED = "login_started"
    PAGE_LIKE_SET = "page_like_set"
    COMMENT_LIKE_SET = "comment_like_set"


@dataclass(frozen=True)
class WidgetEvent:
    kind: WidgetEventKind
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WidgetState:
    """Everything the widget renders from.

    Attributes:
        phase: Top-level lifecycle phase.
        view: Sub-state while READY.
        origin_token: Token from /widget/init.
        csrf_token: CSRF token from /widget/init.
        user: Signed-in user as reported by the iframe, else None.
        page: Page payload from the last commentsLoaded.
        comments: Comments from the last commentsLoaded.
        error: User-facing error text.
        error_detail: Optional second line for the error.
        error_type: "error" or "warning".
        auth_loading: A login/logout round-trip is in flight.
        login_sent: Magic link was emailed.
        login_email: Address the link went to.
        guest_comment_sent: A guest comment awaits moderation.
    """

    phase: WidgetPhase = WidgetPhase.UNINITIALIZED
    view: ViewPhase | None = None
    origin_token: str | None = None
    csrf_token: str | None = None
    user: dict[str, Any] | None = None
    page: dict[str, Any] | None = None
    comments: tuple[dict[str, Any], ...] = ()
    error: str | None = None
    error_detail: str | None = None
    error_type: str = "error"
    auth_loading: bool = False
    login_sent: bool = False
    login_email: str | None = None
    guest_comment_sent: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def page_likes(self) -> tuple[int, bool]:
        page = self.page or {}
        return int(page.get("likes", 0)), bool(page.get("user_liked", False))

    def comment(self, comment_id: str) -> dict[str, Any] | None:
        for comment in self.comments:
            if comment.get("id") == comment_id:
                return comment
        return None


# ===================================================================
# Reducer
# ===================================================================


def _on_event(state: WidgetState, event: WidgetEvent) -> WidgetState:
    payload = event.payload
    match event.kind:
        case WidgetEventKind.INIT_STARTED:
            return replace(state, phase=WidgetPhase.INITIALIZING, error=None)
        case WidgetEventKind.INIT_SUCCEEDED:
            return replace(
                state,
                phase=WidgetPhase.READY,
                view=ViewPhase.LOADING,
                origin_token=payload["origin_token"],
                csrf_token=payload["csrf_token"],
                error=None,
                error_detail=None,
            )
        case WidgetEventKind.INIT_FAILED:
            return replace(
                state,
                phase=WidgetPhase.ERROR,
                view=None,
                error=payload["message"],
                error_detail=payload.get("detail"),
                error_type=payload.get("type", "error"),
            )
        case WidgetEventKind.LOAD_STARTED:
            if state.phase is not WidgetPhase.READY:
                return state
            return replace(state, view=ViewPhase.LOADING)
        case WidgetEventKind.SUBMIT_STARTED:
            if state.phase is not WidgetPhase.READY:
                return state
            return replace(state, view=ViewPhase.SUBMITTING, guest_comment_sent=False)
        case WidgetEventKind.LOGIN_STARTED:
            return replace(state, auth_loading=True)
        case WidgetEventKind.PAGE_LIKE_SET:
            page = dict(state.page or {})
            page["likes"] = payload["likes"]
            page["user_liked"] = payload["user_liked"]
            return replace(state, page=page)
        case WidgetEventKind.COMMENT_LIKE_SET:
            comments = tuple(
                {**c, "likes": payload["likes"], "user_liked": payload["user_liked"]}
                if c.get("id") == payload["comment_id"]
                else c
                for c in state.comments
            )
            return replace(state, comments=comments)
    return state


def _on_message(state: WidgetState, message: BridgeMessage) -> WidgetState:
    payload = message.payload
    match message.action:
        case BridgeAction.BRIDGE_READY:
            return replace(state, user=payload.get("user"), view=ViewPhase.LOADING)
        case BridgeAction.COMMENTS_LOADED:
            page = dict(payload.get("data") or {})
            return replace(
                state,
                page=page,
                comments=tuple(page.get("comments") or ()),
                view=ViewPhase.LOADED,
                error=None,
                error_detail=None,
            )
        case BridgeAction.COMMENT_POSTED:
            return replace(
                state,
                view=ViewPhase.LOADED,
                login_sent=False,
                guest_comment_sent=state.user is None,
            )
        case BridgeAction.AUTH_STATE_CHANGED:
            return replace(
                state,
                user=payload.get("user"),
                auth_loading=False,
                login_sent=False,
                guest_comment_sent=False,
            )
        case BridgeAction.LOGIN_EMAIL_SENT:
            return replace(
                state,
                login_sent=True,
                login_email=payload.get("email"),
                auth_loading=False,
            )
        case BridgeAction.ERROR:
            message_text = payload.get("message") or "Something went wrong."
            detail = None
            error_type = "error"
            if "Site not found" in message_text:
                message_text = "Comments are not enabled for this domain yet."
                detail = (
                    "If you are the site owner, please add this domain in your "
                    "CommentKit dashboard."
                )
                error_type = "warning"
            view = ViewPhase.LOADED if state.phase is WidgetPhase.READY else state.view
            return replace(
                state,
                error=message_text,
                error_detail=detail,
                error_type=error_type,
                view=view,
                auth_loading=False,
            )
    # Host-to-frame actions and like replies do not change host state here
    return state


def dispatch(state: WidgetState, message: BridgeMessage | WidgetEvent) -> WidgetState:
    """Apply one inbound message or local event.

    Args:
        state: Current state.
        message: Bridge message from the iframe, or a local WidgetEvent.

    Returns:
        The next state (possibly the same object when nothing changes).
    """
    if isinstance(message, WidgetEvent):
        return _on_event(state, message)
    return _on_message(state, message)
