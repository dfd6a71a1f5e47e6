"""Host-page side of the widget bridge.

The host obtains an origin token and CSRF token from /widget/init, points
a hidden iframe at the widget origin with both tokens in its URL, and from
then on talks to the iframe over postMessage only. Like toggles are the
one request/response exchange: each carries a messageId and waits at most
LIKE_TIMEOUT_SECONDS for the matching reply.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from commentkit.widget.channel import ChannelClosedError, MessageChannel
from commentkit.widget.messages import FRAME_TO_HOST, BridgeAction, BridgeMessage
from commentkit.widget.state import (
    WidgetEvent,
    WidgetEventKind,
    WidgetPhase,
    WidgetState,
    dispatch,
)
from commentkit.widget.transport import MessageTransport

logger = logging.getLogger(__name__)

LIKE_TIMEOUT_SECONDS = 5.0

CONNECT_FAILED_MESSAGE = "Failed to connect to CommentKit. Please try again later."


class BridgeTimeoutError(Exception):
    """No reply to a correlated request within the timeout."""


class BridgeRequestError(Exception):
    """The iframe answered a correlated request with an error."""


@dataclass(frozen=True)
class WidgetConfig:
    """Embed configuration of one widget instance.

    Attributes:
        domain: Hostname the site is registered under.
        page_id: Page identifier (slug) within the site.
        page_title: Optional title stored on first comment.
        page_url: Optional canonical URL of the page.
        widget_base: Origin serving the widget iframe.
        api_base: Base URL of the API.
        parent_origin: Origin of the host page itself.
    """

    domain: str
    page_id: str
    widget_base: str
    api_base: str
    parent_origin: str
    page_title: str | None = None
    page_url: str | None = None


def init_error_message(code: str | None) -> tuple[str, str | None, str]:
    """Map a /widget/init error code to (message, detail, type).

    Only the two remediation paths are told apart; anything else gets a
    generic message so no server detail reaches the page.
    """
    if code == "DOMAIN_NOT_REGISTERED":
        return (
            "Comments are not enabled for this domain yet.",
            "If you are the site owner, please add this domain in your "
            "CommentKit dashboard.",
            "warning",
        )
    if code == "DOMAIN_NOT_VERIFIED":
        return (
            "This site is not verified with CommentKit.",
            "Site owners must verify domain ownership to enable comments.",
            "error",
        )
    return "Failed to initialize CommentKit.", None, "error"


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("code")
    return None


class HostBridge:
    """One embedded widget as seen from the host page.

    Usage:
        bridge = HostBridge(config, http)
        state = await bridge.initialize()
        bridge.attach(transport)
        asyncio.create_task(bridge.run())
    """

    def __init__(
        self,
        config: WidgetConfig,
        http: httpx.AsyncClient,
        *,
        like_timeout: float = LIKE_TIMEOUT_SECONDS,
    ) -> None:
        self.config = config
        self.http = http
        self.like_timeout = like_timeout
        self.state = WidgetState()
        self.channel = MessageChannel(
            config.widget_base, accepted_actions=FRAME_TO_HOST
        )
        self._transport: MessageTransport | None = None
        self._pending: dict[str, asyncio.Future[BridgeMessage]] = {}

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def _apply(self, event: WidgetEvent | BridgeMessage) -> None:
        self.state = dispatch(self.state, event)

    # ===================================================================
    # Bootstrap
    # ===================================================================

    async def initialize(self) -> WidgetState:
        """Fetch the origin and CSRF tokens.

        Failure moves the widget to ERROR with a user-facing message. The
        call is not retried.
        """
        self._apply(WidgetEvent(WidgetEventKind.INIT_STARTED))
        url = f"{self.config.api_base}/api/v1/widget/init"
        try:
            response = await self.http.get(
                url, headers={"Origin": self.config.parent_origin}
            )
        except httpx.HTTPError:
            logger.warning("Widget init request failed", exc_info=True)
            self._apply(
                WidgetEvent(
                    WidgetEventKind.INIT_FAILED, {"message": CONNECT_FAILED_MESSAGE}
                )
            )
            return self.state

        data = None
        if response.status_code == 200:
            data = response.json().get("data") or {}
        if not data or not data.get("token"):
            message, detail, error_type = init_error_message(_error_code(response))
            logger.info(
                "Widget init rejected for %s (HTTP %s)",
                self.config.domain,
                response.status_code,
            )
            self._apply(
                WidgetEvent(
                    WidgetEventKind.INIT_FAILED,
                    {"message": message, "detail": detail, "type": error_type},
                )
            )
            return self.state

        self._apply(
            WidgetEvent(
                WidgetEventKind.INIT_SUCCEEDED,
                {"origin_token": data["token"], "csrf_token": data["csrfToken"]},
            )
        )
        return self.state

    def iframe_url(self) -> str:
        """URL of the hidden bridge iframe.

        Raises:
            RuntimeError: initialize() has not succeeded.
        """
        if self.state.phase is not WidgetPhase.READY:
            msg = "Widget is not initialized"
            raise RuntimeError(msg)
        params = {
            "domain": self.config.domain,
            "pageId": self.config.page_id,
            "parentOrigin": self.config.parent_origin,
            "apiBase": self.config.api_base,
            "csrfToken": self.state.csrf_token or "",
            "originToken": self.state.origin_token or "",
        }
        return f"{self.config.widget_base}/widget?{urlencode(params)}"

    def attach(self, transport: MessageTransport) -> None:
        """Set the transport that posts into the iframe."""
        self._transport = transport

    # ===================================================================
    # Outbound
    # ===================================================================

    async def send(
        self,
        action: BridgeAction,
        payload: dict[str, Any] | None = None,
        *,
        message_id: str | None = None,
    ) -> None:
        """Post one message to the iframe, targeted at the widget origin."""
        if self._transport is None:
            msg = "No iframe transport attached"
            raise RuntimeError(msg)
        message = BridgeMessage(action, payload or {}, message_id)
        await self._transport.post_message(message.to_wire(), self.config.widget_base)

    def _page_fields(self) -> dict[str, Any]:
        return {
            "domain": self.config.domain,
            "pageId": self.config.page_id,
            "pageTitle": self.config.page_title,
            "pageUrl": self.config.page_url,
        }

    async def load_comments(self, *, refresh: bool = False) -> None:
        """Ask the iframe for the page's comments.

        A refresh keeps the current view instead of showing the loading state.
        """
        if not refresh:
            self._apply(WidgetEvent(WidgetEventKind.LOAD_STARTED))
        await self.send(BridgeAction.LOAD_COMMENTS, self._page_fields())

    async def post_comment(
        self,
        content: str,
        *,
        author_name: str | None = None,
        author_email: str | None = None,
        parent_id: str | None = None,
    ) -> None:
        self._apply(WidgetEvent(WidgetEventKind.SUBMIT_STARTED))
        payload = self._page_fields()
        payload["content"] = content
        if author_name is not None:
            payload["authorName"] = author_name
        if author_email is not None:
            payload["authorEmail"] = author_email
        if parent_id is not None:
            payload["parentId"] = parent_id
        await self.send(BridgeAction.POST_COMMENT, payload)

    async def login(self, email: str) -> None:
        self._apply(WidgetEvent(WidgetEventKind.LOGIN_STARTED))
        await self.send(BridgeAction.LOGIN, {"email": email})

    async def logout(self) -> None:
        self._apply(WidgetEvent(WidgetEventKind.LOGIN_STARTED))
        await self.send(BridgeAction.LOGOUT)

    # ===================================================================
    # Correlated requests (likes)
    # ===================================================================

    async def _request(
        self, action: BridgeAction, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Send a request and wait for the reply carrying the same messageId.

        The waiter is removed on reply, on error and on timeout alike.

        Raises:
            BridgeTimeoutError: No reply within like_timeout.
            BridgeRequestError: The reply carried an error.
        """
        message_id = secrets.token_hex(8)
        future: asyncio.Future[BridgeMessage] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[message_id] = future
        try:
            await self.send(action, payload, message_id=message_id)
            reply = await asyncio.wait_for(future, timeout=self.like_timeout)
        except TimeoutError as exc:
            raise BridgeTimeoutError(action.value) from exc
        finally:
            self._pending.pop(message_id, None)

        if reply.payload.get("error"):
            raise BridgeRequestError(str(reply.payload["error"]))
        return reply.payload.get("data") or {}

    async def toggle_page_like(self) -> tuple[int, bool]:
        """Flip the caller's like on the page.

        The count updates optimistically and is rolled back if the iframe
        reports an error or does not answer.

        Returns:
            (total_likes, user_liked) as confirmed by the server.
        """
        previous_likes, previous_liked = self.state.page_likes
        should_like = not previous_liked
        self._apply(
            WidgetEvent(
                WidgetEventKind.PAGE_LIKE_SET,
                {
                    "likes": max(0, previous_likes + (1 if should_like else -1)),
                    "user_liked": should_like,
                },
            )
        )
        page_key = (self.state.page or {}).get("page_id")
        try:
            data = await self._request(
                BridgeAction.TOGGLE_PAGE_LIKE,
                {"pageId": page_key, "shouldLike": should_like},
            )
        except (BridgeTimeoutError, BridgeRequestError):
            self._apply(
                WidgetEvent(
                    WidgetEventKind.PAGE_LIKE_SET,
                    {"likes": previous_likes, "user_liked": previous_liked},
                )
            )
            raise

        total = int(data.get("total_likes", 0))
        liked = bool(data.get("user_liked", False))
        self._apply(
            WidgetEvent(
                WidgetEventKind.PAGE_LIKE_SET, {"likes": total, "user_liked": liked}
            )
        )
        return total, liked

    async def toggle_comment_like(self, comment_id: str) -> tuple[int, bool]:
        """Flip the caller's like on one comment; same contract as the page."""
        comment = self.state.comment(comment_id)
        if comment is None:
            msg = f"Unknown comment {comment_id}"
            raise KeyError(msg)
        previous_likes = int(comment.get("likes", 0))
        previous_liked = bool(comment.get("user_liked", False))
        should_like = not previous_liked
        self._apply(
            WidgetEvent(
                WidgetEventKind.COMMENT_LIKE_SET,
                {
                    "comment_id": comment_id,
                    "likes": max(0, previous_likes + (1 if should_like else -1)),
                    "user_liked": should_like,
                },
            )
        )
        try:
            data = await self._request(
                BridgeAction.TOGGLE_COMMENT_LIKE,
                {"commentId": comment_id, "shouldLike": should_like},
            )
        except (BridgeTimeoutError, BridgeRequestError):
            self._apply(
                WidgetEvent(
                    WidgetEventKind.COMMENT_LIKE_SET,
                    {
                        "comment_id": comment_id,
                        "likes": previous_likes,
                        "user_liked": previous_liked,
                    },
                )
            )
            raise

        total = int(data.get("total_likes", 0))
        liked = bool(data.get("user_liked", False))
        self._apply(
            WidgetEvent(
                WidgetEventKind.COMMENT_LIKE_SET,
                {"comment_id": comment_id, "likes": total, "user_liked": liked},
            )
        )
        return total, liked

    # ===================================================================
    # Inbound
    # ===================================================================

    async def handle(self, message: BridgeMessage) -> None:
        """Apply one message from the iframe and run its follow-up."""
        if message.message_id is not None and message.message_id in self._pending:
            future = self._pending[message.message_id]
            if not future.done():
                future.set_result(message)
            return
        if message.action in (
            BridgeAction.TOGGLE_PAGE_LIKE,
            BridgeAction.TOGGLE_COMMENT_LIKE,
        ):
            # Late reply to a request that already timed out
            return

        self._apply(message)

        if message.action is BridgeAction.BRIDGE_READY:
            await self.load_comments()
        elif message.action is BridgeAction.COMMENT_POSTED:
            await self.load_comments(refresh=True)

    async def run(self) -> None:
        """Consume the inbox until the channel is closed."""
        while True:
            try:
                message = await self.channel.receive()
            except ChannelClosedError:
                return
            await self.handle(message)

    def close(self) -> None:
        self.channel.close()
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()
