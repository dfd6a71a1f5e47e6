"""Iframe side of the widget bridge.

The iframe is served from the widget origin and is the only component
that issues mutating API calls. It learns the host page's origin and the
two tokens from its own URL, accepts host-to-frame actions only from that
origin, and answers each one with an ack posted back to it.
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

import httpx

from commentkit.widget.channel import ChannelClosedError, MessageChannel
from commentkit.widget.messages import HOST_TO_FRAME, BridgeAction, BridgeMessage
from commentkit.widget.transport import MessageTransport

logger = logging.getLogger(__name__)

_GENERIC_ERROR = "Something went wrong. Please try again."


@dataclass(frozen=True)
class FrameParams:
    """URL parameters the host page passes to the iframe."""

    domain: str
    page_id: str
    parent_origin: str
    api_base: str
    csrf_token: str
    origin_token: str

    @classmethod
    def from_url(cls, url: str) -> "FrameParams":
        """Read the parameters from the iframe's URL.

        Raises:
            ValueError: A required parameter is missing or empty.
        """
        query = parse_qs(urlsplit(url).query)

        def _one(name: str) -> str:
            values = query.get(name)
            if not values or not values[0]:
                msg = f"Missing iframe parameter: {name}"
                raise ValueError(msg)
            return values[0]

        return cls(
            domain=_one("domain"),
            page_id=_one("pageId"),
            parent_origin=_one("parentOrigin"),
            api_base=_one("apiBase"),
            csrf_token=_one("csrfToken"),
            origin_token=_one("originToken"),
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return _GENERIC_ERROR
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return _GENERIC_ERROR


class FrameBridge:
    """Bridge endpoint living inside the widget iframe."""

    def __init__(
        self,
        params: FrameParams,
        http: httpx.AsyncClient,
        *,
        frame_origin: str,
    ) -> None:
        self.params = params
        self.http = http
        self.frame_origin = frame_origin
        self.channel = MessageChannel(
            params.parent_origin, accepted_actions=HOST_TO_FRAME
        )
        self._transport: MessageTransport | None = None

    def attach(self, transport: MessageTransport) -> None:
        """Set the transport that posts to the parent window."""
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self.params.api_base}/api/v1{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Origin": self.frame_origin,
            "X-CSRF-Token": self.params.csrf_token,
            "X-Origin-Token": self.params.origin_token,
        }

    async def reply(
        self,
        action: BridgeAction,
        payload: dict[str, Any] | None = None,
        *,
        message_id: str | None = None,
    ) -> None:
        """Post an ack to the parent page, targeted at its origin only."""
        if self._transport is None:
            msg = "No parent transport attached"
            raise RuntimeError(msg)
        message = BridgeMessage(action, payload or {}, message_id)
        await self._transport.post_message(
            message.to_wire(), self.params.parent_origin
        )

    async def _fail(self, message: str) -> None:
        await self.reply(BridgeAction.ERROR, {"message": message})

    # ===================================================================
    # Auth
    # ===================================================================

    async def _current_user(self) -> dict[str, Any] | None:
        try:
            response = await self.http.get(
                self._url("/auth/me"), headers={"Origin": self.frame_origin}
            )
        except httpx.HTTPError:
            logger.warning("Auth check failed", exc_info=True)
            return None
        if response.status_code != 200:
            return None
        return response.json().get("data")

    async def start(self) -> None:
        """Announce readiness with the current auth state."""
        user = await self._current_user()
        await self.reply(BridgeAction.BRIDGE_READY, {"user": user})

    async def refresh_auth(self) -> None:
        """Re-read the session (e.g. after a magic link was redeemed)."""
        user = await self._current_user()
        await self.reply(BridgeAction.AUTH_STATE_CHANGED, {"user": user})

    # ===================================================================
    # Action handlers
    # ===================================================================

    async def _load_comments(self, message: BridgeMessage) -> None:
        payload = message.payload
        params = {
            "domain": payload.get("domain") or self.params.domain,
            "pageId": payload.get("pageId") or self.params.page_id,
        }
        if payload.get("pageTitle"):
            params["title"] = payload["pageTitle"]
        response = await self.http.get(
            self._url("/sites/comments"),
            params=params,
            headers={"Origin": self.frame_origin},
        )
        if response.status_code != 200:
            await self._fail(_error_message(response))
            return
        await self.reply(
            BridgeAction.COMMENTS_LOADED, {"data": response.json()["data"]}
        )

    async def _post_comment(self, message: BridgeMessage) -> None:
        payload = message.payload
        body = {
            "domain": self.params.domain,
            "pageId": payload.get("pageId") or self.params.page_id,
            "content": payload.get("content", ""),
            "author_name": payload.get("authorName"),
            "author_email": payload.get("authorEmail"),
            "parent_id": payload.get("parentId"),
            "page_title": payload.get("pageTitle"),
            "page_url": payload.get("pageUrl"),
        }
        body = {key: value for key, value in body.items() if value is not None}
        response = await self.http.post(
            self._url("/sites/comments"), json=body, headers=self._headers()
        )
        if response.status_code != 201:
            await self._fail(_error_message(response))
            return
        await self.reply(BridgeAction.COMMENT_POSTED, {"data": response.json()["data"]})

    async def _login(self, message: BridgeMessage) -> None:
        email = message.payload.get("email")
        response = await self.http.post(
            self._url("/auth/login"), json={"email": email}, headers=self._headers()
        )
        if response.status_code != 200:
            await self._fail(_error_message(response))
            return
        await self.reply(BridgeAction.LOGIN_EMAIL_SENT, {"email": email})

    async def _logout(self, _message: BridgeMessage) -> None:
        # Logout is idempotent server-side; the local state clears regardless
        await self.http.post(self._url("/auth/logout"), headers=self._headers())
        await self.reply(BridgeAction.AUTH_STATE_CHANGED, {"user": None})

    async def _toggle_like(self, message: BridgeMessage, path: str) -> None:
        method = "POST" if message.payload.get("shouldLike") else "DELETE"
        response = await self.http.request(method, self._url(path), headers=self._headers())
        if response.status_code == 200:
            reply = {"data": response.json()["data"]}
        else:
            reply = {"error": _error_message(response)}
        await self.reply(message.action, reply, message_id=message.message_id)

    async def handle(self, message: BridgeMessage) -> None:
        """Run the API call behind one host action and post its ack."""
        try:
            match message.action:
                case BridgeAction.LOAD_COMMENTS:
                    await self._load_comments(message)
                case BridgeAction.POST_COMMENT:
                    await self._post_comment(message)
                case BridgeAction.LOGIN:
                    await self._login(message)
                case BridgeAction.LOGOUT:
                    await self._logout(message)
                case BridgeAction.TOGGLE_PAGE_LIKE:
                    page_id = message.payload.get("pageId")
                    await self._toggle_like(message, f"/pages/{page_id}/likes")
                case BridgeAction.TOGGLE_COMMENT_LIKE:
                    comment_id = message.payload.get("commentId")
                    await self._toggle_like(message, f"/comments/{comment_id}/likes")
        except httpx.HTTPError:
            logger.warning("Bridge request %s failed", message.action.value, exc_info=True)
            if message.message_id is not None:
                await self.reply(
                    message.action,
                    {"error": _GENERIC_ERROR},
                    message_id=message.message_id,
                )
            else:
                await self._fail(_GENERIC_ERROR)

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
