"""Tests for the host and iframe sides of the widget bridge.

The end-to-end tests run both bridges in-process: the host page talks to
the iframe through the postMessage transport, and the iframe talks to the
API app through httpx's ASGI transport.
"""

import asyncio
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import pytest_asyncio

from commentkit.core.csrf import validate_csrf_token
from commentkit.core.origin_token import verify_origin_token
from commentkit.widget.channel import MessageChannel
from commentkit.widget.frame import FrameBridge, FrameParams
from commentkit.widget.host import (
    CONNECT_FAILED_MESSAGE,
    BridgeRequestError,
    BridgeTimeoutError,
    HostBridge,
    WidgetConfig,
)
from commentkit.widget.messages import BridgeAction, BridgeMessage
from commentkit.widget.state import ViewPhase, WidgetEvent, WidgetEventKind, WidgetPhase
from commentkit.widget.transport import Window, connect
from tests.conftest import (
    API_ORIGIN,
    TEST_AUTH_SECRET,
    UNVERIFIED_DOMAIN,
    VERIFIED_API_KEY,
    VERIFIED_DOMAIN,
)

HOST_ORIGIN = f"https://{VERIFIED_DOMAIN}"


def _config(domain: str = VERIFIED_DOMAIN) -> WidgetConfig:
    return WidgetConfig(
        domain=domain,
        page_id="/posts/hello",
        widget_base=API_ORIGIN,
        api_base=API_ORIGIN,
        parent_origin=f"https://{domain}",
        page_title="Hello",
    )


class RecordingTransport:
    """Collects posted messages and optionally answers them."""

    def __init__(self, responder=None) -> None:
        self.sent: list[tuple[dict, str]] = []
        self.responder = responder

    async def post_message(self, data: dict, target_origin: str) -> None:
        self.sent.append((data, target_origin))
        if self.responder is not None:
            self.responder(BridgeMessage.from_wire(data))


async def _eventually(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


def _ready_bridge(**kwargs) -> HostBridge:
    """A host bridge already past init, showing a loaded page."""
    bridge = HostBridge(_config(), httpx.AsyncClient(), **kwargs)
    for event in (
        WidgetEvent(WidgetEventKind.INIT_STARTED),
        WidgetEvent(
            WidgetEventKind.INIT_SUCCEEDED, {"origin_token": "ot", "csrf_token": "ct"}
        ),
    ):
        bridge._apply(event)
    bridge._apply(
        BridgeMessage(
            BridgeAction.COMMENTS_LOADED,
            {
                "data": {
                    "page_id": "p1",
                    "likes": 2,
                    "user_liked": False,
                    "comments": [{"id": "c1", "likes": 4, "user_liked": True}],
                }
            },
        )
    )
    return bridge


# =============================================================================
# Host: initialization
# =============================================================================


class TestHostInitialize:
    async def test_success_stores_tokens(self, client, sites):
        bridge = HostBridge(_config(), client)
        state = await bridge.initialize()

        assert state.phase is WidgetPhase.READY
        assert verify_origin_token(state.origin_token, TEST_AUTH_SECRET) == VERIFIED_DOMAIN
        validate_csrf_token(state.csrf_token, HOST_ORIGIN, TEST_AUTH_SECRET)

    async def test_unverified_site(self, client, sites):
        bridge = HostBridge(_config(UNVERIFIED_DOMAIN), client)
        state = await bridge.initialize()

        assert state.phase is WidgetPhase.ERROR
        assert state.error == "This site is not verified with CommentKit."
        assert state.error_type == "error"

    async def test_unregistered_site_is_warning(self, client, sites):
        bridge = HostBridge(_config("nobody.example"), client)
        state = await bridge.initialize()

        assert state.error == "Comments are not enabled for this domain yet."
        assert state.error_type == "warning"

    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            state = await HostBridge(_config(), http).initialize()

        assert state.phase is WidgetPhase.ERROR
        assert state.error == CONNECT_FAILED_MESSAGE

    async def test_server_error_is_generic(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="Traceback: secret internals")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            state = await HostBridge(_config(), http).initialize()

        assert state.error == "Failed to initialize CommentKit."
        assert "secret" not in (state.error_detail or "")

    async def test_sends_parent_origin(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["origin"] = request.headers.get("origin")
            seen["path"] = request.url.path
            return httpx.Response(
                200, json={"data": {"token": "ot", "csrfToken": "ct"}}
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await HostBridge(_config(), http).initialize()

        assert seen == {"origin": HOST_ORIGIN, "path": "/api/v1/widget/init"}


class TestIframeUrl:
    def test_requires_initialization(self):
        bridge = HostBridge(_config(), httpx.AsyncClient())
        with pytest.raises(RuntimeError):
            bridge.iframe_url()

    def test_carries_tokens_and_parent_origin(self):
        url = _ready_bridge().iframe_url()

        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == f"{API_ORIGIN}/widget"
        query = {key: values[0] for key, values in parse_qs(parts.query).items()}
        assert query == {
            "domain": VERIFIED_DOMAIN,
            "pageId": "/posts/hello",
            "parentOrigin": HOST_ORIGIN,
            "apiBase": API_ORIGIN,
            "csrfToken": "ct",
            "originToken": "ot",
        }

    def test_frame_params_round_trip(self):
        params = FrameParams.from_url(_ready_bridge().iframe_url())
        assert params.parent_origin == HOST_ORIGIN
        assert params.origin_token == "ot"

    def test_frame_params_missing_value(self):
        with pytest.raises(ValueError, match="originToken"):
            FrameParams.from_url(
                f"{API_ORIGIN}/widget?domain=a&pageId=b&parentOrigin=c"
                "&apiBase=d&csrfToken=e"
            )


# =============================================================================
# Host: outbound messages
# =============================================================================


class TestHostSend:
    async def test_send_without_transport(self):
        with pytest.raises(RuntimeError):
            await _ready_bridge().send(BridgeAction.LOGOUT)

    async def test_messages_target_widget_origin(self):
        bridge = _ready_bridge()
        transport = RecordingTransport()
        bridge.attach(transport)

        await bridge.post_comment("Hi", author_name="Guest")

        data, target = transport.sent[0]
        assert target == API_ORIGIN
        assert data["type"] == "commentkit"
        assert data["action"] == "postComment"
        assert data["authorName"] == "Guest"
        assert "authorEmail" not in data
        assert bridge.state.view is ViewPhase.SUBMITTING

    async def test_login_marks_auth_loading(self):
        bridge = _ready_bridge()
        bridge.attach(RecordingTransport())
        await bridge.login("reader@example.com")
        assert bridge.state.auth_loading is True


# =============================================================================
# Host: correlated like requests
# =============================================================================


class TestLikeRequests:
    async def test_timeout_rolls_back_and_clears_waiter(self):
        bridge = _ready_bridge(like_timeout=0.05)
        transport = RecordingTransport()
        bridge.attach(transport)

        with pytest.raises(BridgeTimeoutError):
            await bridge.toggle_page_like()

        assert bridge.state.page_likes == (2, False)
        assert bridge.pending_requests == 0
        data, _ = transport.sent[0]
        assert data["pageId"] == "p1"
        assert data["shouldLike"] is True
        assert data["messageId"]

    async def test_late_reply_is_ignored(self):
        bridge = _ready_bridge(like_timeout=0.05)
        transport = RecordingTransport()
        bridge.attach(transport)
        with pytest.raises(BridgeTimeoutError):
            await bridge.toggle_page_like()

        late = BridgeMessage(
            BridgeAction.TOGGLE_PAGE_LIKE,
            {"data": {"total_likes": 99, "user_liked": True}},
            transport.sent[0][0]["messageId"],
        )
        await bridge.handle(late)
        assert bridge.state.page_likes == (2, False)

    async def test_error_reply_rolls_back(self):
        bridge = _ready_bridge()

        def respond(message: BridgeMessage) -> None:
            reply = BridgeMessage(
                message.action, {"error": "Not authenticated"}, message.message_id
            )
            asyncio.get_running_loop().create_task(bridge.handle(reply))

        bridge.attach(RecordingTransport(respond))

        with pytest.raises(BridgeRequestError, match="Not authenticated"):
            await bridge.toggle_comment_like("c1")

        comment = bridge.state.comment("c1")
        assert (comment["likes"], comment["user_liked"]) == (4, True)
        assert bridge.pending_requests == 0

    async def test_success_reply_applies_server_values(self):
        bridge = _ready_bridge()
        optimistic = []

        def respond(message: BridgeMessage) -> None:
            optimistic.append(bridge.state.page_likes)
            reply = BridgeMessage(
                message.action,
                {"data": {"total_likes": 7, "user_liked": True}},
                message.message_id,
            )
            asyncio.get_running_loop().create_task(bridge.handle(reply))

        bridge.attach(RecordingTransport(respond))

        assert await bridge.toggle_page_like() == (7, True)
        assert optimistic == [(3, True)]
        assert bridge.state.page_likes == (7, True)

    async def test_unknown_comment(self):
        bridge = _ready_bridge()
        bridge.attach(RecordingTransport())
        with pytest.raises(KeyError):
            await bridge.toggle_comment_like("nope")

    async def test_close_cancels_waiters(self):
        bridge = _ready_bridge()
        bridge.attach(RecordingTransport())
        task = asyncio.create_task(bridge.toggle_page_like())
        await _eventually(lambda: bridge.pending_requests == 1)

        bridge.close()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert bridge.pending_requests == 0


# =============================================================================
# Frame
# =============================================================================


def _frame_params() -> FrameParams:
    return FrameParams(
        domain=VERIFIED_DOMAIN,
        page_id="/posts/hello",
        parent_origin=HOST_ORIGIN,
        api_base=API_ORIGIN,
        csrf_token="ct",
        origin_token="ot",
    )


class TestFrame:
    def test_channel_only_hears_parent(self):
        frame = FrameBridge(_frame_params(), httpx.AsyncClient(), frame_origin=API_ORIGIN)
        wire = {"type": "commentkit", "action": "loadComments"}
        assert frame.channel.deliver("https://evil.example", wire) is False
        assert frame.channel.deliver(HOST_ORIGIN, wire) is True

    async def test_write_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json={"data": {"total_likes": 1, "user_liked": True}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            frame = FrameBridge(_frame_params(), http, frame_origin=API_ORIGIN)
            transport = RecordingTransport()
            frame.attach(transport)
            await frame.handle(
                BridgeMessage(
                    BridgeAction.TOGGLE_PAGE_LIKE,
                    {"pageId": "p1", "shouldLike": True},
                    "m1",
                )
            )

        assert seen["origin"] == API_ORIGIN
        assert seen["x-csrf-token"] == "ct"
        assert seen["x-origin-token"] == "ot"
        data, target = transport.sent[0]
        assert target == HOST_ORIGIN
        assert data == {
            "type": "commentkit",
            "action": "togglePageLike",
            "data": {"total_likes": 1, "user_liked": True},
            "messageId": "m1",
        }

    async def test_unlike_uses_delete(self):
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append((request.method, request.url.path))
            return httpx.Response(200, json={"data": {"total_likes": 0, "user_liked": False}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            frame = FrameBridge(_frame_params(), http, frame_origin=API_ORIGIN)
            frame.attach(RecordingTransport())
            await frame.handle(
                BridgeMessage(
                    BridgeAction.TOGGLE_COMMENT_LIKE,
                    {"commentId": "c9", "shouldLike": False},
                    "m2",
                )
            )

        assert methods == [("DELETE", "/api/v1/comments/c9/likes")]

    async def test_network_failure_answers_like_with_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            frame = FrameBridge(_frame_params(), http, frame_origin=API_ORIGIN)
            transport = RecordingTransport()
            frame.attach(transport)
            await frame.handle(
                BridgeMessage(
                    BridgeAction.TOGGLE_PAGE_LIKE, {"pageId": "p1", "shouldLike": True}, "m3"
                )
            )

        data, _ = transport.sent[0]
        assert data["action"] == "togglePageLike"
        assert data["messageId"] == "m3"
        assert data["error"]

    async def test_api_error_message_forwarded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={"error": {"code": "NOT_FOUND", "message": "Site not found", "details": None}},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            frame = FrameBridge(_frame_params(), http, frame_origin=API_ORIGIN)
            transport = RecordingTransport()
            frame.attach(transport)
            await frame.handle(BridgeMessage(BridgeAction.LOAD_COMMENTS, {}))

        data, _ = transport.sent[0]
        assert data == {"type": "commentkit", "action": "error", "message": "Site not found"}


# =============================================================================
# End to end
# =============================================================================


@pytest_asyncio.fixture
async def wired(client, sites):
    """Initialized host bridge and its iframe, both running."""
    host = HostBridge(_config(), client)
    await host.initialize()
    frame = FrameBridge(
        FrameParams.from_url(host.iframe_url()), client, frame_origin=API_ORIGIN
    )

    to_frame, to_host = connect(
        Window(HOST_ORIGIN, host.channel), Window(API_ORIGIN, frame.channel)
    )
    host.attach(to_frame)
    frame.attach(to_host)
    tasks = [asyncio.create_task(host.run()), asyncio.create_task(frame.run())]

    await frame.start()
    await _eventually(lambda: host.state.view is ViewPhase.LOADED)

    yield host, frame

    host.close()
    frame.close()
    await asyncio.gather(*tasks)


class TestEndToEnd:
    async def test_ready_loads_empty_page(self, wired):
        host, _ = wired
        assert host.state.phase is WidgetPhase.READY
        assert host.state.user is None
        assert host.state.comments == ()
        assert host.state.page["page_id"] is None

    async def test_guest_comment_awaits_moderation(self, wired):
        host, _ = wired
        await host.post_comment("Hello from a guest", author_name="Guest")
        await _eventually(lambda: host.state.guest_comment_sent)

        # refreshed page exists now, the pending comment is not listed
        await _eventually(lambda: host.state.page.get("page_id") is not None)
        assert host.state.comments == ()
        assert host.state.error is None

    async def test_guest_comment_without_name_shows_error(self, wired):
        host, _ = wired
        await host.post_comment("No name")
        await _eventually(lambda: host.state.error is not None)
        assert host.state.view is ViewPhase.LOADED

    async def test_login_then_like_page(self, wired, client, sent_emails):
        host, frame = wired

        await host.login("reader@example.com")
        await _eventually(lambda: host.state.login_sent)
        assert host.state.login_email == "reader@example.com"

        token = sent_emails.await_args.kwargs["token"]
        verified = await client.get("/api/v1/auth/verify", params={"token": token})
        assert verified.status_code == 200

        await frame.refresh_auth()
        await _eventually(lambda: host.state.is_authenticated)

        await host.post_comment("Member comment")
        await _eventually(lambda: host.state.page.get("page_id") is not None)

        assert await host.toggle_page_like() == (1, True)
        assert host.state.page_likes == (1, True)
        assert await host.toggle_page_like() == (0, False)

    async def test_anonymous_like_rolls_back(self, wired, client):
        host, _ = wired
        await client.post(
            "/api/v1/sites/comments",
            json={
                "domain": VERIFIED_DOMAIN,
                "pageId": "/posts/hello",
                "content": "seed",
                "author_name": "Seeder",
            },
            headers={"X-API-Key": VERIFIED_API_KEY},
        )
        await host.load_comments()
        await _eventually(lambda: host.state.page.get("page_id") is not None)

        with pytest.raises(BridgeRequestError):
            await host.toggle_page_like()
        assert host.state.page_likes == (0, False)

    async def test_logout_clears_user(self, wired):
        host, _ = wired
        host._apply(
            BridgeMessage(BridgeAction.AUTH_STATE_CHANGED, {"user": {"id": "u1"}})
        )
        await host.logout()
        await _eventually(lambda: not host.state.is_authenticated)
        assert host.state.auth_loading is False


def test_channel_origin_matches_widget_base():
    bridge = HostBridge(_config(), httpx.AsyncClient())
    assert isinstance(bridge.channel, MessageChannel)
    assert bridge.channel.expected_origin == API_ORIGIN
