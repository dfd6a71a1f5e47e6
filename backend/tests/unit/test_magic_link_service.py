"""Tests for the magic link and session service.

Runs against the per-test SQLite database; email delivery is mocked.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from starlette.requests import Request

from commentkit.core.auth import MAGIC_LINK_TTL, SESSION_TTL, hash_secret
from commentkit.core.errors import EmailDeliveryError
from commentkit.models import MagicLink, Session, User
from commentkit.models.base import as_utc
from commentkit.services import magic_link_service
from commentkit.services.magic_link_service import (
    AuthError,
    MagicLinkRedemptionError,
)

_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


async def _issue_link(db_session, sent_emails, email="Reader@Example.com", now=_NOW):
    link = await magic_link_service.request_login(db_session, email, now=now)
    return link, sent_emails.await_args.kwargs["token"]


class TestRequestLogin:
    async def test_stores_link_and_emails_token(self, db_session, sent_emails):
        link, token = await _issue_link(db_session, sent_emails)

        assert token == link.token
        assert len(token) == 64
        assert link.email == "reader@example.com"
        assert link.used is False
        assert as_utc(link.expires_at) == _NOW + MAGIC_LINK_TTL
        assert sent_emails.await_args.kwargs["to_email"] == "reader@example.com"

    async def test_link_committed_even_if_email_fails(
        self, db_session, session_factory, sent_emails
    ):
        sent_emails.side_effect = EmailDeliveryError()
        with pytest.raises(EmailDeliveryError):
            await magic_link_service.request_login(
                db_session, "reader@example.com", now=_NOW
            )

        async with session_factory() as other:
            result = await other.execute(select(MagicLink))
            assert len(result.scalars().all()) == 1


class TestRedeem:
    async def test_creates_user_and_session(self, db_session, sent_emails):
        _, token = await _issue_link(db_session, sent_emails)

        issued = await magic_link_service.redeem(db_session, token, now=_NOW)
        await db_session.commit()

        assert issued.user.email == "reader@example.com"
        assert issued.session.token_hash == hash_secret(issued.raw_secret)
        assert issued.session.token_hash != issued.raw_secret
        assert as_utc(issued.session.expires_at) == _NOW + SESSION_TTL

    async def test_second_redemption_is_already_used(self, db_session, sent_emails):
        _, token = await _issue_link(db_session, sent_emails)
        await magic_link_service.redeem(db_session, token, now=_NOW)
        await db_session.commit()

        with pytest.raises(MagicLinkRedemptionError) as exc_info:
            await magic_link_service.redeem(db_session, token, now=_NOW)
        assert exc_info.value.reason is AuthError.ALREADY_USED

        sessions = (await db_session.execute(select(Session))).scalars().all()
        assert len(sessions) == 1

    async def test_unknown_token(self, db_session):
        with pytest.raises(MagicLinkRedemptionError) as exc_info:
            await magic_link_service.redeem(db_session, "0" * 64, now=_NOW)
        assert exc_info.value.reason is AuthError.TOKEN_NOT_FOUND

    async def test_expired_link(self, db_session, sent_emails):
        _, token = await _issue_link(db_session, sent_emails)
        later = _NOW + MAGIC_LINK_TTL + timedelta(seconds=1)

        with pytest.raises(MagicLinkRedemptionError) as exc_info:
            await magic_link_service.redeem(db_session, token, now=later)
        assert exc_info.value.reason is AuthError.EXPIRED

    async def test_link_at_exact_expiry_is_expired(self, db_session, sent_emails):
        _, token = await _issue_link(db_session, sent_emails)

        with pytest.raises(MagicLinkRedemptionError):
            await magic_link_service.redeem(
                db_session, token, now=_NOW + MAGIC_LINK_TTL
            )

    async def test_existing_user_reused(self, db_session, sent_emails):
        _, first = await _issue_link(db_session, sent_emails)
        one = await magic_link_service.redeem(db_session, first, now=_NOW)
        await db_session.commit()
        _, second = await _issue_link(db_session, sent_emails, email="reader@example.com")
        two = await magic_link_service.redeem(db_session, second, now=_NOW)
        await db_session.commit()

        assert one.user.id == two.user.id
        users = (await db_session.execute(select(User))).scalars().all()
        assert len(users) == 1
        sessions = (await db_session.execute(select(Session))).scalars().all()
        assert len(sessions) == 2


class TestAuthenticate:
    async def _signed_in(self, db_session, sent_emails):
        _, token = await _issue_link(db_session, sent_emails)
        issued = await magic_link_service.redeem(db_session, token, now=_NOW)
        await db_session.commit()
        return issued

    async def test_cookie_and_bearer_resolve_same_user(self, db_session, sent_emails):
        issued = await self._signed_in(db_session, sent_emails)

        by_cookie = await magic_link_service.authenticate(
            db_session, _request({"Cookie": f"ck_auth={issued.raw_secret}"}), now=_NOW
        )
        by_bearer = await magic_link_service.authenticate(
            db_session,
            _request({"Authorization": f"Bearer {issued.raw_secret}"}),
            now=_NOW,
        )
        assert by_cookie is not None
        assert by_cookie.id == by_bearer.id == issued.user.id

    async def test_invalid_cookie_falls_back_to_bearer(self, db_session, sent_emails):
        issued = await self._signed_in(db_session, sent_emails)
        request = _request(
            {
                "Cookie": "ck_auth=stale",
                "Authorization": f"Bearer {issued.raw_secret}",
            }
        )
        user = await magic_link_service.authenticate(db_session, request, now=_NOW)
        assert user is not None

    async def test_expired_session_is_anonymous(self, db_session, sent_emails):
        issued = await self._signed_in(db_session, sent_emails)
        later = _NOW + SESSION_TTL + timedelta(seconds=1)
        request = _request({"Authorization": f"Bearer {issued.raw_secret}"})
        assert await magic_link_service.authenticate(db_session, request, now=later) is None

    async def test_no_credentials(self, db_session):
        assert await magic_link_service.authenticate(db_session, _request()) is None

    async def test_logout_deletes_session(self, db_session, sent_emails):
        issued = await self._signed_in(db_session, sent_emails)
        request = _request({"Authorization": f"Bearer {issued.raw_secret}"})

        await magic_link_service.logout(db_session, request)
        await db_session.commit()

        assert await magic_link_service.authenticate(db_session, request, now=_NOW) is None

    async def test_logout_without_session_is_noop(self, db_session):
        await magic_link_service.logout(db_session, _request())


class TestSessionRetention:
    async def test_sign_in_purges_own_expired_sessions(
        self, db_session, sent_emails
    ):
        _, stale = await _issue_link(db_session, sent_emails)
        await magic_link_service.redeem(db_session, stale, now=_NOW)
        _, other = await _issue_link(
            db_session, sent_emails, email="other@example.com"
        )
        kept = await magic_link_service.redeem(db_session, other, now=_NOW)
        await db_session.commit()

        later = _NOW + SESSION_TTL + timedelta(hours=1)
        _, fresh = await _issue_link(db_session, sent_emails, now=later)
        live = await magic_link_service.redeem(db_session, fresh, now=later)
        await db_session.commit()

        remaining = (await db_session.execute(select(Session))).scalars().all()
        assert {s.token_hash for s in remaining} == {
            kept.session.token_hash,
            live.session.token_hash,
        }
