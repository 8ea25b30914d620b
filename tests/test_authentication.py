"""
Tests for AuthSession: login, registration, logout, profile loading and
session refresh against the fake portal.
"""

from datetime import datetime, timezone

import pytest
from jose import jwt

from journal_client.auth.events import SessionExpired
from journal_client.auth_session import AuthSession
from journal_client.models import ProfileStatus, User, UserRole
from journal_client.services import JournalPortal
from journal_shared.exceptions import APIResponseError, AuthenticationError, ServiceUnavailableError


@pytest.fixture
def session(api_client):
    return AuthSession(JournalPortal(api_client))


class TestLogin:
    """Signing in."""

    @pytest.mark.asyncio
    async def test_login_loads_user_and_subscription(self, session, token_store):
        user = await session.login('reader@example.org', 'correct-horse')

        assert user.email == 'reader@example.org'
        assert session.is_authenticated
        assert session.error is None
        assert session.is_loading is False
        assert session.user.role is UserRole.USER
        assert session.subscription is not None
        assert session.subscription.plan.name == 'Scholar'
        assert session.has_active_subscription()
        assert session.is_profile_complete()
        assert token_store.snapshot() == ('access-2', 'refresh-2')

    @pytest.mark.asyncio
    async def test_rejected_login_sets_server_message(self, session):
        with pytest.raises(AuthenticationError):
            await session.login('reader@example.org', 'wrong')

        assert session.error == 'Invalid email or password'
        assert not session.is_authenticated
        assert session.is_loading is False

    @pytest.mark.asyncio
    async def test_login_during_outage(self, session, portal_backend):
        portal_backend.login_unavailable = True

        with pytest.raises(ServiceUnavailableError):
            await session.login('reader@example.org', 'correct-horse')

        assert session.error == 'Database is offline'

    @pytest.mark.asyncio
    async def test_login_without_server_message_uses_fallback(self):
        portal = JournalPortal(_UnreachableClient())
        session = AuthSession(portal)

        with pytest.raises(APIResponseError):
            await session.login('reader@example.org', 'x')

        assert session.error == 'Login failed'


class TestRegistration:
    """Creating an account."""

    @pytest.mark.asyncio
    async def test_register_requires_profile_completion(self, session):
        requires_completion = await session.register({
            'email': 'new@example.org',
            'password': 'secret123',
            'name': 'New Author',
        })

        assert requires_completion is True
        assert session.requires_profile_completion
        assert session.user.email == 'new@example.org'
        assert session.user.profile_status is ProfileStatus.INCOMPLETE
        assert not session.is_profile_complete()


class TestLogout:
    """Ending the session."""

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, session, token_store):
        await session.login('reader@example.org', 'correct-horse')

        await session.logout()

        assert not session.is_authenticated
        assert session.user is None
        assert session.subscription is None
        assert session.should_attempt_refresh is False
        assert token_store.snapshot() == (None, None)

    @pytest.mark.asyncio
    async def test_logout_clears_state_when_server_unreachable(self, token_store):
        client = _UnreachableClient(token_store)
        session = AuthSession(JournalPortal(client))
        session.user = User(id=1, email='a@b.c', role=UserRole.USER, profile_status=ProfileStatus.COMPLETE)
        session.is_authenticated = True

        await session.logout()

        assert session.user is None
        assert not session.is_authenticated
        assert token_store.snapshot() == (None, None)


class TestProfile:
    """Loading the current user."""

    @pytest.mark.asyncio
    async def test_fetch_profile_with_valid_token(self, session):
        await session.fetch_user_profile()

        assert session.is_authenticated
        assert session.user.name == 'Ada Reader'

    @pytest.mark.asyncio
    async def test_unauthorized_profile_disables_refresh(self, session, portal_backend):
        portal_backend.reject_all = True

        await session.fetch_user_profile()

        assert not session.is_authenticated
        assert session.should_attempt_refresh is False
        assert session.error is None

    @pytest.mark.asyncio
    async def test_disabled_refresh_skips_request(self, session, portal_backend):
        session.disable_refresh_attempts()

        await session.fetch_user_profile()

        assert portal_backend.calls('/auth/me') == []

    @pytest.mark.asyncio
    async def test_session_expired_event_clears_user(self, session, api_client):
        await session.fetch_user_profile()

        api_client.events.emit(SessionExpired(reason='refresh failed', request_path='/cart', login_path='/login'))

        assert session.user is None
        assert not session.is_authenticated


class TestRefreshSession:
    """Explicit session refresh."""

    @pytest.mark.asyncio
    async def test_refresh_success(self, session):
        assert await session.refresh_session() is True

    @pytest.mark.asyncio
    async def test_no_content_is_silent_failure(self, session, portal_backend):
        portal_backend.refresh_no_content = True

        assert await session.refresh_session() is False

    @pytest.mark.asyncio
    async def test_rejected_refresh_returns_false(self, session, portal_backend):
        portal_backend.refresh_status = 401

        assert await session.refresh_session() is False

    @pytest.mark.asyncio
    async def test_refresh_skipped_when_disabled(self, session, portal_backend):
        session.disable_refresh_attempts()

        assert await session.refresh_session() is False
        assert portal_backend.calls('/auth/refresh-token') == []


class TestPasswordActions:
    """Password management."""

    @pytest.mark.asyncio
    async def test_change_password(self, session):
        await session.change_password('correct-horse', 'battery-staple')

        assert session.error is None

    @pytest.mark.asyncio
    async def test_change_password_failure_sets_error(self, session):
        with pytest.raises(APIResponseError):
            await session.change_password('wrong', 'battery-staple')

        assert session.error == 'Current password is incorrect'
        assert session.is_loading is False

        session.clear_error()
        assert session.error is None


class TestPredicatesAndInfo:
    """Role predicates and session summary."""

    @pytest.fixture
    def session(self, token_store):
        return AuthSession(JournalPortal(_UnreachableClient(token_store)))

    def test_roles(self, session):
        session.user = User(id=1, email='a@b.c', role=UserRole.ADMIN, profile_status=ProfileStatus.COMPLETE)
        assert session.is_admin() and not session.is_researcher()

        session.user = User(id=1, email='a@b.c', role=UserRole.AUTHOR, profile_status=ProfileStatus.COMPLETE)
        assert session.is_researcher() and not session.is_admin()

    def test_predicates_without_user(self, session):
        assert not session.is_admin()
        assert not session.is_researcher()
        assert not session.is_profile_complete()
        assert not session.has_active_subscription()

    def test_session_info(self, session, token_store):
        expires = datetime(2031, 1, 1, tzinfo=timezone.utc)
        token_store.set('accessToken', jwt.encode({'exp': int(expires.timestamp())}, 'k', algorithm='HS256'))

        info = session.session_info()

        assert info['is_authenticated'] is False
        assert info['has_access_token'] and info['has_refresh_token']
        assert info['access_token_expires_at'] == expires.isoformat()
        assert info['refresh_suppressed'] is False


class _UnreachableClient:
    """Client double whose every call fails without a server message."""

    def __init__(self, token_store=None):
        from journal_client.auth.cooldown import RefreshCooldown
        from journal_client.auth.events import EventHub
        from journal_client.auth.token_storage import MemoryTokenStorage

        self.token_store = token_store or MemoryTokenStorage()
        self.cooldown = RefreshCooldown()
        self.events = EventHub()

    def on_session_expired(self, callback):
        self.events.subscribe(SessionExpired, callback)

    async def post(self, path, **kwargs):
        raise APIResponseError("Bad gateway", status=502, path=path, data='<html>')

    get = put = delete = post
