"""
Authentication state of a portal user.

``AuthSession`` keeps the signed-in user, their subscription and the flags the
application uses to decide whether a silent session restore is worth trying.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from journal_client.auth.events import SessionExpired
from journal_client.auth.token_manager import parse_token_expiration
from journal_client.models import ProfileStatus, Subscription, User, UserRole
from journal_client.services import JournalPortal
from journal_shared.exceptions import (
    APIResponseError, AuthenticationError, JournalClientError, TokenStorageError,
)
from journal_shared.logging_config import AuditLogger

logger = logging.getLogger(__name__)


def _error_message(error: Exception, fallback: str) -> str:
    if isinstance(error, APIResponseError) and error.server_message:
        return error.server_message
    return fallback


class AuthSession:
    """
    Client-side authentication state.

    Mirrors what the backend knows about the current user and exposes the
    account actions (login, registration, logout, password management).
    """

    def __init__(self, portal: JournalPortal):
        self.portal = portal
        self.audit = AuditLogger()

        self.user: Optional[User] = None
        self.subscription: Optional[Subscription] = None
        self.is_authenticated = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.requires_profile_completion = False
        self.should_attempt_refresh = True

        portal.client.on_session_expired(self._on_session_expired)

    async def login(self, email: str, password: str) -> User:
        """
        Sign in and load the full profile.

        Raises:
            JournalClientError: Login rejected or backend unreachable
        """
        self.is_loading = True
        self.error = None
        try:
            response = await self.portal.auth.login(email, password)
            user = User.from_dict(response.payload['user'])
        except JournalClientError as e:
            self.is_loading = False
            self.error = _error_message(e, 'Login failed')
            self.audit.log_authentication(email, success=False, failure_reason=self.error)
            raise

        self._set_user(user)
        self.requires_profile_completion = user.profile_status == ProfileStatus.INCOMPLETE
        self.should_attempt_refresh = True
        self.is_loading = False
        self.audit.log_authentication(email, user_id=user.id)

        await self.fetch_user_profile()
        return user

    async def register(self, user_data: Dict[str, Any]) -> bool:
        """
        Create an account and sign in.

        Returns:
            True if the backend asks for profile completion
        """
        self.is_loading = True
        self.error = None
        try:
            response = await self.portal.auth.register(user_data)
            payload = response.payload
            user = User.from_dict(payload['user'])
        except JournalClientError as e:
            self.is_loading = False
            self.error = _error_message(e, 'Registration failed')
            self.audit.log_authentication(user_data.get('email', ''), success=False, failure_reason=self.error)
            raise

        requires_completion = bool(payload.get('requiresProfileCompletion'))
        self._set_user(user)
        self.requires_profile_completion = requires_completion or user.profile_status == ProfileStatus.INCOMPLETE
        self.should_attempt_refresh = True
        self.is_loading = False
        self.audit.log_authentication(user.email, user_id=user.id)
        return requires_completion

    async def logout(self) -> None:
        """Sign out; local state is cleared even if the server call fails."""
        self.is_loading = True
        user_id = self.user.id if self.user else None
        acknowledged = True
        try:
            await self.portal.auth.logout()
        except JournalClientError as e:
            acknowledged = False
            logger.warning(f"Server logout failed, clearing local session anyway: {e}")

        try:
            self.portal.client.token_store.clear()
        except TokenStorageError as e:
            logger.error(f"Failed to purge credentials on logout: {e}")

        self._clear_user()
        self.should_attempt_refresh = False
        self.is_loading = False
        self.audit.log_logout(user_id, server_acknowledged=acknowledged)

    async def fetch_user_profile(self) -> None:
        """
        Load the current user with their subscription.

        Does nothing once refresh attempts are disabled. A 401 ends the local
        session; other failures only set ``error``.
        """
        if not self.should_attempt_refresh:
            return

        self.is_loading = True
        self.error = None
        try:
            response = await self.portal.auth.get_current_user()
            data = response.payload or {}
            user = User.from_dict(data)
        except AuthenticationError:
            self._clear_user()
            self.should_attempt_refresh = False
            self.is_loading = False
            return
        except JournalClientError as e:
            self.is_loading = False
            self.error = _error_message(e, 'Failed to fetch user profile')
            logger.warning(f"Failed to fetch user profile: {e}")
            return

        subscriptions = data.get('subscriptions') or []
        self._set_user(user)
        self.subscription = Subscription.from_dict(subscriptions[0]) if subscriptions else None
        self.requires_profile_completion = user.profile_status == ProfileStatus.INCOMPLETE
        self.is_loading = False

    async def refresh_session(self) -> bool:
        """
        Ask the backend for fresh tokens outside of a failing request.

        A ``204 No Content`` answer means there was nothing to refresh and is
        reported as False without raising.
        """
        if not self.should_attempt_refresh:
            return False

        try:
            response = await self.portal.auth.refresh_token()
        except APIResponseError as e:
            logger.info(f"Session refresh rejected: {e}")
            return False

        if response.status == 204:
            logger.debug("Refresh endpoint returned no content")
            return False
        return True

    async def change_password(self, current_password: str, new_password: str) -> None:
        await self._run_action(
            self.portal.auth.change_password(current_password, new_password),
            'Failed to change password'
        )

    async def request_password_reset(self, email: str) -> None:
        await self._run_action(
            self.portal.auth.request_password_reset(email),
            'Failed to request password reset'
        )

    async def reset_password(self, token: str, new_password: str) -> None:
        await self._run_action(
            self.portal.auth.reset_password(token, new_password),
            'Failed to reset password'
        )

    async def _run_action(self, call, fallback: str) -> None:
        self.is_loading = True
        self.error = None
        try:
            await call
        except JournalClientError as e:
            self.error = _error_message(e, fallback)
            raise
        finally:
            self.is_loading = False

    def clear_error(self) -> None:
        self.error = None

    def disable_refresh_attempts(self) -> None:
        self.should_attempt_refresh = False

    def has_active_subscription(self, now: Optional[datetime] = None) -> bool:
        return self.subscription is not None and self.subscription.is_active(now)

    def is_profile_complete(self) -> bool:
        return self.user is not None and self.user.profile_status == ProfileStatus.COMPLETE

    def is_researcher(self) -> bool:
        return self.user is not None and self.user.role == UserRole.AUTHOR

    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == UserRole.ADMIN

    def session_info(self) -> Dict[str, Any]:
        """Summary of the local session for display and debugging."""
        access_token, refresh_token = self.portal.client.token_store.snapshot()
        expires_at = parse_token_expiration(access_token)
        return {
            'is_authenticated': self.is_authenticated,
            'email': self.user.email if self.user else None,
            'role': self.user.role.value if self.user else None,
            'has_access_token': access_token is not None,
            'has_refresh_token': refresh_token is not None,
            'access_token_expires_at': expires_at.isoformat() if expires_at else None,
            'refresh_suppressed': self.portal.client.cooldown.is_failed(),
        }

    def _set_user(self, user: User) -> None:
        self.user = user
        self.is_authenticated = True

    def _clear_user(self) -> None:
        self.user = None
        self.subscription = None
        self.is_authenticated = False
        self.requires_profile_completion = False

    def _on_session_expired(self, event: SessionExpired) -> None:
        logger.info(f"Session expired while calling {event.request_path}")
        self._clear_user()
