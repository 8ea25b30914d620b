"""
Session renewal for the Journal Portal client.

The refresh coordinator recovers a request that failed because its access
token expired: one refresh call, then one replay of the original request.
A failed refresh ends the session, opens the cool-down breaker and tells the
hosting application to show the login page.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from jose import jwt, JWTError

from journal_client.auth.cooldown import RefreshCooldown
from journal_client.auth.events import EventHub, SessionExpired
from journal_client.auth.token_storage import TokenStore
from journal_client.endpoints import (
    REFRESH_ENDPOINT, DEFAULT_LOGIN_PAGE, is_login_page, looks_like_static_asset,
)
from journal_client.models import APIResponse, PendingRequest, RequestDescriptor
from journal_shared.exceptions import (
    APIResponseError, ErrorCode, RefreshFailedError, TokenStorageError,
)
from journal_shared.logging_config import AuditLogger

logger = logging.getLogger(__name__)

SendFunction = Callable[[PendingRequest], Awaitable[APIResponse]]


def parse_token_expiration(token: Optional[str]) -> Optional[datetime]:
    """
    Read the ``exp`` claim of a JWT without verifying it.

    Args:
        token: JWT string

    Returns:
        Expiration as an aware UTC datetime, or None if unavailable
    """
    if not token:
        return None
    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.debug(f"Failed to parse token expiration: {e}")
        return None

    exp = payload.get('exp')
    if exp is None:
        return None
    try:
        return datetime.fromtimestamp(float(exp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class RefreshCoordinator:
    """
    Single refresh, single retry.

    Concurrent failures each run their own refresh unless
    ``serialize_refreshes`` is set, in which case they share one in-flight
    refresh call.
    """

    def __init__(
        self,
        token_store: TokenStore,
        cooldown: RefreshCooldown,
        events: EventHub,
        send: SendFunction,
        location_provider: Callable[[], Optional[str]],
        login_page: str = DEFAULT_LOGIN_PAGE,
        serialize_refreshes: bool = False,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.token_store = token_store
        self.cooldown = cooldown
        self.events = events
        self._send = send
        self.location_provider = location_provider
        self.login_page = login_page
        self.serialize_refreshes = serialize_refreshes
        self.audit = audit_logger or AuditLogger()
        self._inflight: Optional[asyncio.Future] = None

        self.refresh_attempts = 0

    async def recover(self, pending: PendingRequest, error: APIResponseError) -> APIResponse:
        """
        Renew the session and replay ``pending`` once.

        Args:
            pending: The request that failed with an expired token
            error: The error the request produced

        Returns:
            The replayed request's response

        Raises:
            The original ``error`` (chained to the refresh failure) when the
            refresh fails; whatever the replay raises otherwise.
        """
        retry = pending.next_attempt()
        logger.info(f"Access token rejected for {pending.path}, attempting refresh")

        try:
            await self._refresh()
        except Exception as refresh_error:
            self.audit.log_token_refresh(pending.path, success=False, failure_reason=str(refresh_error))
            self._end_session(pending, refresh_error)
            raise error from refresh_error

        self.audit.log_token_refresh(pending.path, success=True)
        return await self._send(retry)

    async def _refresh(self) -> None:
        if not self.serialize_refreshes:
            await self._perform_refresh()
            return

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._perform_refresh())
        await asyncio.shield(self._inflight)

    async def _perform_refresh(self) -> None:
        refresh_token = self.token_store.get_refresh_token()
        if not refresh_token:
            raise RefreshFailedError(
                "No refresh token stored",
                error_code=ErrorCode.AUTH_REFRESH_TOKEN_MISSING
            )

        self.refresh_attempts += 1
        descriptor = RequestDescriptor(
            method='POST',
            path=REFRESH_ENDPOINT,
            json={'refreshToken': refresh_token},
        )
        # Rotated tokens are persisted by the pipeline before this returns
        response = await self._send(PendingRequest(descriptor))
        if not response.ok:
            raise RefreshFailedError(
                f"Refresh endpoint answered {response.status}",
                context={'status': response.status}
            )

        self.cooldown.reset()
        logger.info("Session renewed")

    def _end_session(self, pending: PendingRequest, reason: Exception) -> None:
        self.cooldown.mark_failed()

        try:
            self.token_store.clear()
        except TokenStorageError as e:
            logger.error(f"Failed to purge credentials after refresh failure: {e}")

        location = self.location_provider()
        redirect = (
            not is_login_page(location, self.login_page)
            and not looks_like_static_asset(pending.path)
        )
        self.audit.log_session_expired(pending.path, str(reason), redirect)

        if redirect:
            self.events.emit(SessionExpired(
                reason=str(reason),
                request_path=pending.path,
                login_path=self.login_page,
            ))
