"""
Failure classification for error responses.

Separates infrastructure outages from expired sessions from ordinary
application errors. Only ``AUTH_EXPIRED`` is handed to the refresh
coordinator.
"""

from enum import Enum
from typing import Any, Iterable, Optional

from journal_client.endpoints import (
    SERVICE_UNAVAILABLE_DISCRIMINATOR, DEFAULT_LOGIN_PAGE,
    is_public_endpoint, is_refresh_endpoint, is_login_page,
)
from journal_client.models import PendingRequest


class FailureKind(Enum):
    """Outcome classes for a failed response."""
    SERVICE_UNAVAILABLE = "service_unavailable"
    PUBLIC_ENDPOINT = "public_endpoint"
    AUTH_EXPIRED = "auth_expired"
    OTHER = "other"


def is_service_unavailable(status: int, body: Any) -> bool:
    return (
        status == 503
        and isinstance(body, dict)
        and body.get('error') == SERVICE_UNAVAILABLE_DISCRIMINATOR
    )


class FailureClassifier:
    """Maps an error response to a ``FailureKind``."""

    def __init__(
        self,
        public_endpoints: Optional[Iterable[str]] = None,
        login_page: str = DEFAULT_LOGIN_PAGE
    ):
        self.public_endpoints = tuple(public_endpoints) if public_endpoints is not None else None
        self.login_page = login_page

    def classify(
        self,
        pending: PendingRequest,
        status: int,
        body: Any,
        *,
        cooldown_active: bool,
        current_location: Optional[str] = None
    ) -> FailureKind:
        """
        Classify a failed response.

        Args:
            pending: The request that failed, with its attempt count
            status: HTTP status code
            body: Decoded response body
            cooldown_active: Whether refreshes are currently suppressed
            current_location: The hosting application's current route

        Returns:
            FailureKind for the response
        """
        if is_service_unavailable(status, body):
            return FailureKind.SERVICE_UNAVAILABLE

        if is_public_endpoint(pending.path, self.public_endpoints):
            return FailureKind.PUBLIC_ENDPOINT

        if (
            status == 401
            and not pending.retried
            and not cooldown_active
            and not is_refresh_endpoint(pending.path)
            and not is_login_page(current_location, self.login_page)
        ):
            return FailureKind.AUTH_EXPIRED

        return FailureKind.OTHER
