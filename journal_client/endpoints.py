"""
API path classification for the Journal Portal client.

Public endpoints are reachable without credentials and never take part in
session renewal. Membership is a plain substring match so query strings and
path parameters do not matter.
"""

from typing import Iterable, Optional

# Storage keys
ACCESS_TOKEN_KEY = 'accessToken'
REFRESH_TOKEN_KEY = 'refreshToken'

# Outgoing credential headers
AUTHORIZATION_HEADER = 'Authorization'
ACCESS_TOKEN_HEADER = 'Access-Token'
REFRESH_TOKEN_HEADER = 'Refresh-Token'

# Incoming rotation headers (matched case-insensitively)
ROTATED_ACCESS_TOKEN_HEADER = 'access-token'
ROTATED_REFRESH_TOKEN_HEADER = 'refresh-token'

LOGIN_ENDPOINT = '/auth/login'
REGISTER_ENDPOINT = '/auth/register'
REFRESH_ENDPOINT = '/auth/refresh-token'

DEFAULT_LOGIN_PAGE = '/login'

# Discriminator the backend puts in 503 bodies on infrastructure outages
SERVICE_UNAVAILABLE_DISCRIMINATOR = 'service_unavailable'

PUBLIC_ENDPOINTS = (
    LOGIN_ENDPOINT,
    REGISTER_ENDPOINT,
    '/auth/request-password-reset',
    '/auth/reset-password',
    '/journals/public',
    '/subscriptions/plans',
)


def is_public_endpoint(path: str, public_endpoints: Optional[Iterable[str]] = None) -> bool:
    """Check whether a request path belongs to the public allowlist."""
    fragments = PUBLIC_ENDPOINTS if public_endpoints is None else public_endpoints
    return any(fragment in path for fragment in fragments)


def is_refresh_endpoint(path: str) -> bool:
    return REFRESH_ENDPOINT in path


def is_login_endpoint(path: str) -> bool:
    return LOGIN_ENDPOINT in path


def looks_like_static_asset(path: str) -> bool:
    """Paths with a dot (``logo.png``, ``paper.pdf``) are treated as static assets."""
    return '.' in path.split('?', 1)[0]


def is_login_page(location: Optional[str], login_page: str = DEFAULT_LOGIN_PAGE) -> bool:
    """Check whether the hosting application currently shows the login page."""
    if not location:
        return False
    route = location.split('?', 1)[0].rstrip('/') or '/'
    return route == login_page.rstrip('/') or route.endswith(login_page.rstrip('/'))
