"""
Credential handling on both sides of the wire.

``RequestAugmenter`` decides which credential headers an outgoing request
carries; ``ResponseTokenSync`` persists tokens the backend rotates through
response headers.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from journal_client.auth.token_storage import TokenStore
from journal_client.endpoints import (
    AUTHORIZATION_HEADER, ACCESS_TOKEN_HEADER, REFRESH_TOKEN_HEADER,
    ROTATED_ACCESS_TOKEN_HEADER, ROTATED_REFRESH_TOKEN_HEADER,
    is_public_endpoint, is_refresh_endpoint,
)
from journal_client.models import RequestDescriptor
from journal_shared.logging_config import mask_token

logger = logging.getLogger(__name__)


class RequestAugmenter:
    """Computes the headers an outgoing request is sent with."""

    def __init__(self, token_store: TokenStore, public_endpoints: Optional[Iterable[str]] = None):
        self.token_store = token_store
        self.public_endpoints = tuple(public_endpoints) if public_endpoints is not None else None

    def is_public(self, path: str) -> bool:
        return is_public_endpoint(path, self.public_endpoints)

    def headers_for(self, descriptor: RequestDescriptor, force: bool = False) -> Dict[str, str]:
        """
        Build the header set for one attempt of a request.

        Public paths keep the caller's headers untouched. Other paths get the
        stored access token as bearer credential (plus the ``Access-Token``
        duplicate) unless the caller set ``Authorization`` explicitly; the
        refresh endpoint also gets the stored refresh token.

        Args:
            descriptor: The request being sent
            force: Replace caller-supplied credentials with the stored token,
                used when replaying after a refresh

        Returns:
            New header mapping; the descriptor is not modified
        """
        headers = dict(descriptor.headers)

        if self.is_public(descriptor.path):
            return headers

        access_token = self.token_store.get_access_token()
        if access_token and (force or not descriptor.has_explicit_authorization()):
            if force:
                headers = {
                    name: value for name, value in headers.items()
                    if name.lower() not in (AUTHORIZATION_HEADER.lower(), ACCESS_TOKEN_HEADER.lower())
                }
            headers[AUTHORIZATION_HEADER] = f"Bearer {access_token}"
            headers[ACCESS_TOKEN_HEADER] = access_token

        if is_refresh_endpoint(descriptor.path):
            refresh_token = self.token_store.get_refresh_token()
            if refresh_token:
                headers[REFRESH_TOKEN_HEADER] = refresh_token

        return headers


class ResponseTokenSync:
    """Writes rotated tokens found in response headers to the store."""

    def __init__(self, token_store: TokenStore):
        self.token_store = token_store

    @staticmethod
    def extract(headers: Mapping[str, str]) -> Tuple[Optional[str], Optional[str]]:
        """Read rotated tokens from a header mapping, ignoring name case."""
        access_token = None
        refresh_token = None
        for name, value in headers.items():
            lowered = name.lower()
            if lowered == ROTATED_ACCESS_TOKEN_HEADER and value:
                access_token = value
            elif lowered == ROTATED_REFRESH_TOKEN_HEADER and value:
                refresh_token = value
        return access_token, refresh_token

    def apply(self, headers: Mapping[str, str], path: str = "") -> Tuple[Optional[str], Optional[str]]:
        """
        Persist any rotated tokens (last write wins).

        Returns:
            The (access, refresh) tokens that were written, None for absent ones
        """
        access_token, refresh_token = self.extract(headers)
        if access_token or refresh_token:
            self.token_store.store_tokens(access_token, refresh_token)
            logger.debug(
                f"Stored rotated tokens from {path or 'response'} "
                f"(access: {mask_token(access_token)}, refresh: {mask_token(refresh_token)})"
            )
        return access_token, refresh_token
