"""
HTTP API client for the Journal Portal.

This module provides the session-aware request pipeline every API call goes
through: credential attachment, token rotation from response headers, failure
classification and a single refresh-and-retry on expired access tokens.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError
from multidict import CIMultiDict, CIMultiDictProxy

from journal_client.auth.cooldown import RefreshCooldown, DEFAULT_COOLDOWN_SECONDS
from journal_client.auth.credentials import RequestAugmenter, ResponseTokenSync
from journal_client.auth.events import EventHub, SessionExpired, ServiceUnavailable
from journal_client.auth.failure_classifier import FailureClassifier, FailureKind
from journal_client.auth.token_manager import RefreshCoordinator
from journal_client.auth.token_storage import TokenStore, MemoryTokenStorage, create_token_storage
from journal_client.endpoints import DEFAULT_LOGIN_PAGE, is_login_endpoint
from journal_client.models import APIResponse, PendingRequest, RequestDescriptor
from journal_shared.exceptions import (
    APIResponseError, AuthenticationError, ErrorCode, NetworkError, NotFoundError,
    PermissionDeniedError, ServerError, ServiceUnavailableError,
)
from journal_shared.logging_config import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'http://localhost:5000/api'
DEFAULT_TIMEOUT_SECONDS = 30.0


class JournalAPIClient:
    """
    Async HTTP client for the Journal Portal API.

    Usage::

        async with JournalAPIClient("https://portal.example.org/api") as client:
            client.on_session_expired(lambda event: router.push(event.login_path))
            response = await client.get("/journals/my-journals")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        token_store: Optional[TokenStore] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cooldown: Optional[RefreshCooldown] = None,
        events: Optional[EventHub] = None,
        location_provider: Optional[Callable[[], Optional[str]]] = None,
        login_page: str = DEFAULT_LOGIN_PAGE,
        public_endpoints: Optional[Iterable[str]] = None,
        serialize_refreshes: bool = False,
        session: Optional[ClientSession] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = ClientTimeout(total=timeout)
        self.token_store = token_store or MemoryTokenStorage()
        self.cooldown = cooldown or RefreshCooldown(DEFAULT_COOLDOWN_SECONDS)
        self.events = events or EventHub()
        self.location_provider = location_provider or (lambda: '/')
        self.login_page = login_page
        self.audit = AuditLogger()

        self.augmenter = RequestAugmenter(self.token_store, public_endpoints)
        self.token_sync = ResponseTokenSync(self.token_store)
        self.classifier = FailureClassifier(public_endpoints, login_page)
        self.coordinator = RefreshCoordinator(
            token_store=self.token_store,
            cooldown=self.cooldown,
            events=self.events,
            send=self._send,
            location_provider=self.location_provider,
            login_page=login_page,
            serialize_refreshes=serialize_refreshes,
            audit_logger=self.audit,
        )

        self._session = session
        self._owns_session = session is None

        logger.info(f"API client initialized for server: {self.base_url}")

    @classmethod
    def from_config(cls, config, **kwargs) -> 'JournalAPIClient':
        """
        Build a client from a ``ClientConfiguration``.

        Args:
            config: ClientConfiguration instance
            **kwargs: Overrides for constructor arguments
        """
        params = {
            'base_url': config.get_api_url(),
            'timeout': config.get_request_timeout(),
            'cooldown': RefreshCooldown(config.get_refresh_cooldown()),
            'login_page': config.get_login_path(),
            'serialize_refreshes': config.get_serialize_refreshes(),
        }
        if 'token_store' not in kwargs:
            params['token_store'] = create_token_storage(config.get_token_backend())
        params.update(kwargs)
        return cls(**params)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                timeout=self.timeout,
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                headers={'Accept': 'application/json'}
            )
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session and stop the cool-down timer."""
        self.cooldown.close()
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def on_session_expired(self, callback: Callable[[SessionExpired], None]) -> None:
        """Register a callback fired when the session cannot be renewed."""
        self.events.subscribe(SessionExpired, callback)

    def on_service_unavailable(self, callback: Callable[[ServiceUnavailable], None]) -> None:
        """Register a callback fired when a login hits a backend outage."""
        self.events.subscribe(ServiceUnavailable, callback)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> APIResponse:
        """
        Send a request through the session pipeline.

        Args:
            method: HTTP method
            path: API path relative to the base URL
            json: JSON body
            data: Form or multipart body, or a zero-argument callable
                producing one per attempt
            params: Query parameters; None values are dropped
            headers: Explicit headers; an ``Authorization`` header here
                disables automatic credential attachment

        Returns:
            APIResponse for a successful exchange

        Raises:
            NetworkError: No response was received
            APIResponseError: The API answered with an error status
        """
        descriptor = RequestDescriptor(
            method=method,
            path=path,
            headers=dict(headers or {}),
            params=self._clean_params(params),
            json=json,
            data=data,
        )
        return await self._send(PendingRequest(descriptor))

    async def get(self, path: str, **kwargs) -> APIResponse:
        return await self.request('GET', path, **kwargs)

    async def post(self, path: str, **kwargs) -> APIResponse:
        return await self.request('POST', path, **kwargs)

    async def put(self, path: str, **kwargs) -> APIResponse:
        return await self.request('PUT', path, **kwargs)

    async def delete(self, path: str, **kwargs) -> APIResponse:
        return await self.request('DELETE', path, **kwargs)

    async def _send(self, pending: PendingRequest) -> APIResponse:
        response = await self._transmit(pending)

        self.token_sync.apply(response.headers, pending.path)

        if response.status < 400:
            return response
        return await self._handle_failure(pending, response)

    async def _handle_failure(self, pending: PendingRequest, response: APIResponse) -> APIResponse:
        kind = self.classifier.classify(
            pending,
            response.status,
            response.data,
            cooldown_active=self.cooldown.is_failed(),
            current_location=self.location_provider(),
        )
        error = self._build_error(pending, response, kind)
        logger.debug(f"{pending.descriptor.method} {pending.path} failed with {response.status} ({kind.value})")

        if kind is FailureKind.SERVICE_UNAVAILABLE:
            self.audit.log_service_unavailable(pending.path, error.message)
            if is_login_endpoint(pending.path):
                self.events.emit(ServiceUnavailable(
                    message=error.user_message,
                    request_path=pending.path,
                    is_login=True,
                ))
            raise error

        if kind is FailureKind.AUTH_EXPIRED:
            return await self.coordinator.recover(pending, error)

        raise error

    async def _transmit(self, pending: PendingRequest) -> APIResponse:
        await self._ensure_session()

        descriptor = pending.descriptor
        url = f"{self.base_url}{descriptor.path}"
        headers = self.augmenter.headers_for(descriptor, force=pending.retried)

        body = {}
        if descriptor.json is not None:
            body['json'] = descriptor.json
        if descriptor.data is not None:
            body['data'] = descriptor.data() if callable(descriptor.data) else descriptor.data

        logger.debug(f"Making {descriptor.method} request to {url} (attempt {pending.attempt + 1})")

        try:
            async with self._session.request(
                method=descriptor.method,
                url=url,
                params=descriptor.params,
                headers=headers,
                **body
            ) as response:
                data = await self._read_body(response)
                return APIResponse(
                    status=response.status,
                    path=descriptor.path,
                    headers=CIMultiDictProxy(CIMultiDict(response.headers)),
                    data=data,
                )
        except asyncio.TimeoutError as e:
            logger.warning(f"Request to {descriptor.path} timed out")
            raise NetworkError(
                f"Request to {descriptor.path} timed out",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                context={'path': descriptor.path},
                cause=e
            ) from e
        except (ClientError, OSError) as e:
            logger.warning(f"Network error on {descriptor.path}: {e}")
            raise NetworkError(
                f"Network request to {descriptor.path} failed: {e}",
                context={'path': descriptor.path},
                cause=e
            ) from e

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        if response.status == 204:
            return None

        content_type = response.content_type or ''
        if content_type == 'application/json' or content_type.endswith('+json'):
            text = await response.text(errors='replace')
            if not text:
                return None
            try:
                return json.loads(text)
            except ValueError:
                return text
        if content_type.startswith('text/'):
            return await response.text(errors='replace')

        raw = await response.read()
        return raw or None

    @staticmethod
    def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not params:
            return None
        cleaned = {}
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = 'true' if value else 'false'
            cleaned[key] = value if isinstance(value, str) else str(value)
        return cleaned or None

    @staticmethod
    def _build_error(pending: PendingRequest, response: APIResponse, kind: FailureKind) -> APIResponseError:
        data = response.data
        server_message = data.get('message') if isinstance(data, dict) else None
        message = server_message or f"Request to {pending.path} failed ({response.status})"

        common = {
            'status': response.status,
            'path': pending.path,
            'data': data,
            'headers': dict(response.headers),
            'kind': kind,
        }

        if kind is FailureKind.SERVICE_UNAVAILABLE:
            return ServiceUnavailableError(message, **common)
        if response.status == 401:
            if is_login_endpoint(pending.path):
                return AuthenticationError(message, error_code=ErrorCode.AUTH_INVALID_CREDENTIALS, **common)
            return AuthenticationError(message, **common)
        if response.status == 403:
            return PermissionDeniedError(message, **common)
        if response.status == 404:
            return NotFoundError(message, **common)
        if response.status >= 500:
            return ServerError(message, **common)
        return APIResponseError(message, **common)
