"""
Shared fixtures for the Journal Portal client tests.

The fake backend is a small aiohttp application mimicking the portal API:
bearer-token protected routes, token rotation through response headers and a
refresh endpoint whose behavior each test can tune.
"""

from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from multidict import CIMultiDict

from journal_client.api_client import JournalAPIClient
from journal_client.auth.cooldown import RefreshCooldown
from journal_client.auth.token_storage import MemoryTokenStorage

USER = {
    'id': 7,
    'email': 'reader@example.org',
    'name': 'Ada Reader',
    'role': 'USER',
    'profileStatus': 'COMPLETE',
    'createdAt': '2024-01-05T10:00:00Z',
}

PASSWORD = 'correct-horse'


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePortal:
    """In-process stand-in for the portal backend."""

    def __init__(self):
        self.access_token = 'access-1'
        self.refresh_token = 'refresh-1'
        self.rotation = 1
        self.requests: List[Dict[str, Any]] = []

        # Knobs tests turn
        self.refresh_status: Optional[int] = None
        self.refresh_no_content = False
        self.login_unavailable = False
        self.public_status: Optional[int] = None
        self.reject_all = False
        self.rotate_on_every_response: Optional[str] = None

        self.app = web.Application(middlewares=[self._record])
        self.app.router.add_post('/api/auth/login', self.login)
        self.app.router.add_post('/api/auth/register', self.register)
        self.app.router.add_post('/api/auth/refresh-token', self.refresh)
        self.app.router.add_post('/api/auth/logout', self.logout)
        self.app.router.add_get('/api/auth/me', self.me)
        self.app.router.add_post('/api/auth/change-password', self.change_password)
        self.app.router.add_get('/api/journals/public', self.public_journals)
        self.app.router.add_get('/api/journals/my-journals', self.my_journals)
        self.app.router.add_post('/api/journals', self.create_journal)
        self.app.router.add_get('/api/cart', self.cart)
        self.app.router.add_get('/api/subscriptions/plans', self.plans)
        self.app.router.add_get('/api/status/{code}', self.status)
        self.app.router.add_get('/api/assets/logo.png', self.protected_asset)
        self.app.router.add_get('/api/garbled', self.garbled)

    def calls(self, path: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r['path'] == '/api' + path]

    @web.middleware
    async def _record(self, request, handler):
        entry = {
            'method': request.method,
            'path': request.path,
            'query': dict(request.query),
            'headers': CIMultiDict(request.headers),
        }
        self.requests.append(entry)
        response = await handler(request)
        if self.rotate_on_every_response:
            response.headers['access-token'] = self.rotate_on_every_response
        return response

    def _authorized(self, request) -> bool:
        if self.reject_all:
            return False
        return request.headers.get('Authorization') == f'Bearer {self.access_token}'

    def _rotate(self) -> Dict[str, str]:
        self.rotation += 1
        self.access_token = f'access-{self.rotation}'
        self.refresh_token = f'refresh-{self.rotation}'
        return {'access-token': self.access_token, 'refresh-token': self.refresh_token}

    @staticmethod
    def _expired():
        return web.json_response({'success': False, 'message': 'Token expired'}, status=401)

    async def login(self, request):
        if self.login_unavailable:
            return web.json_response(
                {'success': False, 'error': 'service_unavailable', 'message': 'Database is offline'},
                status=503
            )
        body = await request.json()
        if body.get('email') != USER['email'] or body.get('password') != PASSWORD:
            return web.json_response({'success': False, 'message': 'Invalid email or password'}, status=401)
        return web.json_response(
            {'success': True, 'message': 'Login successful', 'data': {'user': USER}},
            headers=self._rotate()
        )

    async def register(self, request):
        body = await request.json()
        user = dict(USER, email=body['email'], profileStatus='INCOMPLETE')
        return web.json_response(
            {'success': True, 'data': {'user': user, 'requiresProfileCompletion': True}},
            status=201,
            headers=self._rotate()
        )

    async def refresh(self, request):
        if self.refresh_status is not None:
            return web.json_response({'success': False, 'message': 'Refresh rejected'}, status=self.refresh_status)
        if self.refresh_no_content:
            return web.Response(status=204)
        body = await request.json() if request.can_read_body else {}
        if (body or {}).get('refreshToken') != self.refresh_token:
            return web.json_response({'success': False, 'message': 'Invalid refresh token'}, status=401)
        return web.json_response({'success': True, 'message': 'Token refreshed'}, headers=self._rotate())

    async def logout(self, request):
        return web.json_response({'success': True, 'message': 'Logged out'})

    async def me(self, request):
        if not self._authorized(request):
            return self._expired()
        subscription = {
            'id': 3,
            'planId': 1,
            'status': 'ACTIVE',
            'startDate': '2024-01-01T00:00:00Z',
            'endDate': '2999-01-01T00:00:00Z',
            'plan': {'id': 1, 'name': 'Scholar', 'price': 9.99, 'duration': 30},
        }
        return web.json_response({'success': True, 'data': dict(USER, subscriptions=[subscription])})

    async def change_password(self, request):
        if not self._authorized(request):
            return self._expired()
        body = await request.json()
        if body.get('currentPassword') != PASSWORD:
            return web.json_response({'success': False, 'message': 'Current password is incorrect'}, status=400)
        return web.json_response({'success': True})

    async def public_journals(self, request):
        if self.public_status is not None:
            return web.json_response({'success': False, 'message': 'Nope'}, status=self.public_status)
        return web.json_response({
            'success': True,
            'data': {'journals': [{'id': 1, 'title': 'On Graphs', 'reviewStatus': 'PUBLISHED'}], 'total': 1},
        })

    async def my_journals(self, request):
        if not self._authorized(request):
            return self._expired()
        return web.json_response({
            'success': True,
            'data': {'journals': [{'id': 4, 'title': 'Draft Paper', 'reviewStatus': 'DRAFT'}], 'total': 1},
        })

    async def create_journal(self, request):
        if not self._authorized(request):
            return self._expired()
        form = await request.post()
        pdf = form.get('pdf')
        return web.json_response({
            'success': True,
            'data': {
                'title': form.get('title'),
                'tags': form.getall('tags', []),
                'pdfName': pdf.filename if pdf is not None else None,
            },
        }, status=201)

    async def cart(self, request):
        if not self._authorized(request):
            return self._expired()
        return web.json_response({
            'success': True,
            'data': {'items': [{'id': 11, 'journal': {'title': 'On Graphs'}}], 'total': 4.5},
        })

    async def plans(self, request):
        return web.json_response({'success': True, 'data': [{'id': 1, 'name': 'Scholar', 'price': 9.99, 'duration': 30}]})

    async def status(self, request):
        code = int(request.match_info['code'])
        if code == 204:
            return web.Response(status=204)
        body = {'success': False, 'message': f'Status {code}'}
        if request.query.get('discriminator'):
            body['error'] = request.query['discriminator']
        return web.json_response(body, status=code)

    async def protected_asset(self, request):
        if not self._authorized(request):
            return self._expired()
        return web.Response(body=b'\x89PNG', content_type='image/png')

    async def garbled(self, request):
        if request.query.get('kind') == 'text':
            return web.Response(body=b'caf\xe9', content_type='text/plain')
        return web.Response(body=b'{"message": "\xff\xfe"}', status=400, content_type='application/json')


@pytest_asyncio.fixture
async def portal_backend():
    backend = FakePortal()
    server = TestServer(backend.app)
    await server.start_server()
    backend.base_url = str(server.make_url('/api'))
    yield backend
    await server.close()


@pytest.fixture
def token_store():
    return MemoryTokenStorage({'accessToken': 'access-1', 'refreshToken': 'refresh-1'})


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def api_client(portal_backend, token_store, clock):
    client = JournalAPIClient(
        portal_backend.base_url,
        token_store=token_store,
        timeout=5.0,
        cooldown=RefreshCooldown(30.0, clock=clock),
    )
    yield client
    await client.close()
