"""
Tests for the endpoint groups built on the API client.
"""

from unittest.mock import AsyncMock

import aiohttp
import pytest

from journal_client.models import APIResponse, ReviewStatus
from journal_client.services import JournalPortal, build_form_data, pdf_file


@pytest.fixture
def portal(api_client):
    return JournalPortal(api_client)


class TestFormData:
    """Multipart body construction."""

    def test_fields_and_files(self):
        form = build_form_data(
            {'title': 'On Graphs', 'tags': ['math', 'cs'], 'isPublic': True, 'abstract': None},
            {'pdf': ('paper.pdf', b'%PDF-1.4', 'application/pdf')},
        )

        assert isinstance(form, aiohttp.FormData)
        names = [options['name'] for options, _, _ in form._fields]
        assert names == ['title', 'tags', 'tags', 'isPublic', 'pdf']
        values = [value for _, _, value in form._fields]
        assert values[3] == 'true'

    def test_pdf_file(self, tmp_path):
        path = tmp_path / 'paper.pdf'
        path.write_bytes(b'%PDF-1.4 body')

        assert pdf_file(path) == ('paper.pdf', b'%PDF-1.4 body', 'application/pdf')


class TestJournalAPI:
    """Journal endpoints against the fake portal."""

    @pytest.mark.asyncio
    async def test_public_listing_with_filters(self, portal, portal_backend):
        response = await portal.journals.get_public_journals(page=2, limit=5, filters={'search': 'graphs', 'tag': None})

        assert response.payload['journals'][0]['title'] == 'On Graphs'
        assert portal_backend.calls('/journals/public')[0]['query'] == {'page': '2', 'limit': '5', 'search': 'graphs'}

    @pytest.mark.asyncio
    async def test_user_journals_omits_missing_status(self, portal, portal_backend):
        await portal.journals.get_user_journals()

        assert portal_backend.calls('/journals/my-journals')[0]['query'] == {'page': '1', 'limit': '10'}

    @pytest.mark.asyncio
    async def test_multipart_upload(self, portal):
        response = await portal.journals.create_journal(
            {'title': 'New Paper', 'tags': ['a', 'b']},
            {'pdf': ('paper.pdf', b'%PDF-1.4', 'application/pdf')},
        )

        assert response.status == 201
        assert response.payload == {'title': 'New Paper', 'tags': ['a', 'b'], 'pdfName': 'paper.pdf'}

    @pytest.mark.asyncio
    async def test_multipart_upload_survives_session_renewal(self, portal, portal_backend, token_store):
        token_store.set('accessToken', 'access-stale')

        response = await portal.journals.create_journal(
            {'title': 'Replayed'},
            {'pdf': ('paper.pdf', b'%PDF-1.4', 'application/pdf')},
        )

        assert response.payload['title'] == 'Replayed'
        assert response.payload['pdfName'] == 'paper.pdf'
        assert len(portal_backend.calls('/journals')) == 2
        assert len(portal_backend.calls('/auth/refresh-token')) == 1

    @pytest.mark.asyncio
    async def test_review_body_drops_unset_fields(self, api_client):
        api_client.post = AsyncMock(return_value=APIResponse(200, '/journals/review/4/review'))
        portal = JournalPortal(api_client)

        await portal.journals.review_journal(4, ReviewStatus.APPROVED, is_published=True)

        api_client.post.assert_awaited_once_with(
            '/journals/review/4/review',
            json={'reviewStatus': 'APPROVED', 'isPublished': True},
        )


class TestOtherGroups:
    """Cart, subscription and auth wrappers."""

    @pytest.mark.asyncio
    async def test_cart(self, portal):
        response = await portal.cart.get_cart()

        assert response.payload['total'] == 4.5

    @pytest.mark.asyncio
    async def test_plans_are_public(self, portal, portal_backend):
        response = await portal.subscriptions.get_plans()

        assert response.payload[0]['name'] == 'Scholar'
        assert 'Authorization' not in portal_backend.calls('/subscriptions/plans')[0]['headers']

    @pytest.mark.asyncio
    async def test_explicit_refresh_sends_stored_token(self, portal, portal_backend, token_store):
        response = await portal.auth.refresh_token()

        assert response.ok
        assert token_store.snapshot() == ('access-2', 'refresh-2')

    @pytest.mark.asyncio
    async def test_wrappers_use_expected_routes(self, api_client):
        api_client.get = AsyncMock()
        api_client.post = AsyncMock()
        api_client.put = AsyncMock()
        api_client.delete = AsyncMock()
        portal = JournalPortal(api_client)

        await portal.auth.change_password('old', 'new')
        await portal.profile.get_user_by_id(5)
        await portal.cart.remove_from_cart(11)
        await portal.subscriptions.subscribe(2, {'method': 'card'})
        await portal.journals.update_journal(4, {'title': 'Edited'})

        api_client.post.assert_any_await('/auth/change-password', json={'currentPassword': 'old', 'newPassword': 'new'})
        api_client.get.assert_awaited_once_with('/profile/users/5')
        api_client.delete.assert_awaited_once_with('/cart/item/11')
        api_client.post.assert_any_await('/subscriptions/subscribe', json={'planId': 2, 'paymentInfo': {'method': 'card'}})
        path, = api_client.put.await_args.args
        assert path == '/journals/update/4'
        assert callable(api_client.put.await_args.kwargs['data'])

    @pytest.mark.asyncio
    async def test_portal_context_manager_closes_client(self, api_client):
        async with JournalPortal(api_client) as portal:
            await portal.subscriptions.get_plans()

        assert api_client._session is None
