"""
Endpoint groups of the Journal Portal API.

Thin wrappers that name each API call and shape its parameters. All of them
go through the session pipeline of ``JournalAPIClient``.
"""

from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Tuple, Union

import aiohttp

from journal_client.api_client import JournalAPIClient
from journal_client.endpoints import LOGIN_ENDPOINT, REGISTER_ENDPOINT, REFRESH_ENDPOINT
from journal_client.models import APIResponse, ReviewStatus

# (filename, content, content_type)
FileField = Tuple[str, Union[bytes, BinaryIO], str]


def build_form_data(fields: Dict[str, Any], files: Optional[Dict[str, FileField]] = None) -> aiohttp.FormData:
    """
    Build a multipart body from plain fields and file parts.

    A FormData can only be sent once, so callers pass a factory around this
    function as the request body; file contents should be bytes for the body
    to be rebuilt on a replay.

    Args:
        fields: Form fields; None values are skipped, lists become repeated fields
        files: Mapping of field name to (filename, content, content_type)

    Returns:
        aiohttp FormData ready to send
    """
    form = aiohttp.FormData()
    for name, value in fields.items():
        if value is None:
            continue
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            if isinstance(item, bool):
                item = 'true' if item else 'false'
            form.add_field(name, str(item))

    for name, (filename, content, content_type) in (files or {}).items():
        form.add_field(name, content, filename=filename, content_type=content_type)

    return form


def pdf_file(path: Union[str, Path]) -> FileField:
    """Read a PDF from disk into a file part."""
    path = Path(path)
    return path.name, path.read_bytes(), 'application/pdf'


class _EndpointGroup:
    def __init__(self, client: JournalAPIClient):
        self.client = client


class AuthAPI(_EndpointGroup):
    """Account and session endpoints."""

    async def register(self, user_data: Dict[str, Any]) -> APIResponse:
        return await self.client.post(REGISTER_ENDPOINT, json=user_data)

    async def login(self, email: str, password: str) -> APIResponse:
        return await self.client.post(LOGIN_ENDPOINT, json={'email': email, 'password': password})

    async def logout(self) -> APIResponse:
        return await self.client.post('/auth/logout')

    async def refresh_token(self) -> APIResponse:
        """Call the refresh endpoint directly (outside the automatic recovery)."""
        refresh_token = self.client.token_store.get_refresh_token()
        body = {'refreshToken': refresh_token} if refresh_token else None
        return await self.client.post(REFRESH_ENDPOINT, json=body)

    async def get_current_user(self) -> APIResponse:
        return await self.client.get('/auth/me')

    async def update_profile(self, profile_data: Dict[str, Any]) -> APIResponse:
        return await self.client.put('/auth/update-profile', json=profile_data)

    async def change_password(self, current_password: str, new_password: str) -> APIResponse:
        return await self.client.post('/auth/change-password', json={
            'currentPassword': current_password,
            'newPassword': new_password,
        })

    async def request_password_reset(self, email: str) -> APIResponse:
        return await self.client.post('/auth/request-password-reset', json={'email': email})

    async def reset_password(self, token: str, new_password: str) -> APIResponse:
        return await self.client.post('/auth/reset-password', json={
            'token': token,
            'newPassword': new_password,
        })


class ProfileAPI(_EndpointGroup):
    """Profile endpoints, including admin user management."""

    async def get_profile(self) -> APIResponse:
        return await self.client.get('/profile/me')

    async def complete_profile(self, profile_data: Dict[str, Any]) -> APIResponse:
        return await self.client.post('/profile/complete', json=profile_data)

    async def update_profile(self, profile_data: Dict[str, Any]) -> APIResponse:
        return await self.client.put('/profile/update', json=profile_data)

    async def toggle_researcher_status(self, researcher_data: Optional[Dict[str, Any]] = None) -> APIResponse:
        return await self.client.put('/profile/toggle-researcher', json=researcher_data)

    async def get_all_users(self, page: int = 1, limit: int = 10, filters: Optional[Dict[str, Any]] = None) -> APIResponse:
        params = {'page': page, 'limit': limit, **(filters or {})}
        return await self.client.get('/profile/users', params=params)

    async def get_user_by_id(self, user_id: int) -> APIResponse:
        return await self.client.get(f'/profile/users/{user_id}')

    async def update_user(self, user_id: int, user_data: Dict[str, Any]) -> APIResponse:
        return await self.client.put(f'/profile/users/{user_id}', json=user_data)


class JournalAPI(_EndpointGroup):
    """Article listing, submission, review and reader endpoints."""

    async def get_all_journals(self, page: int = 1, limit: int = 10, filters: Optional[Dict[str, Any]] = None) -> APIResponse:
        params = {'page': page, 'limit': limit, **(filters or {})}
        return await self.client.get('/journals/get', params=params)

    async def get_public_journals(self, page: int = 1, limit: int = 10, filters: Optional[Dict[str, Any]] = None) -> APIResponse:
        params = {'page': page, 'limit': limit, **(filters or {})}
        return await self.client.get('/journals/public', params=params)

    async def get_journal_by_id(self, journal_id: int) -> APIResponse:
        return await self.client.get(f'/journals/get/{journal_id}')

    async def create_journal(self, fields: Dict[str, Any], files: Optional[Dict[str, FileField]] = None) -> APIResponse:
        return await self.client.post('/journals', data=lambda: build_form_data(fields, files))

    async def update_journal(self, journal_id: int, fields: Dict[str, Any],
                             files: Optional[Dict[str, FileField]] = None) -> APIResponse:
        return await self.client.put(f'/journals/update/{journal_id}', data=lambda: build_form_data(fields, files))

    async def delete_journal(self, journal_id: int) -> APIResponse:
        return await self.client.delete(f'/journals/delete/{journal_id}')

    async def submit_for_review(self, journal_id: int) -> APIResponse:
        return await self.client.post(f'/journals/submit/{journal_id}')

    async def review_journal(
        self,
        journal_id: int,
        review_status: ReviewStatus,
        review_notes: Optional[str] = None,
        is_published: Optional[bool] = None,
        price: Optional[float] = None
    ) -> APIResponse:
        """Admin review decision for a submitted article."""
        body = {
            'reviewStatus': review_status.value,
            'reviewNotes': review_notes,
            'isPublished': is_published,
            'price': price,
        }
        body = {k: v for k, v in body.items() if v is not None}
        return await self.client.post(f'/journals/review/{journal_id}/review', json=body)

    async def get_pending_reviews(self, page: int = 1, limit: int = 10) -> APIResponse:
        return await self.client.get('/journals/pending-reviews', params={'page': page, 'limit': limit})

    async def get_user_journals(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> APIResponse:
        return await self.client.get('/journals/my-journals', params={'page': page, 'limit': limit, 'status': status})

    async def save_journal(self, journal_id: int) -> APIResponse:
        return await self.client.post(f'/journals/save/{journal_id}')

    async def unsave_journal(self, journal_id: int) -> APIResponse:
        return await self.client.delete(f'/journals/save/{journal_id}')

    async def get_saved_journals(self, page: int = 1, limit: int = 10) -> APIResponse:
        return await self.client.get('/journals/saved', params={'page': page, 'limit': limit})

    async def download_journal(self, journal_id: int) -> APIResponse:
        return await self.client.post(f'/journals/download/{journal_id}')

    async def add_comment(self, journal_id: int, content: str, parent_id: Optional[int] = None) -> APIResponse:
        body: Dict[str, Any] = {'content': content}
        if parent_id is not None:
            body['parentId'] = parent_id
        return await self.client.post(f'/journals/comment/{journal_id}', json=body)

    async def get_journal_stats(self) -> APIResponse:
        return await self.client.get('/journals/journal-stats')

    async def view_journal_pdf(self, journal_id: int) -> APIResponse:
        return await self.client.get(f'/journals/get/{journal_id}/view-pdf')


class CartAPI(_EndpointGroup):
    """Shopping cart endpoints."""

    async def get_cart(self) -> APIResponse:
        return await self.client.get('/cart')

    async def add_to_cart(self, journal_id: int) -> APIResponse:
        return await self.client.post('/cart/add', json={'journalId': journal_id})

    async def remove_from_cart(self, cart_item_id: int) -> APIResponse:
        return await self.client.delete(f'/cart/item/{cart_item_id}')

    async def clear_cart(self) -> APIResponse:
        return await self.client.delete('/cart/clear')

    async def get_checkout_info(self) -> APIResponse:
        return await self.client.get('/cart/checkout')


class SubscriptionAPI(_EndpointGroup):
    """Subscription plan endpoints."""

    async def get_plans(self) -> APIResponse:
        return await self.client.get('/subscriptions/plans')

    async def get_current_subscription(self) -> APIResponse:
        return await self.client.get('/subscriptions/current')

    async def subscribe(self, plan_id: int, payment_info: Dict[str, Any]) -> APIResponse:
        return await self.client.post('/subscriptions/subscribe', json={
            'planId': plan_id,
            'paymentInfo': payment_info,
        })

    async def cancel_subscription(self, subscription_id: int) -> APIResponse:
        return await self.client.post(f'/subscriptions/{subscription_id}/cancel')


class JournalPortal:
    """All endpoint groups bound to one client."""

    def __init__(self, client: JournalAPIClient):
        self.client = client
        self.auth = AuthAPI(client)
        self.profile = ProfileAPI(client)
        self.journals = JournalAPI(client)
        self.cart = CartAPI(client)
        self.subscriptions = SubscriptionAPI(client)

    async def __aenter__(self):
        await self.client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.close()
