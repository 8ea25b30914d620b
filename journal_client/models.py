"""
Data models for the Journal Portal client.

Request/response structures that flow through the HTTP pipeline, and the
domain records the API returns for users and subscriptions.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum

from multidict import CIMultiDict, CIMultiDictProxy


class UserRole(Enum):
    """Account roles."""
    USER = "USER"
    AUTHOR = "AUTHOR"
    ADMIN = "ADMIN"


class ProfileStatus(Enum):
    """Whether the user finished the onboarding profile."""
    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"


class ReviewStatus(Enum):
    """Editorial state of a journal article."""
    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PUBLISHED = "PUBLISHED"
    REVISIONS_NEEDED = "REVISIONS_NEEDED"


class SubscriptionStatus(Enum):
    """Subscription lifecycle states."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


@dataclass
class RequestDescriptor:
    """
    An outgoing API call as the caller described it.

    ``headers`` holds only what the caller supplied; credentials are computed
    per attempt by the request augmenter and never written back here.
    """
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    data: Any = None

    def __post_init__(self):
        if not self.path:
            raise ValueError("Request path cannot be empty")
        self.method = self.method.upper()
        if not self.path.startswith('/'):
            self.path = '/' + self.path

    def has_explicit_authorization(self) -> bool:
        return any(name.lower() == 'authorization' for name in self.headers)


@dataclass(frozen=True)
class PendingRequest:
    """A descriptor together with how many times it has been sent after a refresh."""
    descriptor: RequestDescriptor
    attempt: int = 0

    @property
    def retried(self) -> bool:
        return self.attempt > 0

    @property
    def path(self) -> str:
        return self.descriptor.path

    def next_attempt(self) -> 'PendingRequest':
        return replace(self, attempt=self.attempt + 1)


@dataclass
class APIResponse:
    """A completed HTTP exchange."""
    status: int
    path: str
    headers: CIMultiDictProxy = field(default_factory=lambda: CIMultiDictProxy(CIMultiDict()))
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def payload(self) -> Any:
        """The ``data`` member of the backend's ``{success, message, data}`` envelope."""
        if isinstance(self.data, dict) and 'data' in self.data:
            return self.data['data']
        return self.data


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (TypeError, ValueError):
        return None


@dataclass
class SubscriptionPlan:
    """A purchasable subscription plan."""
    id: int
    name: str
    price: float
    duration: int
    features: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubscriptionPlan':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            price=float(data.get('price', 0)),
            duration=int(data.get('duration', 0)),
            features=data.get('features') or "",
        )


@dataclass
class Subscription:
    """A user's subscription to a plan."""
    id: int
    plan_id: int
    status: SubscriptionStatus
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    auto_renew: bool = False
    plan: Optional[SubscriptionPlan] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Subscription':
        plan_data = data.get('plan')
        return cls(
            id=data['id'],
            plan_id=data.get('planId', plan_data['id'] if plan_data else 0),
            status=SubscriptionStatus(data.get('status', 'PENDING')),
            start_date=_parse_datetime(data.get('startDate')),
            end_date=_parse_datetime(data.get('endDate')),
            auto_renew=bool(data.get('autoRenew', False)),
            plan=SubscriptionPlan.from_dict(plan_data) if plan_data else None,
        )

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if self.status != SubscriptionStatus.ACTIVE or self.end_date is None:
            return False
        if now is None:
            now = datetime.now(self.end_date.tzinfo)
        return self.end_date > now


@dataclass
class User:
    """An authenticated portal user."""
    id: int
    email: str
    role: UserRole
    profile_status: ProfileStatus
    name: Optional[str] = None
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    institution: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=data['id'],
            email=data['email'],
            role=UserRole(data.get('role', 'USER')),
            profile_status=ProfileStatus(data.get('profileStatus', 'INCOMPLETE')),
            name=data.get('name'),
            profile_image=data.get('profileImage'),
            bio=data.get('bio'),
            institution=data.get('institution'),
            created_at=_parse_datetime(data.get('createdAt')),
            updated_at=_parse_datetime(data.get('updatedAt')),
        )
