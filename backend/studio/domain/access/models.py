"""Access-control models: roles, operations and principals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


# Legacy spellings still present in older profile rows
ROLE_ALIASES = {
    "admin": Role.ADMIN,
    "member": Role.MEMBER,
    "cliente": Role.MEMBER,
}


def parse_role(value: Optional[str]) -> Optional[Role]:
    if value is None:
        return None
    return ROLE_ALIASES.get(str(value).strip().lower())


class Operation(str, Enum):
    MANAGE_TEMPLATES = "manage_templates"
    VIEW_ANY_RESERVATION = "view_any_reservation"
    CANCEL_ANY_RESERVATION = "cancel_any_reservation"
    BOOK_ON_BEHALF = "book_on_behalf"
    ASSIGN_MEMBERSHIP = "assign_membership"
    CREATE_MEMBER = "create_member"
    LIST_MEMBERS = "list_members"
    TOGGLE_ROLE = "toggle_role"
    VIEW_STATS = "view_stats"
    BOOK_OWN = "book_own"
    CANCEL_OWN = "cancel_own"
    VIEW_OWN_RESERVATIONS = "view_own_reservations"
    VIEW_OWN_PROFILE = "view_own_profile"
    VIEW_SCHEDULE = "view_schedule"


STAFF_OPERATIONS = frozenset(
    {
        Operation.MANAGE_TEMPLATES,
        Operation.VIEW_ANY_RESERVATION,
        Operation.CANCEL_ANY_RESERVATION,
        Operation.BOOK_ON_BEHALF,
        Operation.ASSIGN_MEMBERSHIP,
        Operation.CREATE_MEMBER,
        Operation.LIST_MEMBERS,
        Operation.TOGGLE_ROLE,
        Operation.VIEW_STATS,
        Operation.VIEW_SCHEDULE,
    }
)

MEMBER_OPERATIONS = frozenset(
    {
        Operation.BOOK_OWN,
        Operation.CANCEL_OWN,
        Operation.VIEW_OWN_RESERVATIONS,
        Operation.VIEW_OWN_PROFILE,
        Operation.VIEW_SCHEDULE,
    }
)

ALLOWED_OPERATIONS = {
    Role.ADMIN: STAFF_OPERATIONS,
    Role.MEMBER: MEMBER_OPERATIONS,
}


@dataclass(slots=True, frozen=True)
class Principal:
    user_id: str
    role: Optional[Role]

    @property
    def is_staff(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(slots=True)
class MemberProfile:
    id: str
    full_name: str
    role: Role
    phone: Optional[str]
    created_at: datetime

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "role": self.role.value,
            "phone": self.phone,
            "created_at": self.created_at,
        }


@dataclass(slots=True)
class MembershipGrant:
    id: str
    user_id: str
    type: str
    start_date: date
    end_date: date
    status: str
    created_at: datetime

    def covers(self, on: date) -> bool:
        return self.status == "active" and self.start_date <= on <= self.end_date

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "status": self.status,
            "created_at": self.created_at,
        }


class SessionStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SIGNED_OUT = "signed_out"


@dataclass(slots=True, frozen=True)
class SessionState:
    """Snapshot of the auth state observed by views and sockets."""

    status: SessionStatus
    user_id: Optional[str] = None
    role: Optional[Role] = None
    generation: int = 0

    @property
    def role_pending(self) -> bool:
        return self.status is SessionStatus.LOADING
