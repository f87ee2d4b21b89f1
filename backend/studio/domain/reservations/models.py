"""Domain models for seat reservations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class ReservationRecord:
    """One booked seat. The only allowed transition is active -> cancelled."""

    id: str
    class_template_id: str
    member_id: str
    reservation_date: date
    status: ReservationStatus
    created_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status is ReservationStatus.ACTIVE

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "class_template_id": self.class_template_id,
            "member_id": self.member_id,
            "reservation_date": self.reservation_date,
            "status": self.status.value,
            "created_at": self.created_at,
        }


@dataclass(slots=True)
class ReservationView:
    """Reservation joined with class and member summary fields for listings."""

    id: str
    class_template_id: str
    member_id: str
    reservation_date: date
    status: ReservationStatus
    created_at: datetime
    class_name: str
    instructor: str
    start_time: time
    end_time: time
    member_name: Optional[str]


@dataclass(slots=True, frozen=True)
class Occupancy:
    template_id: str
    date: date
    count: int
    capacity: int

    @property
    def is_full(self) -> bool:
        return self.count >= self.capacity

    @property
    def available(self) -> int:
        return max(self.capacity - self.count, 0)


@dataclass(slots=True, frozen=True)
class DashboardStats:
    active_classes: int
    active_memberships: int
    upcoming_reservations: int
