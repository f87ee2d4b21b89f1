"""Pydantic schemas for the reservations API."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from studio.domain.reservations.models import DashboardStats, Occupancy, ReservationRecord, ReservationView


class BookSeatRequest(BaseModel):
    class_template_id: str = Field(..., min_length=1)
    reservation_date: dt.date
    member_id: Optional[str] = Field(default=None, description="Staff only: book on behalf of this member")


class ReservationOut(BaseModel):
    id: str
    class_template_id: str
    member_id: str
    reservation_date: dt.date
    status: str
    created_at: dt.datetime

    @classmethod
    def from_model(cls, record: ReservationRecord) -> "ReservationOut":
        return cls(**record.to_row())


class ReservationViewOut(BaseModel):
    id: str
    class_template_id: str
    member_id: str
    reservation_date: dt.date
    status: str
    created_at: dt.datetime
    class_name: str
    instructor: str
    start_time: dt.time
    end_time: dt.time
    member_name: Optional[str] = None

    @classmethod
    def from_model(cls, view: ReservationView) -> "ReservationViewOut":
        return cls(
            id=view.id,
            class_template_id=view.class_template_id,
            member_id=view.member_id,
            reservation_date=view.reservation_date,
            status=view.status.value,
            created_at=view.created_at,
            class_name=view.class_name,
            instructor=view.instructor,
            start_time=view.start_time,
            end_time=view.end_time,
            member_name=view.member_name,
        )


class ReservationList(BaseModel):
    items: List[ReservationViewOut]


class OccupancyOut(BaseModel):
    template_id: str
    date: dt.date
    count: int
    capacity: int
    is_full: bool

    @classmethod
    def from_model(cls, occupancy: Occupancy) -> "OccupancyOut":
        return cls(
            template_id=occupancy.template_id,
            date=occupancy.date,
            count=occupancy.count,
            capacity=occupancy.capacity,
            is_full=occupancy.is_full,
        )


class DashboardStatsOut(BaseModel):
    active_classes: int
    active_memberships: int
    upcoming_reservations: int

    @classmethod
    def from_model(cls, stats: DashboardStats) -> "DashboardStatsOut":
        return cls(
            active_classes=stats.active_classes,
            active_memberships=stats.active_memberships,
            upcoming_reservations=stats.upcoming_reservations,
        )
