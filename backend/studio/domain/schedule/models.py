"""Domain models for the recurring class schedule."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum


@dataclass(slots=True)
class ClassTemplate:
    """A weekly recurring class definition.

    ``day_of_week`` counts from Sunday: 0 = Sunday, 1 = Monday ... 6 = Saturday.
    """

    id: str
    name: str
    instructor: str
    day_of_week: int
    start_time: time
    end_time: time
    max_capacity: int
    is_active: bool
    created_at: datetime

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "instructor": self.instructor,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "max_capacity": self.max_capacity,
            "is_active": self.is_active,
            "created_at": self.created_at,
        }


@dataclass(slots=True, frozen=True)
class ClassInstance:
    """A template projected onto one calendar date."""

    template_id: str
    date: date
    start_time: time
    end_time: time
    capacity: int


@dataclass(slots=True)
class ScheduleEntry:
    template: ClassTemplate
    date: date
    count: int
    is_full: bool
    reserved: bool


class DeleteOutcome(str, Enum):
    DELETED = "deleted"
    DEACTIVATED = "deactivated"
