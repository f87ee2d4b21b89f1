"""Pydantic schemas for the schedule API."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from studio.domain.schedule.models import ClassInstance, ClassTemplate, ScheduleEntry


class ClassTemplateCreate(BaseModel):
    name: str = Field(..., max_length=120)
    instructor: str = Field(..., max_length=120)
    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_time: dt.time
    end_time: dt.time
    max_capacity: int
    is_active: bool = True


class ClassTemplatePatch(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    instructor: Optional[str] = Field(default=None, max_length=120)
    day_of_week: Optional[int] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    max_capacity: Optional[int] = None
    is_active: Optional[bool] = None


class ClassTemplateOut(BaseModel):
    id: str
    name: str
    instructor: str
    day_of_week: int
    start_time: dt.time
    end_time: dt.time
    max_capacity: int
    is_active: bool
    created_at: dt.datetime

    @classmethod
    def from_model(cls, template: ClassTemplate) -> "ClassTemplateOut":
        return cls(**template.to_row())


class ClassTemplateList(BaseModel):
    items: List[ClassTemplateOut]


class ClassInstanceOut(BaseModel):
    template_id: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    capacity: int

    @classmethod
    def from_model(cls, instance: ClassInstance) -> "ClassInstanceOut":
        return cls(
            template_id=instance.template_id,
            date=instance.date,
            start_time=instance.start_time,
            end_time=instance.end_time,
            capacity=instance.capacity,
        )


class ScheduleEntryOut(BaseModel):
    template: ClassTemplateOut
    date: dt.date
    count: int
    capacity: int
    is_full: bool
    reserved: bool

    @classmethod
    def from_model(cls, entry: ScheduleEntry) -> "ScheduleEntryOut":
        return cls(
            template=ClassTemplateOut.from_model(entry.template),
            date=entry.date,
            count=entry.count,
            capacity=entry.template.max_capacity,
            is_full=entry.is_full,
            reserved=entry.reserved,
        )


class DaySchedule(BaseModel):
    date: dt.date
    week: List[dt.date]
    items: List[ScheduleEntryOut]


class DeleteResult(BaseModel):
    id: str
    outcome: str
