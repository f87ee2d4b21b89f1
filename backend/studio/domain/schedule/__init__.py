"""Recurring class schedule."""

from studio.domain.schedule.models import ClassInstance, ClassTemplate, DeleteOutcome, ScheduleEntry

__all__ = ["ClassInstance", "ClassTemplate", "DeleteOutcome", "ScheduleEntry"]
