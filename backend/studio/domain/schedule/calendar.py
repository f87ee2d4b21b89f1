"""Date arithmetic for the weekly schedule.

Weekdays follow the Sunday-first numbering used by the stored templates
(0 = Sunday ... 6 = Saturday), not Python's Monday-first ``weekday()``.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List

from studio.domain.errors import InvalidScheduleDate, ValidationError
from studio.domain.schedule.models import ClassInstance, ClassTemplate


def weekday_of(day: date) -> int:
	return day.isoweekday() % 7


def _check_day(day_of_week: int) -> None:
	if not 0 <= day_of_week <= 6:
		raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday).")


def next_occurrence(day_of_week: int, today: date, *, allow_same_day: bool = False) -> date:
	"""Return the next date falling on ``day_of_week``.

	When ``allow_same_day`` is false a match on ``today`` rolls over to the
	following week.
	"""
	_check_day(day_of_week)
	days_until = (day_of_week + 7 - weekday_of(today)) % 7
	if days_until == 0 and not allow_same_day:
		days_until = 7
	return today + timedelta(days=days_until)


def week_days(today: date) -> List[date]:
	"""The seven dates of the Monday-start week containing ``today``."""
	monday = today - timedelta(days=today.weekday())
	return [monday + timedelta(days=offset) for offset in range(7)]


def project_instance(template: ClassTemplate, on: date) -> ClassInstance:
	if weekday_of(on) != template.day_of_week:
		raise InvalidScheduleDate()
	return ClassInstance(
		template_id=template.id,
		date=on,
		start_time=template.start_time,
		end_time=template.end_time,
		capacity=template.max_capacity,
	)
