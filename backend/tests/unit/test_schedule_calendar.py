from datetime import date, datetime, time, timezone

import pytest

from studio.domain.errors import InvalidScheduleDate, ValidationError
from studio.domain.schedule.calendar import next_occurrence, project_instance, week_days, weekday_of
from studio.domain.schedule.models import ClassTemplate


def _template(day_of_week: int) -> ClassTemplate:
    return ClassTemplate(
        id="tpl-1",
        name="Mat Pilates",
        instructor="Lucia",
        day_of_week=day_of_week,
        start_time=time(18, 0),
        end_time=time(19, 0),
        max_capacity=8,
        is_active=True,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_weekday_counts_from_sunday():
    assert weekday_of(date(2024, 6, 2)) == 0  # Sunday
    assert weekday_of(date(2024, 6, 3)) == 1
    assert weekday_of(date(2024, 6, 8)) == 6


def test_next_occurrence_same_weekday_rolls_over_by_default():
    # Wednesday 2024-06-05, asking for Wednesday
    assert next_occurrence(3, date(2024, 6, 5)) == date(2024, 6, 12)
    assert next_occurrence(3, date(2024, 6, 5), allow_same_day=True) == date(2024, 6, 5)


def test_next_occurrence_wraps_across_week_end():
    # Saturday -> Monday
    assert next_occurrence(1, date(2024, 6, 8)) == date(2024, 6, 10)
    # Monday -> Sunday
    assert next_occurrence(0, date(2024, 6, 3)) == date(2024, 6, 9)


@pytest.mark.parametrize("day", [-1, 7])
def test_next_occurrence_rejects_out_of_range_day(day):
    with pytest.raises(ValidationError):
        next_occurrence(day, date(2024, 6, 3))


def test_week_days_start_on_monday():
    days = week_days(date(2024, 6, 2))  # a Sunday belongs to the week that began on Monday the 27th
    assert days[0] == date(2024, 5, 27)
    assert days[-1] == date(2024, 6, 2)
    assert len(days) == 7
    assert week_days(date(2024, 6, 3))[0] == date(2024, 6, 3)


def test_project_instance_copies_times_and_capacity():
    instance = project_instance(_template(1), date(2024, 6, 3))
    assert instance.template_id == "tpl-1"
    assert instance.date == date(2024, 6, 3)
    assert (instance.start_time, instance.end_time) == (time(18, 0), time(19, 0))
    assert instance.capacity == 8


def test_project_instance_rejects_wrong_weekday():
    with pytest.raises(InvalidScheduleDate):
        project_instance(_template(1), date(2024, 6, 4))
