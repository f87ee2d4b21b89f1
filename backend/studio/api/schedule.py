"""FastAPI routes for the class schedule."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from studio.api.deps import get_principal, require_operation
from studio.container import get_container
from studio.domain.access.models import Operation, Principal
from studio.domain.reservations.schemas import OccupancyOut
from studio.domain.schedule import schemas

router = APIRouter(prefix="/schedule", tags=["schedule"])

_view = require_operation(Operation.VIEW_SCHEDULE)
_manage = require_operation(Operation.MANAGE_TEMPLATES)


@router.get("/classes", response_model=schemas.ClassTemplateList)
async def list_active_classes(_: Principal = Depends(_view)) -> schemas.ClassTemplateList:
	templates = await get_container().catalog.list_active()
	return schemas.ClassTemplateList(items=[schemas.ClassTemplateOut.from_model(t) for t in templates])


@router.get("/classes/all", response_model=schemas.ClassTemplateList)
async def list_all_classes(principal: Principal = Depends(_manage)) -> schemas.ClassTemplateList:
	templates = await get_container().catalog.list_all(principal)
	return schemas.ClassTemplateList(items=[schemas.ClassTemplateOut.from_model(t) for t in templates])


@router.post("/classes", response_model=schemas.ClassTemplateOut, status_code=status.HTTP_201_CREATED)
async def create_class(
	payload: schemas.ClassTemplateCreate,
	principal: Principal = Depends(get_principal),
) -> schemas.ClassTemplateOut:
	template = await get_container().catalog.create(principal, payload)
	return schemas.ClassTemplateOut.from_model(template)


@router.get("/classes/{template_id}", response_model=schemas.ClassTemplateOut)
async def get_class(template_id: str, _: Principal = Depends(_view)) -> schemas.ClassTemplateOut:
	return schemas.ClassTemplateOut.from_model(await get_container().catalog.get(template_id))


@router.patch("/classes/{template_id}", response_model=schemas.ClassTemplateOut)
async def update_class(
	template_id: str,
	patch: schemas.ClassTemplatePatch,
	principal: Principal = Depends(get_principal),
) -> schemas.ClassTemplateOut:
	template = await get_container().catalog.update(principal, template_id, patch)
	return schemas.ClassTemplateOut.from_model(template)


@router.delete("/classes/{template_id}", response_model=schemas.DeleteResult)
async def delete_class(
	template_id: str,
	deactivate_on_conflict: bool = Query(default=False),
	principal: Principal = Depends(get_principal),
) -> schemas.DeleteResult:
	outcome = await get_container().catalog.delete(
		principal,
		template_id,
		deactivate_on_conflict=deactivate_on_conflict,
	)
	return schemas.DeleteResult(id=template_id, outcome=outcome.value)


@router.post("/classes/{template_id}/deactivate", response_model=schemas.ClassTemplateOut)
async def deactivate_class(template_id: str, principal: Principal = Depends(get_principal)) -> schemas.ClassTemplateOut:
	template = await get_container().catalog.deactivate(principal, template_id)
	return schemas.ClassTemplateOut.from_model(template)


@router.get("/classes/{template_id}/instance", response_model=schemas.ClassInstanceOut)
async def class_instance(
	template_id: str,
	on: date = Query(..., alias="date"),
	_: Principal = Depends(_view),
) -> schemas.ClassInstanceOut:
	catalog = get_container().catalog
	template = await catalog.get(template_id)
	return schemas.ClassInstanceOut.from_model(catalog.project_instance(template, on))


@router.get("/classes/{template_id}/occupancy", response_model=OccupancyOut)
async def class_occupancy(
	template_id: str,
	on: date = Query(..., alias="date"),
	_: Principal = Depends(_view),
) -> OccupancyOut:
	occupancy = await get_container().accountant.occupancy(template_id, on)
	return OccupancyOut.from_model(occupancy)


@router.get("/day", response_model=schemas.DaySchedule)
async def day_schedule(
	on: Optional[date] = Query(default=None, alias="date"),
	principal: Principal = Depends(get_principal),
) -> schemas.DaySchedule:
	catalog = get_container().catalog
	selected = on or date.today()
	entries = await catalog.schedule_for_date(principal, selected)
	return schemas.DaySchedule(
		date=selected,
		week=catalog.week_days(selected),
		items=[schemas.ScheduleEntryOut.from_model(entry) for entry in entries],
	)


@router.get("/next")
async def next_class_date(
	day_of_week: int = Query(..., ge=0, le=6),
	today: Optional[date] = Query(default=None),
	allow_same_day: bool = Query(default=False),
	_: Principal = Depends(_view),
) -> dict:
	upcoming = get_container().catalog.next_occurrence(day_of_week, today or date.today(), allow_same_day)
	return {"date": upcoming.isoformat()}
