"""Class catalog: template management and calendar projection."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List

import ulid

from studio.domain.access.gate import AccessGate
from studio.domain.access.models import Operation, Principal
from studio.domain.errors import NotFound, ReferentialConstraint, ValidationError
from studio.domain.reservations.capacity import CapacityAccountant
from studio.domain.reservations.repository import ReservationRepository
from studio.domain.schedule import calendar, schemas
from studio.domain.schedule.models import ClassInstance, ClassTemplate, DeleteOutcome, ScheduleEntry
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.infra.postgres import retry_read

log = logging.getLogger(__name__)


def validate_template_fields(fields: Dict[str, Any]) -> None:
	"""Check a complete set of template fields; raises ValidationError."""
	for key in ("name", "instructor"):
		value = fields.get(key)
		if not isinstance(value, str) or not value.strip():
			raise ValidationError(f"{key} must not be blank.")
	day = fields.get("day_of_week")
	if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
		raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday).")
	start, end = fields.get("start_time"), fields.get("end_time")
	if not isinstance(start, time) or not isinstance(end, time):
		raise ValidationError("start_time and end_time are required.")
	if start >= end:
		raise ValidationError("start_time must be before end_time.")
	capacity = fields.get("max_capacity")
	if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity <= 0:
		raise ValidationError("max_capacity must be greater than zero.")


class ScheduleCatalog:
	def __init__(
		self,
		*,
		repository: ClassTemplateRepository | None = None,
		reservations: ReservationRepository | None = None,
		accountant: CapacityAccountant | None = None,
		gate: AccessGate | None = None,
	) -> None:
		self._repo = repository or ClassTemplateRepository()
		self._reservations = reservations or ReservationRepository()
		self._accountant = accountant or CapacityAccountant(self._repo, self._reservations)
		self._gate = gate or AccessGate()

	async def list_active(self) -> List[ClassTemplate]:
		return await retry_read(self._repo.list, active_only=True)

	async def list_all(self, principal: Principal) -> List[ClassTemplate]:
		self._gate.authorize(principal, Operation.MANAGE_TEMPLATES)
		return await retry_read(self._repo.list)

	async def get(self, template_id: str) -> ClassTemplate:
		template = await retry_read(self._repo.get, template_id)
		if template is None:
			raise NotFound("Class not found.")
		return template

	async def create(self, principal: Principal, payload: schemas.ClassTemplateCreate) -> ClassTemplate:
		self._gate.authorize(principal, Operation.MANAGE_TEMPLATES)
		fields = payload.model_dump()
		validate_template_fields(fields)
		template = ClassTemplate(
			id=str(ulid.new()),
			name=fields["name"].strip(),
			instructor=fields["instructor"].strip(),
			day_of_week=fields["day_of_week"],
			start_time=fields["start_time"],
			end_time=fields["end_time"],
			max_capacity=fields["max_capacity"],
			is_active=fields["is_active"],
			created_at=datetime.now(timezone.utc),
		)
		created = await self._repo.insert(template)
		log.info("class template created", extra={"template_id": created.id})
		return created

	async def update(self, principal: Principal, template_id: str, patch: schemas.ClassTemplatePatch) -> ClassTemplate:
		self._gate.authorize(principal, Operation.MANAGE_TEMPLATES)
		current = await self.get(template_id)
		changes = patch.model_dump(exclude_unset=True)
		if any(value is None for value in changes.values()):
			raise ValidationError("Fields cannot be cleared.")
		for key in ("name", "instructor"):
			if key in changes:
				changes[key] = changes[key].strip()
		merged = current.to_row()
		merged.update(changes)
		validate_template_fields(merged)
		updated = await self._repo.update(template_id, changes)
		if updated is None:
			raise NotFound("Class not found.")
		return updated

	async def delete(
		self,
		principal: Principal,
		template_id: str,
		*,
		deactivate_on_conflict: bool = False,
	) -> DeleteOutcome:
		"""Hard delete, or soft-disable when history exists and the caller confirmed it."""
		self._gate.authorize(principal, Operation.MANAGE_TEMPLATES)
		try:
			deleted = await self._repo.delete(template_id)
		except ReferentialConstraint:
			if not deactivate_on_conflict:
				raise
			await self.deactivate(principal, template_id)
			return DeleteOutcome.DEACTIVATED
		if not deleted:
			raise NotFound("Class not found.")
		log.info("class template deleted", extra={"template_id": template_id})
		return DeleteOutcome.DELETED

	async def deactivate(self, principal: Principal, template_id: str) -> ClassTemplate:
		self._gate.authorize(principal, Operation.MANAGE_TEMPLATES)
		updated = await self._repo.update(template_id, {"is_active": False})
		if updated is None:
			raise NotFound("Class not found.")
		log.info("class template deactivated", extra={"template_id": template_id})
		return updated

	@staticmethod
	def project_instance(template: ClassTemplate, on: date) -> ClassInstance:
		return calendar.project_instance(template, on)

	@staticmethod
	def next_occurrence(day_of_week: int, today: date, allow_same_day: bool = False) -> date:
		return calendar.next_occurrence(day_of_week, today, allow_same_day=allow_same_day)

	@staticmethod
	def week_days(today: date) -> List[date]:
		return calendar.week_days(today)

	async def schedule_for_date(self, principal: Principal, on: date) -> List[ScheduleEntry]:
		"""Active classes running on ``on`` with occupancy and the caller's own booking flag."""
		self._gate.authorize(principal, Operation.VIEW_SCHEDULE)
		templates = await retry_read(self._repo.list, active_only=True, day_of_week=calendar.weekday_of(on))
		counts = await self._accountant.occupancy_for_date(on)
		mine = await retry_read(self._reservations.active_template_ids, principal.user_id, on)
		entries: List[ScheduleEntry] = []
		for template in sorted(templates, key=lambda t: t.start_time):
			count = counts.get(template.id, 0)
			entries.append(
				ScheduleEntry(
					template=template,
					date=on,
					count=count,
					is_full=count >= template.max_capacity,
					reserved=template.id in mine,
				)
			)
		return entries
