"""Live occupancy of class occurrences, recomputed from the ledger."""

from __future__ import annotations

from datetime import date
from typing import Dict

from studio.domain.errors import NotFound
from studio.domain.reservations.models import Occupancy
from studio.domain.reservations.repository import ReservationRepository
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.infra.postgres import retry_read


class CapacityAccountant:
	"""Counts active reservations per (class, date). Nothing is cached."""

	def __init__(
		self,
		templates: ClassTemplateRepository | None = None,
		reservations: ReservationRepository | None = None,
	) -> None:
		self._templates = templates or ClassTemplateRepository()
		self._reservations = reservations or ReservationRepository()

	async def occupancy(self, template_id: str, on: date) -> Occupancy:
		template = await retry_read(self._templates.get, template_id)
		if template is None:
			raise NotFound("Class not found.")
		count = await retry_read(self._reservations.count_active, template_id, on)
		return Occupancy(template_id=template_id, date=on, count=count, capacity=template.max_capacity)

	async def occupancy_for_date(self, on: date) -> Dict[str, int]:
		"""Active reservation counts keyed by class id; classes with none are absent."""
		return await retry_read(self._reservations.counts_for_date, on)
