"""Booking and cancellation workflow."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import List

import ulid

from studio.domain.access.gate import AccessGate
from studio.domain.access.memberships import MembershipStore
from studio.domain.access.models import Operation, Principal
from studio.domain.errors import (
	AlreadyCancelled,
	CapacityExceeded,
	InvalidScheduleDate,
	NoActiveMembership,
	NotFound,
	StudioError,
)
from studio.domain.reservations import outbox
from studio.domain.reservations.capacity import CapacityAccountant
from studio.domain.reservations.models import (
	DashboardStats,
	ReservationRecord,
	ReservationStatus,
	ReservationView,
)
from studio.domain.reservations.repository import ReservationRepository
from studio.domain.schedule.calendar import weekday_of
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.infra.postgres import retry_read
from studio.obs import metrics as obs_metrics

log = logging.getLogger(__name__)


class ReservationLedger:
	def __init__(
		self,
		*,
		repository: ReservationRepository | None = None,
		templates: ClassTemplateRepository | None = None,
		memberships: MembershipStore | None = None,
		accountant: CapacityAccountant | None = None,
		gate: AccessGate | None = None,
	) -> None:
		self._repo = repository or ReservationRepository()
		self._templates = templates or ClassTemplateRepository()
		self._memberships = memberships or MembershipStore()
		self._accountant = accountant or CapacityAccountant(self._templates, self._repo)
		self._gate = gate or AccessGate()

	async def book_seat(self, principal: Principal, member_id: str, template_id: str, on: date) -> ReservationRecord:
		try:
			record = await self._book_seat(principal, member_id, template_id, on)
		except StudioError as exc:
			obs_metrics.inc_booking(exc.code)
			raise
		obs_metrics.inc_booking("booked")
		log.info(
			"seat booked",
			extra={"reservation_id": record.id, "class_template_id": template_id, "member_id": member_id},
		)
		await outbox.append_reservation_event("reservation_created", record, actor_id=principal.user_id)
		return record

	async def _book_seat(self, principal: Principal, member_id: str, template_id: str, on: date) -> ReservationRecord:
		self._gate.authorize_for_member(
			principal,
			member_id,
			own=Operation.BOOK_OWN,
			staff=Operation.BOOK_ON_BEHALF,
		)
		if not await retry_read(self._memberships.is_active, member_id, on):
			raise NoActiveMembership()
		template = await retry_read(self._templates.get, template_id)
		if template is None:
			raise NotFound("Class not found.")
		if not template.is_active:
			raise InvalidScheduleDate("This class is no longer offered.")
		if weekday_of(on) != template.day_of_week:
			raise InvalidScheduleDate()
		# Fast path only; the guarded insert re-checks under a lock
		occupancy = await self._accountant.occupancy(template_id, on)
		if occupancy.is_full:
			raise CapacityExceeded()
		record = ReservationRecord(
			id=str(ulid.new()),
			class_template_id=template_id,
			member_id=member_id,
			reservation_date=on,
			status=ReservationStatus.ACTIVE,
			created_at=datetime.now(timezone.utc),
		)
		return await self._repo.insert_guarded(record)

	async def cancel_seat(self, principal: Principal, reservation_id: str) -> ReservationRecord:
		try:
			record = await self._cancel_seat(principal, reservation_id)
		except StudioError as exc:
			obs_metrics.inc_cancellation(exc.code)
			raise
		obs_metrics.inc_cancellation("cancelled")
		await outbox.append_reservation_event("reservation_cancelled", record, actor_id=principal.user_id)
		return record

	async def _cancel_seat(self, principal: Principal, reservation_id: str) -> ReservationRecord:
		existing = await retry_read(self._repo.get, reservation_id)
		if existing is None:
			raise NotFound("Reservation not found.")
		self._gate.authorize_for_member(
			principal,
			existing.member_id,
			own=Operation.CANCEL_OWN,
			staff=Operation.CANCEL_ANY_RESERVATION,
		)
		if not existing.is_active:
			raise AlreadyCancelled()
		cancelled = await self._repo.cancel(reservation_id)
		if cancelled is None:
			# lost the race to another cancellation
			raise AlreadyCancelled()
		return cancelled

	async def get(self, principal: Principal, reservation_id: str) -> ReservationRecord:
		record = await retry_read(self._repo.get, reservation_id)
		if record is None:
			raise NotFound("Reservation not found.")
		self._gate.authorize_for_member(
			principal,
			record.member_id,
			own=Operation.VIEW_OWN_RESERVATIONS,
			staff=Operation.VIEW_ANY_RESERVATION,
		)
		return record

	async def list_for_member(self, principal: Principal, member_id: str) -> List[ReservationView]:
		self._gate.authorize_for_member(
			principal,
			member_id,
			own=Operation.VIEW_OWN_RESERVATIONS,
			staff=Operation.VIEW_ANY_RESERVATION,
		)
		return await retry_read(self._repo.list_views, member_id=member_id)

	async def list_for_date(self, principal: Principal, on: date) -> List[ReservationView]:
		self._gate.authorize(principal, Operation.VIEW_ANY_RESERVATION)
		return await retry_read(self._repo.list_views, on=on)

	async def list_all(self, principal: Principal) -> List[ReservationView]:
		self._gate.authorize(principal, Operation.VIEW_ANY_RESERVATION)
		return await retry_read(self._repo.list_views)

	async def stats(self, principal: Principal, today: date) -> DashboardStats:
		self._gate.authorize(principal, Operation.VIEW_STATS)
		return DashboardStats(
			active_classes=await retry_read(self._templates.count_active),
			active_memberships=await retry_read(self._memberships.count_active, today),
			upcoming_reservations=await retry_read(self._repo.count_active_from, today),
		)

