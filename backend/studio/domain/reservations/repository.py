"""Reservation persistence and the authoritative booking guard."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Set

import asyncpg

from studio.domain.errors import CapacityExceeded, DuplicateReservation, NotFound
from studio.domain.reservations.models import ReservationRecord, ReservationStatus, ReservationView
from studio.infra.memory import memory_store
from studio.infra.postgres import get_pool_or_none, store_errors

_VIEW_SELECT = """
	SELECT r.*, t.name AS class_name, t.instructor, t.start_time, t.end_time, p.full_name AS member_name
	FROM reservations r
	JOIN class_templates t ON t.id = r.class_template_id
	LEFT JOIN profiles p ON p.id = r.member_id
"""


def _row_to_record(row: Mapping[str, Any]) -> ReservationRecord:
	return ReservationRecord(
		id=str(row["id"]),
		class_template_id=str(row["class_template_id"]),
		member_id=str(row["member_id"]),
		reservation_date=row["reservation_date"],
		status=ReservationStatus(row["status"]),
		created_at=row["created_at"],
	)


def _row_to_view(row: Mapping[str, Any]) -> ReservationView:
	return ReservationView(
		id=str(row["id"]),
		class_template_id=str(row["class_template_id"]),
		member_id=str(row["member_id"]),
		reservation_date=row["reservation_date"],
		status=ReservationStatus(row["status"]),
		created_at=row["created_at"],
		class_name=row["class_name"],
		instructor=row["instructor"],
		start_time=row["start_time"],
		end_time=row["end_time"],
		member_name=row["member_name"],
	)


class ReservationRepository:
	async def insert_guarded(self, record: ReservationRecord) -> ReservationRecord:
		"""Insert an active reservation if uniqueness and capacity still hold.

		The class row is locked for the duration of the transaction, so
		concurrent bookings for the same class serialise on the capacity
		re-check. The partial unique index backs the duplicate check.
		"""
		pool = await get_pool_or_none()
		if pool is None:
			return _row_to_record(memory_store.insert_reservation(record.to_row()))
		try:
			with store_errors():
				async with pool.acquire() as conn:
					async with conn.transaction():
						capacity = await conn.fetchval(
							"SELECT max_capacity FROM class_templates WHERE id=$1 FOR UPDATE",
							record.class_template_id,
						)
						if capacity is None:
							raise NotFound("Class not found.")
						duplicate = await conn.fetchval(
							"""
							SELECT 1 FROM reservations
							WHERE class_template_id=$1 AND member_id=$2 AND reservation_date=$3 AND status='active'
							""",
							record.class_template_id,
							record.member_id,
							record.reservation_date,
						)
						if duplicate:
							raise DuplicateReservation()
						taken = await conn.fetchval(
							"""
							SELECT COUNT(*) FROM reservations
							WHERE class_template_id=$1 AND reservation_date=$2 AND status='active'
							""",
							record.class_template_id,
							record.reservation_date,
						)
						if int(taken) >= int(capacity):
							raise CapacityExceeded()
						row = await conn.fetchrow(
							"""
							INSERT INTO reservations (id, class_template_id, member_id, reservation_date, status, created_at)
							VALUES ($1,$2,$3,$4,'active',$5)
							RETURNING *
							""",
							record.id,
							record.class_template_id,
							record.member_id,
							record.reservation_date,
							record.created_at,
						)
		except asyncpg.UniqueViolationError as exc:
			raise DuplicateReservation() from exc
		except asyncpg.ForeignKeyViolationError as exc:
			raise NotFound("Member not found.") from exc
		return _row_to_record(row)

	async def get(self, reservation_id: str) -> Optional[ReservationRecord]:
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.get_reservation(reservation_id)
			return _row_to_record(row) if row else None
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow("SELECT * FROM reservations WHERE id=$1", reservation_id)
		return _row_to_record(row) if row else None

	async def cancel(self, reservation_id: str) -> Optional[ReservationRecord]:
		"""Conditionally flip active to cancelled. None when nothing was active."""
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.cancel_reservation(reservation_id)
			return _row_to_record(row) if row else None
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					"""
					UPDATE reservations
					SET status='cancelled'
					WHERE id=$1 AND status='active'
					RETURNING *
					""",
					reservation_id,
				)
		return _row_to_record(row) if row else None

	async def count_active(self, template_id: str, on: date) -> int:
		pool = await get_pool_or_none()
		if pool is None:
			return memory_store.count_active(template_id, on)
		with store_errors():
			async with pool.acquire() as conn:
				value = await conn.fetchval(
					"""
					SELECT COUNT(*) FROM reservations
					WHERE class_template_id=$1 AND reservation_date=$2 AND status='active'
					""",
					template_id,
					on,
				)
		return int(value or 0)

	async def counts_for_date(self, on: date) -> Dict[str, int]:
		pool = await get_pool_or_none()
		if pool is None:
			counts: Dict[str, int] = {}
			for row in memory_store.reservations.values():
				if row["reservation_date"] == on and row["status"] == "active":
					counts[row["class_template_id"]] = counts.get(row["class_template_id"], 0) + 1
			return counts
		with store_errors():
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"""
					SELECT class_template_id, COUNT(*) AS cnt
					FROM reservations
					WHERE reservation_date=$1 AND status='active'
					GROUP BY class_template_id
					""",
					on,
				)
		return {str(row["class_template_id"]): int(row["cnt"]) for row in rows}

	async def active_template_ids(self, member_id: str, on: date) -> Set[str]:
		pool = await get_pool_or_none()
		if pool is None:
			return {
				row["class_template_id"]
				for row in memory_store.reservations.values()
				if row["member_id"] == member_id and row["reservation_date"] == on and row["status"] == "active"
			}
		with store_errors():
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"""
					SELECT class_template_id FROM reservations
					WHERE member_id=$1 AND reservation_date=$2 AND status='active'
					""",
					member_id,
					on,
				)
		return {str(row["class_template_id"]) for row in rows}

	async def list_views(self, *, member_id: Optional[str] = None, on: Optional[date] = None) -> List[ReservationView]:
		"""Joined listing, newest reservation date first, then newest booking."""
		pool = await get_pool_or_none()
		if pool is None:
			views: List[ReservationView] = []
			for row in memory_store.reservations.values():
				if member_id is not None and row["member_id"] != member_id:
					continue
				if on is not None and row["reservation_date"] != on:
					continue
				template = memory_store.templates.get(row["class_template_id"])
				if template is None:
					continue
				profile = memory_store.profiles.get(row["member_id"])
				joined = dict(row)
				joined.update(
					class_name=template["name"],
					instructor=template["instructor"],
					start_time=template["start_time"],
					end_time=template["end_time"],
					member_name=profile["full_name"] if profile else None,
				)
				views.append(_row_to_view(joined))
			views.sort(key=lambda v: (v.reservation_date, v.created_at), reverse=True)
			return views
		with store_errors():
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					_VIEW_SELECT
					+ """
					WHERE ($1::text IS NULL OR r.member_id = $1)
						AND ($2::date IS NULL OR r.reservation_date = $2)
					ORDER BY r.reservation_date DESC, r.created_at DESC
					""",
					member_id,
					on,
				)
		return [_row_to_view(row) for row in rows]

	async def count_active_from(self, today: date) -> int:
		pool = await get_pool_or_none()
		if pool is None:
			return sum(
				1
				for row in memory_store.reservations.values()
				if row["status"] == "active" and row["reservation_date"] >= today
			)
		with store_errors():
			async with pool.acquire() as conn:
				value = await conn.fetchval(
					"SELECT COUNT(*) FROM reservations WHERE status='active' AND reservation_date >= $1",
					today,
				)
		return int(value or 0)
