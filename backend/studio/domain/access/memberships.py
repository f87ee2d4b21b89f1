"""Membership store adapter used as the booking eligibility gate."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional

import asyncpg
import ulid

from studio.domain.access.models import MembershipGrant
from studio.domain.errors import NotFound, ValidationError
from studio.infra.memory import memory_store
from studio.infra.postgres import get_pool_or_none, store_errors

DEFAULT_MEMBERSHIP_TYPE = "Monthly Standard"


def _row_to_grant(row: Mapping[str, Any]) -> MembershipGrant:
	return MembershipGrant(
		id=str(row["id"]),
		user_id=str(row["user_id"]),
		type=row["type"],
		start_date=row["start_date"],
		end_date=row["end_date"],
		status=row["status"],
		created_at=row["created_at"],
	)


def add_months(start: date, months: int) -> date:
	"""Same day ``months`` later, clamped to the end of shorter months."""
	month_index = start.month - 1 + months
	year = start.year + month_index // 12
	month = month_index % 12 + 1
	day = min(start.day, calendar.monthrange(year, month)[1])
	return date(year, month, day)


class MembershipStore:
	async def is_active(self, user_id: str, on: date) -> bool:
		pool = await get_pool_or_none()
		if pool is None:
			return any(
				_row_to_grant(row).covers(on)
				for row in memory_store.memberships.values()
				if row["user_id"] == user_id
			)
		with store_errors():
			async with pool.acquire() as conn:
				found = await conn.fetchval(
					"""
					SELECT EXISTS (
						SELECT 1 FROM memberships
						WHERE user_id=$1 AND status='active' AND start_date <= $2 AND end_date >= $2
					)
					""",
					user_id,
					on,
				)
		return bool(found)

	async def grant(
		self,
		user_id: str,
		*,
		type: str = DEFAULT_MEMBERSHIP_TYPE,
		start: date,
		end: Optional[date] = None,
		months: int = 1,
	) -> MembershipGrant:
		"""Record a new active grant. ``end`` wins over ``months`` when both are given."""
		if end is None:
			if months < 1:
				raise ValidationError("months must be at least 1.")
			end = add_months(start, months)
		if end < start:
			raise ValidationError("end_date must not be before start_date.")
		grant = MembershipGrant(
			id=str(ulid.new()),
			user_id=user_id,
			type=(type or "").strip() or DEFAULT_MEMBERSHIP_TYPE,
			start_date=start,
			end_date=end,
			status="active",
			created_at=datetime.now(timezone.utc),
		)
		pool = await get_pool_or_none()
		if pool is None:
			return _row_to_grant(memory_store.insert_membership(grant.to_row()))
		try:
			with store_errors():
				async with pool.acquire() as conn:
					row = await conn.fetchrow(
						"""
						INSERT INTO memberships (id, user_id, type, start_date, end_date, status, created_at)
						VALUES ($1,$2,$3,$4,$5,$6,$7)
						RETURNING *
						""",
						grant.id,
						grant.user_id,
						grant.type,
						grant.start_date,
						grant.end_date,
						grant.status,
						grant.created_at,
					)
		except asyncpg.ForeignKeyViolationError as exc:
			raise NotFound("Member not found.") from exc
		return _row_to_grant(row)

	async def list_for_user(self, user_id: str) -> List[MembershipGrant]:
		pool = await get_pool_or_none()
		if pool is None:
			grants = [_row_to_grant(row) for row in memory_store.memberships.values() if row["user_id"] == user_id]
			return sorted(grants, key=lambda g: g.start_date, reverse=True)
		with store_errors():
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"SELECT * FROM memberships WHERE user_id=$1 ORDER BY start_date DESC",
					user_id,
				)
		return [_row_to_grant(row) for row in rows]

	async def count_active(self, today: date) -> int:
		"""Active grants that have not yet expired."""
		pool = await get_pool_or_none()
		if pool is None:
			return sum(
				1
				for row in memory_store.memberships.values()
				if row["status"] == "active" and row["end_date"] >= today
			)
		with store_errors():
			async with pool.acquire() as conn:
				value = await conn.fetchval(
					"SELECT COUNT(*) FROM memberships WHERE status='active' AND end_date >= $1",
					today,
				)
		return int(value or 0)
