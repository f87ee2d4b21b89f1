"""Profile store adapter.

Profiles belong to the identity side of the product. This module only reads
roles and performs the few staff-driven writes the studio needs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

import asyncpg
import ulid

from studio.domain.access.models import MemberProfile, Role, parse_role
from studio.domain.errors import ValidationError
from studio.infra.memory import memory_store
from studio.infra.postgres import get_pool_or_none, store_errors


def _row_to_profile(row: Mapping[str, Any]) -> MemberProfile:
	return MemberProfile(
		id=str(row["id"]),
		full_name=row["full_name"],
		role=parse_role(row["role"]) or Role.MEMBER,
		phone=row["phone"],
		created_at=row["created_at"],
	)


class ProfileStore:
	async def get_profile(self, user_id: str) -> Optional[MemberProfile]:
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.get_profile(user_id)
			return _row_to_profile(row) if row else None
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow("SELECT * FROM profiles WHERE id=$1", user_id)
		return _row_to_profile(row) if row else None

	async def get_role(self, user_id: str) -> Optional[Role]:
		"""Current role straight from the store; None when no usable profile exists."""
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.get_profile(user_id)
			return parse_role(row["role"]) if row else None
		with store_errors():
			async with pool.acquire() as conn:
				value = await conn.fetchval("SELECT role FROM profiles WHERE id=$1", user_id)
		return parse_role(value)

	async def set_role(self, user_id: str, role: Role) -> Optional[MemberProfile]:
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.get_profile(user_id)
			if row is None:
				return None
			row["role"] = role.value
			return _row_to_profile(memory_store.upsert_profile(row))
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					"UPDATE profiles SET role=$2 WHERE id=$1 RETURNING *",
					user_id,
					role.value,
				)
		return _row_to_profile(row) if row else None

	async def create_profile(
		self,
		*,
		full_name: str,
		phone: Optional[str] = None,
		role: Role = Role.MEMBER,
		user_id: Optional[str] = None,
	) -> MemberProfile:
		full_name = (full_name or "").strip()
		if not full_name:
			raise ValidationError("full_name is required.")
		profile = MemberProfile(
			id=user_id or str(ulid.new()),
			full_name=full_name,
			role=role,
			phone=(phone or "").strip() or None,
			created_at=datetime.now(timezone.utc),
		)
		pool = await get_pool_or_none()
		if pool is None:
			if memory_store.get_profile(profile.id) is not None:
				raise ValidationError("A profile with this id already exists.")
			return _row_to_profile(memory_store.upsert_profile(profile.to_row()))
		try:
			with store_errors():
				async with pool.acquire() as conn:
					row = await conn.fetchrow(
						"""
						INSERT INTO profiles (id, full_name, role, phone, created_at)
						VALUES ($1,$2,$3,$4,$5)
						RETURNING *
						""",
						profile.id,
						profile.full_name,
						profile.role.value,
						profile.phone,
						profile.created_at,
					)
		except asyncpg.UniqueViolationError as exc:
			raise ValidationError("A profile with this id already exists.") from exc
		return _row_to_profile(row)

	async def list_profiles(self, search: Optional[str] = None) -> List[MemberProfile]:
		"""All profiles, newest first, optionally filtered by a name fragment."""
		term = (search or "").strip().lower()
		pool = await get_pool_or_none()
		if pool is None:
			profiles = [_row_to_profile(row) for row in memory_store.profiles.values()]
			if term:
				profiles = [p for p in profiles if term in p.full_name.lower()]
			return sorted(profiles, key=lambda p: p.created_at, reverse=True)
		with store_errors():
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"""
					SELECT *
					FROM profiles
					WHERE $1::text = '' OR LOWER(full_name) LIKE '%' || $1 || '%'
					ORDER BY created_at DESC
					""",
					term,
				)
		return [_row_to_profile(row) for row in rows]
