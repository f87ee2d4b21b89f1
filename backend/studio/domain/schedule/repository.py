"""Persistence for class templates (Postgres with in-memory fallback)."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import asyncpg

from studio.domain.errors import ReferentialConstraint
from studio.domain.schedule.models import ClassTemplate
from studio.infra.memory import memory_store
from studio.infra.postgres import get_pool_or_none, store_errors

_UPDATABLE = ("name", "instructor", "day_of_week", "start_time", "end_time", "max_capacity", "is_active")


def _row_to_template(row: Mapping[str, Any]) -> ClassTemplate:
	return ClassTemplate(
		id=str(row["id"]),
		name=row["name"],
		instructor=row["instructor"],
		day_of_week=int(row["day_of_week"]),
		start_time=row["start_time"],
		end_time=row["end_time"],
		max_capacity=int(row["max_capacity"]),
		is_active=bool(row["is_active"]),
		created_at=row["created_at"],
	)


def _sort_key(template: ClassTemplate):
	return (template.day_of_week, template.start_time)


class ClassTemplateRepository:
	async def list(self, *, active_only: bool = False, day_of_week: Optional[int] = None) -> List[ClassTemplate]:
		pool = await get_pool_or_none()
		if pool is None:
			templates = [_row_to_template(row) for row in memory_store.templates.values()]
			if active_only:
				templates = [t for t in templates if t.is_active]
			if day_of_week is not None:
				templates = [t for t in templates if t.day_of_week == day_of_week]
			return sorted(templates, key=_sort_key)
		with store_errors():
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"""
					SELECT *
					FROM class_templates
					WHERE ($1::boolean IS FALSE OR is_active)
						AND ($2::smallint IS NULL OR day_of_week = $2)
					ORDER BY day_of_week, start_time
					""",
					active_only,
					day_of_week,
				)
		return [_row_to_template(row) for row in rows]

	async def get(self, template_id: str) -> Optional[ClassTemplate]:
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.get_template(template_id)
			return _row_to_template(row) if row else None
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow("SELECT * FROM class_templates WHERE id=$1", template_id)
		return _row_to_template(row) if row else None

	async def insert(self, template: ClassTemplate) -> ClassTemplate:
		pool = await get_pool_or_none()
		if pool is None:
			return _row_to_template(memory_store.insert_template(template.to_row()))
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					"""
					INSERT INTO class_templates
						(id, name, instructor, day_of_week, start_time, end_time, max_capacity, is_active, created_at)
					VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9)
					RETURNING *
					""",
					template.id,
					template.name,
					template.instructor,
					template.day_of_week,
					template.start_time,
					template.end_time,
					template.max_capacity,
					template.is_active,
					template.created_at,
				)
		return _row_to_template(row)

	async def update(self, template_id: str, fields: Dict[str, Any]) -> Optional[ClassTemplate]:
		changes = {key: value for key, value in fields.items() if key in _UPDATABLE}
		if not changes:
			return await self.get(template_id)
		pool = await get_pool_or_none()
		if pool is None:
			row = memory_store.update_template(template_id, changes)
			return _row_to_template(row) if row else None
		columns = list(changes)
		assignments = ", ".join(f"{column}=${idx}" for idx, column in enumerate(columns, start=2))
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					f"UPDATE class_templates SET {assignments} WHERE id=$1 RETURNING *",
					template_id,
					*[changes[column] for column in columns],
				)
		return _row_to_template(row) if row else None

	async def delete(self, template_id: str) -> bool:
		"""Hard delete. Raises ReferentialConstraint when reservations reference the class."""
		pool = await get_pool_or_none()
		if pool is None:
			return memory_store.delete_template(template_id)
		try:
			with store_errors():
				async with pool.acquire() as conn:
					result = await conn.execute("DELETE FROM class_templates WHERE id=$1", template_id)
		except asyncpg.ForeignKeyViolationError as exc:
			raise ReferentialConstraint(template_id=template_id) from exc
		return result.endswith(" 1")

	async def count_active(self) -> int:
		pool = await get_pool_or_none()
		if pool is None:
			return sum(1 for row in memory_store.templates.values() if row["is_active"])
		with store_errors():
			async with pool.acquire() as conn:
				row = await conn.fetchrow("SELECT COUNT(*) AS cnt FROM class_templates WHERE is_active")
		return int(row["cnt"]) if row else 0
