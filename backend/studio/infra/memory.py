"""In-process stand-in for the Postgres tables.

Used whenever no pool is available (tests, local dev without a database).
Rows are plain dicts keyed like the Postgres columns so repositories can share
one row mapper for both paths. The constraint semantics mirror the DDL in
``studio.infra.schema``: each mutating method runs its checks and the write in
one synchronous step, so no other coroutine can interleave between them.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from studio.domain.errors import CapacityExceeded, DuplicateReservation, NotFound, ReferentialConstraint

Row = Dict[str, Any]
InsertListener = Callable[[Row], None]

log = logging.getLogger(__name__)


class MemoryStore:
	def __init__(self) -> None:
		self.templates: Dict[str, Row] = {}
		self.reservations: Dict[str, Row] = {}
		self.profiles: Dict[str, Row] = {}
		self.memberships: Dict[str, Row] = {}
		self._insert_listeners: List[InsertListener] = []

	def reset(self) -> None:
		self.templates.clear()
		self.reservations.clear()
		self.profiles.clear()
		self.memberships.clear()

	# class templates

	def insert_template(self, row: Row) -> Row:
		self.templates[row["id"]] = dict(row)
		return dict(row)

	def get_template(self, template_id: str) -> Optional[Row]:
		row = self.templates.get(template_id)
		return dict(row) if row else None

	def update_template(self, template_id: str, fields: Row) -> Optional[Row]:
		row = self.templates.get(template_id)
		if row is None:
			return None
		row.update(fields)
		return dict(row)

	def delete_template(self, template_id: str) -> bool:
		if template_id not in self.templates:
			return False
		# ON DELETE RESTRICT: any reservation, active or cancelled, blocks the delete
		if any(r["class_template_id"] == template_id for r in self.reservations.values()):
			raise ReferentialConstraint(template_id=template_id)
		del self.templates[template_id]
		return True

	# reservations

	def add_insert_listener(self, listener: InsertListener) -> None:
		if listener not in self._insert_listeners:
			self._insert_listeners.append(listener)

	def remove_insert_listener(self, listener: InsertListener) -> None:
		if listener in self._insert_listeners:
			self._insert_listeners.remove(listener)

	def count_active(self, template_id: str, on: date) -> int:
		return sum(
			1
			for r in self.reservations.values()
			if r["class_template_id"] == template_id and r["reservation_date"] == on and r["status"] == "active"
		)

	def insert_reservation(self, row: Row) -> Row:
		template = self.templates.get(row["class_template_id"])
		if template is None:
			raise NotFound("Class not found.")
		if row["member_id"] not in self.profiles:
			raise NotFound("Member not found.")
		for existing in self.reservations.values():
			if (
				existing["status"] == "active"
				and existing["class_template_id"] == row["class_template_id"]
				and existing["member_id"] == row["member_id"]
				and existing["reservation_date"] == row["reservation_date"]
			):
				raise DuplicateReservation()
		if self.count_active(row["class_template_id"], row["reservation_date"]) >= int(template["max_capacity"]):
			raise CapacityExceeded()
		stored = dict(row)
		self.reservations[stored["id"]] = stored
		for listener in list(self._insert_listeners):
			try:
				listener(dict(stored))
			except Exception:
				log.exception("reservation insert listener failed", extra={"reservation_id": stored["id"]})
		return dict(stored)

	def get_reservation(self, reservation_id: str) -> Optional[Row]:
		row = self.reservations.get(reservation_id)
		return dict(row) if row else None

	def cancel_reservation(self, reservation_id: str) -> Optional[Row]:
		"""Flip active to cancelled; None when the row is missing or not active."""
		row = self.reservations.get(reservation_id)
		if row is None or row["status"] != "active":
			return None
		row["status"] = "cancelled"
		return dict(row)

	# profiles and memberships

	def upsert_profile(self, row: Row) -> Row:
		self.profiles[row["id"]] = dict(row)
		return dict(row)

	def get_profile(self, user_id: str) -> Optional[Row]:
		row = self.profiles.get(user_id)
		return dict(row) if row else None

	def insert_membership(self, row: Row) -> Row:
		if row["user_id"] not in self.profiles:
			raise NotFound("Member not found.")
		self.memberships[row["id"]] = dict(row)
		return dict(row)


memory_store = MemoryStore()


def reset_memory_state() -> None:
	memory_store.reset()
