"""Idempotent DDL for the booking tables.

The constraints here are the authoritative guards for the ledger:

* ``reservations_active_member_uniq`` rejects a second active booking for the
  same (class, member, date);
* ``reservations_class_template_id_fkey`` (ON DELETE RESTRICT) blocks hard
  deletes of classes with reservation history;
* the ``reservation_inserted`` trigger feeds the staff notification bus.

Capacity is re-checked inside the insert transaction while holding a row lock
on the class template (see ``ReservationRepository.insert_guarded``).
"""

from __future__ import annotations

import asyncpg

RESERVATION_INSERT_CHANNEL = "reservation_inserted"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
	id TEXT PRIMARY KEY,
	full_name TEXT NOT NULL,
	role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'member', 'cliente')),
	phone TEXT,
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS memberships (
	id TEXT PRIMARY KEY,
	user_id TEXT NOT NULL REFERENCES profiles(id),
	type TEXT NOT NULL,
	start_date DATE NOT NULL,
	end_date DATE NOT NULL,
	status TEXT NOT NULL DEFAULT 'active',
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
	CHECK (start_date <= end_date)
);

CREATE INDEX IF NOT EXISTS memberships_user_idx ON memberships (user_id, status);

CREATE TABLE IF NOT EXISTS class_templates (
	id TEXT PRIMARY KEY,
	name TEXT NOT NULL,
	instructor TEXT NOT NULL,
	day_of_week SMALLINT NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
	start_time TIME NOT NULL,
	end_time TIME NOT NULL,
	max_capacity INTEGER NOT NULL CHECK (max_capacity > 0),
	is_active BOOLEAN NOT NULL DEFAULT TRUE,
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
	CHECK (start_time < end_time)
);

CREATE TABLE IF NOT EXISTS reservations (
	id TEXT PRIMARY KEY,
	class_template_id TEXT NOT NULL REFERENCES class_templates(id) ON DELETE RESTRICT,
	member_id TEXT NOT NULL REFERENCES profiles(id),
	reservation_date DATE NOT NULL,
	status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'cancelled')),
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS reservations_active_member_uniq
	ON reservations (class_template_id, member_id, reservation_date)
	WHERE status = 'active';

CREATE INDEX IF NOT EXISTS reservations_slot_idx
	ON reservations (class_template_id, reservation_date)
	WHERE status = 'active';

CREATE INDEX IF NOT EXISTS reservations_member_idx
	ON reservations (member_id, reservation_date DESC);

CREATE OR REPLACE FUNCTION notify_reservation_inserted() RETURNS trigger AS $$
BEGIN
	PERFORM pg_notify(
		'reservation_inserted',
		json_build_object(
			'id', NEW.id,
			'class_template_id', NEW.class_template_id,
			'member_id', NEW.member_id,
			'reservation_date', NEW.reservation_date,
			'status', NEW.status,
			'created_at', NEW.created_at
		)::text
	);
	RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS reservations_notify_insert ON reservations;
CREATE TRIGGER reservations_notify_insert
	AFTER INSERT ON reservations
	FOR EACH ROW EXECUTE FUNCTION notify_reservation_inserted();
"""


async def ensure_schema(pool: asyncpg.Pool) -> None:
	async with pool.acquire() as conn:
		await conn.execute(SCHEMA_SQL)
