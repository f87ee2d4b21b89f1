"""Bridge from the store's reservation insert feed to the notification bus.

With Postgres the ``reservation_inserted`` trigger publishes on a NOTIFY
channel and a dedicated connection listens for it. If that connection is
terminated the feed re-acquires one and listens again, backing off between
failed attempts. Without a pool the memory store calls the listener
synchronously from its insert.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import asyncpg

from studio.domain.notifications.bus import NotificationBus
from studio.infra.memory import memory_store
from studio.infra.postgres import TRANSIENT_ERRORS, get_pool_or_none
from studio.infra.schema import RESERVATION_INSERT_CHANNEL

log = logging.getLogger(__name__)

_RECONNECT_ERRORS = (*TRANSIENT_ERRORS, asyncpg.PostgresError)


class ReservationFeed:
	def __init__(self, bus: NotificationBus, *, retry_delay: float = 0.5, max_retry_delay: float = 30.0) -> None:
		self._bus = bus
		self._retry_delay = retry_delay
		self._max_retry_delay = max_retry_delay
		self._pool: Optional[asyncpg.Pool] = None
		self._conn: Optional[asyncpg.Connection] = None
		self._memory_attached = False
		self._reconnect_task: Optional[asyncio.Task] = None

	@property
	def running(self) -> bool:
		return self._conn is not None or self._memory_attached

	@property
	def reconnecting(self) -> bool:
		return self._reconnect_task is not None and not self._reconnect_task.done()

	async def start(self) -> None:
		if self.running or self.reconnecting:
			return
		pool = await get_pool_or_none()
		if pool is None:
			memory_store.add_insert_listener(self._on_row)
			self._memory_attached = True
			return
		self._pool = pool
		await self._listen()

	async def stop(self) -> None:
		if self._memory_attached:
			memory_store.remove_insert_listener(self._on_row)
			self._memory_attached = False
		if self._reconnect_task is not None:
			self._reconnect_task.cancel()
			await asyncio.gather(self._reconnect_task, return_exceptions=True)
			self._reconnect_task = None
		conn, self._conn = self._conn, None
		if conn is not None and self._pool is not None:
			try:
				conn.remove_termination_listener(self._on_terminated)
				await conn.remove_listener(RESERVATION_INSERT_CHANNEL, self._on_notify)
			finally:
				await self._pool.release(conn)
		self._pool = None

	async def _listen(self) -> None:
		conn = await self._pool.acquire()
		try:
			await conn.add_listener(RESERVATION_INSERT_CHANNEL, self._on_notify)
		except BaseException:
			await self._pool.release(conn)
			raise
		conn.add_termination_listener(self._on_terminated)
		self._conn = conn
		log.info("listening for reservation inserts", extra={"channel": RESERVATION_INSERT_CHANNEL})

	def _on_terminated(self, connection: asyncpg.Connection) -> None:
		if connection is not self._conn:
			return
		log.warning("reservation insert listener connection lost", extra={"channel": RESERVATION_INSERT_CHANNEL})
		self._conn = None
		if self._pool is not None and not self.reconnecting:
			self._reconnect_task = asyncio.create_task(self._reconnect(connection))

	async def _reconnect(self, dead: asyncpg.Connection) -> None:
		try:
			await self._pool.release(dead)
		except _RECONNECT_ERRORS:
			log.debug("releasing terminated listener connection failed", exc_info=True)
		delay = self._retry_delay
		attempt = 0
		while self._pool is not None:
			attempt += 1
			try:
				await self._listen()
			except _RECONNECT_ERRORS:
				log.warning(
					"reservation listener reconnect failed",
					extra={"attempt": attempt, "retry_in": delay},
					exc_info=True,
				)
				await asyncio.sleep(delay)
				delay = min(delay * 2, self._max_retry_delay)
				continue
			log.info("reservation listener reconnected", extra={"attempt": attempt})
			return

	def _on_row(self, row: dict[str, Any]) -> None:
		self._bus.publish(str(row["id"]))

	def _on_notify(self, connection: asyncpg.Connection, pid: int, channel: str, payload: str) -> None:
		try:
			body = json.loads(payload)
			reservation_id = str(body["id"])
		except (ValueError, KeyError, TypeError):
			log.warning("malformed reservation notification", extra={"channel": channel})
			return
		self._bus.publish(reservation_id)
