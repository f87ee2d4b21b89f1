"""Fan-out of new-booking notifications to connected staff sessions.

Each staff session owns one ``Subscription``: an unbounded queue of incoming
notifications plus a tray of the ones currently on screen. Tray entries expire
after the display window unless dismissed first.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import ulid

from studio.obs import metrics as obs_metrics
from studio.settings import settings

NEW_RESERVATION_MESSAGE = "New reservation received"

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StaffNotification:
	id: str
	reservation_id: str
	message: str
	timestamp: datetime

	def to_payload(self) -> dict:
		return {
			"id": self.id,
			"reservation_id": self.reservation_id,
			"message": self.message,
			"timestamp": self.timestamp.isoformat(),
		}


class Subscription:
	"""Live feed for one staff session; async iterator and async context manager."""

	def __init__(self, bus: "NotificationBus", session_id: str, display_seconds: float) -> None:
		self.session_id = session_id
		self.display_seconds = display_seconds
		self.closed = False
		self._bus = bus
		self._loop = asyncio.get_running_loop()
		self._queue: asyncio.Queue[Optional[StaffNotification]] = asyncio.Queue()
		self._visible: Dict[str, StaffNotification] = {}
		self._timers: Dict[str, asyncio.TimerHandle] = {}

	@property
	def visible(self) -> List[StaffNotification]:
		return list(self._visible.values())

	def dismiss(self, notification_id: str) -> bool:
		timer = self._timers.pop(notification_id, None)
		if timer is not None:
			timer.cancel()
		return self._visible.pop(notification_id, None) is not None

	def _deliver(self, notification: StaffNotification) -> None:
		self._queue.put_nowait(notification)
		self._visible[notification.id] = notification
		self._timers[notification.id] = self._loop.call_later(
			self.display_seconds, self.dismiss, notification.id
		)

	def _close(self) -> None:
		if self.closed:
			return
		self.closed = True
		for timer in self._timers.values():
			timer.cancel()
		self._timers.clear()
		self._visible.clear()
		self._queue.put_nowait(None)

	async def get(self) -> Optional[StaffNotification]:
		"""Next notification, or None once the subscription is closed."""
		if self.closed and self._queue.empty():
			return None
		return await self._queue.get()

	def __aiter__(self) -> "Subscription":
		return self

	async def __anext__(self) -> StaffNotification:
		item = await self.get()
		if item is None:
			raise StopAsyncIteration
		return item

	async def __aenter__(self) -> "Subscription":
		return self

	async def __aexit__(self, exc_type, exc, tb) -> None:
		self._bus.unsubscribe(self.session_id)


class NotificationBus:
	def __init__(self, *, display_seconds: float | None = None) -> None:
		self.display_seconds = (
			display_seconds if display_seconds is not None else settings.notification_display_seconds
		)
		self._subscriptions: Dict[str, Subscription] = {}

	@property
	def subscriber_count(self) -> int:
		return len(self._subscriptions)

	def subscribe(self, session_id: str) -> Subscription:
		"""Open (or return the already open) feed for ``session_id``."""
		existing = self._subscriptions.get(session_id)
		if existing is not None:
			return existing
		subscription = Subscription(self, session_id, self.display_seconds)
		self._subscriptions[session_id] = subscription
		obs_metrics.set_notification_subscribers(len(self._subscriptions))
		return subscription

	def unsubscribe(self, session_id: str) -> bool:
		"""Close the feed for ``session_id``. Safe to call any number of times."""
		subscription = self._subscriptions.pop(session_id, None)
		if subscription is None:
			return False
		subscription._close()
		obs_metrics.set_notification_subscribers(len(self._subscriptions))
		return True

	def publish(self, reservation_id: str, *, timestamp: datetime | None = None) -> int:
		"""Deliver one new-booking notification to every subscriber; returns the count reached."""
		notification = StaffNotification(
			id=str(ulid.new()),
			reservation_id=reservation_id,
			message=NEW_RESERVATION_MESSAGE,
			timestamp=timestamp or datetime.now(timezone.utc),
		)
		delivered = 0
		for subscription in list(self._subscriptions.values()):
			subscription._deliver(notification)
			delivered += 1
		if delivered:
			obs_metrics.inc_notifications_delivered(delivered)
		log.debug("reservation notification published", extra={"reservation_id": reservation_id, "delivered": delivered})
		return delivered

	def close(self) -> None:
		for session_id in list(self._subscriptions):
			self.unsubscribe(session_id)
