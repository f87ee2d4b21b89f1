"""Outbox helpers for reservation events."""

from __future__ import annotations

import logging
from typing import Any

from redis.exceptions import RedisError

from studio.domain.reservations.models import ReservationRecord
from studio.infra.redis import redis_client
from studio.obs import metrics as obs_metrics
from studio.settings import settings

RESERVATION_EVENT_STREAM = "x:reservations.events"

log = logging.getLogger(__name__)


async def append_reservation_event(event: str, record: ReservationRecord, *, actor_id: str | None = None) -> None:
	"""Append to the reservation stream.

	The database write has already committed by the time this runs, so a
	stream failure is logged and counted instead of surfacing to the caller.
	"""
	fields: dict[str, Any] = {
		"event": event,
		"reservation_id": record.id,
		"class_template_id": record.class_template_id,
		"member_id": record.member_id,
		"reservation_date": record.reservation_date.isoformat(),
		"status": record.status.value,
	}
	if actor_id:
		fields["actor_id"] = str(actor_id)
	try:
		await redis_client.xadd_capped(RESERVATION_EVENT_STREAM, fields, maxlen=settings.reservation_stream_maxlen)
	except (RedisError, OSError):
		obs_metrics.inc_outbox_failure()
		log.warning("reservation outbox append failed", extra={"event": event, "reservation_id": record.id}, exc_info=True)
