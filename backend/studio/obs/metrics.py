"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"studio_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"studio_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"studio_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"studio_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

BOOKING_ATTEMPTS = Counter(
	"studio_booking_attempts_total",
	"Seat booking attempts by outcome",
	["outcome"],
)

CANCELLATIONS = Counter(
	"studio_reservation_cancellations_total",
	"Reservation cancellations by outcome",
	["outcome"],
)

NOTIFICATION_SUBSCRIBERS = Gauge(
	"studio_notification_subscribers",
	"Staff sessions subscribed to the booking feed",
)

NOTIFICATIONS_DELIVERED = Counter(
	"studio_notifications_delivered_total",
	"Booking notifications delivered to staff sessions",
)

OUTBOX_FAILURES = Counter(
	"studio_reservation_outbox_failures_total",
	"Reservation events that could not be appended to the stream",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_booking(outcome: str) -> None:
	BOOKING_ATTEMPTS.labels(outcome=outcome).inc()


def inc_cancellation(outcome: str) -> None:
	CANCELLATIONS.labels(outcome=outcome).inc()


def set_notification_subscribers(count: int) -> None:
	NOTIFICATION_SUBSCRIBERS.set(count)


def inc_notifications_delivered(count: int = 1) -> None:
	NOTIFICATIONS_DELIVERED.inc(count)


def inc_outbox_failure() -> None:
	OUTBOX_FAILURES.inc()
