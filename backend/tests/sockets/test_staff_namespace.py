import asyncio
from unittest.mock import AsyncMock

import pytest
import socketio
from prometheus_client import REGISTRY

from studio.container import get_container
from studio.domain.access.gate import AccessGate
from studio.domain.access.models import Role
from studio.domain.access.profiles import ProfileStore
from studio.domain.notifications.sockets import StaffNamespace
from studio.infra import jwt as jwt_helper


def _environ(headers=None) -> dict:
	return {"asgi.scope": {"headers": headers or []}}


def _namespace() -> StaffNamespace:
	server = socketio.AsyncServer(async_mode="asgi")
	namespace = StaffNamespace()
	server.register_namespace(namespace)
	namespace.emit = AsyncMock()
	namespace.disconnect = AsyncMock()
	return namespace


async def _drain(rounds: int = 5) -> None:
	for _ in range(rounds):
		await asyncio.sleep(0)


def _events(namespace: StaffNamespace) -> list:
	return [call.args[0] for call in namespace.emit.await_args_list]


@pytest.mark.asyncio
async def test_connect_requires_identity():
	namespace = _namespace()
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _environ(), {})


@pytest.mark.asyncio
async def test_members_are_refused(seed):
	await seed.member("alice")
	namespace = _namespace()
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "alice"})
	assert get_container().bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_admin_connects_with_bearer_header(seed):
	await seed.admin("admin-1")
	token = jwt_helper.encode_access({"sub": "admin-1", "sid": "s-1"})
	namespace = _namespace()

	await namespace.trigger_event(
		"connect",
		"sid-1",
		_environ([(b"authorization", f"Bearer {token}".encode())]),
		None,
	)
	assert _events(namespace) == ["staff:ack"]
	assert namespace.subscription_for("sid-1") is not None
	await namespace.trigger_event("disconnect", "sid-1")


@pytest.mark.asyncio
async def test_new_booking_is_pushed_to_connected_staff(seed):
	await seed.admin("admin-1")
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})

	assert get_container().bus.publish("res-1") == 1
	await _drain()

	pushed = [call for call in namespace.emit.await_args_list if call.args[0] == "reservation:new"]
	assert len(pushed) == 1
	payload = pushed[0].args[1]
	assert payload["reservation_id"] == "res-1"
	assert payload["message"] == "New reservation received"
	assert payload["dismiss_after_ms"] == 5000
	assert pushed[0].kwargs["room"] == "sid-1"

	ack = await namespace.trigger_event("notification_dismiss", "sid-1", {"id": payload["id"]})
	assert ack == {"ok": True}
	assert namespace.subscription_for("sid-1").visible == []
	await namespace.trigger_event("disconnect", "sid-1")


@pytest.mark.asyncio
async def test_disconnect_releases_subscription(seed):
	await seed.admin("admin-1")
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})
	assert get_container().bus.subscriber_count == 1

	await namespace.trigger_event("disconnect", "sid-1")
	assert get_container().bus.subscriber_count == 0
	assert namespace.subscription_for("sid-1") is None
	# a second disconnect for the same sid is harmless
	await namespace.trigger_event("disconnect", "sid-1")

	assert get_container().bus.publish("res-2") == 0


@pytest.mark.asyncio
async def test_logout_event_ends_staff_connection(seed):
	await seed.admin("admin-1")
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})

	ack = await namespace.trigger_event("session_logout", "sid-1", {})
	assert ack == {"ok": True}
	await _drain()
	namespace.disconnect.assert_awaited_with("sid-1")
	await namespace.trigger_event("disconnect", "sid-1")


@pytest.mark.asyncio
async def test_refresh_after_demotion_disconnects(seed):
	await seed.admin("admin-1")
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})

	await ProfileStore().set_role("admin-1", Role.MEMBER)
	token = jwt_helper.encode_access({"sub": "admin-1", "sid": "s-2"})
	ack = await namespace.trigger_event("session_refresh", "sid-1", {"token": token})
	assert ack == {"ok": True}

	await namespace._connections["sid-1"].access.settle()
	await _drain()
	namespace.disconnect.assert_awaited_with("sid-1")
	await namespace.trigger_event("disconnect", "sid-1")


@pytest.mark.asyncio
async def test_refresh_with_bad_token_is_rejected(seed):
	await seed.admin("admin-1")
	namespace = _namespace()
	await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})

	assert await namespace.trigger_event("session_refresh", "sid-1", {"token": "garbage"}) == {
		"ok": False,
		"error": "invalid_token",
	}
	assert await namespace.trigger_event("session_refresh", "sid-unknown", {}) == {
		"ok": False,
		"error": "unauthenticated",
	}
	namespace.disconnect.assert_not_awaited()
	await namespace.trigger_event("disconnect", "sid-1")


class BrokenGate(AccessGate):
	async def resolve_role(self, user_id):
		raise RuntimeError("profile lookup crashed")


def _connected_clients() -> float:
	value = REGISTRY.get_sample_value("studio_socketio_clients", {"namespace": "/staff"})
	return value or 0.0


@pytest.mark.asyncio
async def test_failed_handshake_leaves_client_gauge_unchanged():
	server = socketio.AsyncServer(async_mode="asgi")
	namespace = StaffNamespace(gate=BrokenGate())
	server.register_namespace(namespace)
	namespace.emit = AsyncMock()
	before = _connected_clients()

	with pytest.raises(RuntimeError):
		await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})
	assert _connected_clients() == before
	assert namespace.subscription_for("sid-1") is None
	assert get_container().bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_client_gauge_tracks_accepted_connections_only(seed):
	await seed.admin("admin-1")
	await seed.member("alice")
	namespace = _namespace()
	before = _connected_clients()

	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-0", _environ(), {"user_id": "alice"})
	assert _connected_clients() == before

	await namespace.trigger_event("connect", "sid-1", _environ(), {"user_id": "admin-1"})
	assert _connected_clients() == before + 1

	await namespace.trigger_event("disconnect", "sid-1")
	await namespace.trigger_event("disconnect", "sid-1")
	assert _connected_clients() == before
