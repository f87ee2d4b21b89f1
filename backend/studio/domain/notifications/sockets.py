"""Socket.IO namespace delivering booking notifications to staff."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import socketio

from studio.container import get_container
from studio.domain.access.gate import AccessGate
from studio.domain.access.identity import AuthEvent, AuthStateListener, IdentitySession
from studio.domain.access.models import Role, SessionState, SessionStatus
from studio.domain.access.session import AccessSession
from studio.domain.notifications.bus import NotificationBus, Subscription
from studio.infra.auth import parse_socket_token
from studio.obs import metrics as obs_metrics
from studio.settings import settings

log = logging.getLogger(__name__)


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class ConnectionIdentity:
	"""Identity provider for one socket: the handshake token, then refresh/logout events."""

	def __init__(self, session: Optional[IdentitySession]) -> None:
		self._session = session
		self._listeners: List[AuthStateListener] = []

	async def get_session(self) -> Optional[IdentitySession]:
		return self._session

	def on_auth_state_change(self, listener: AuthStateListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	async def sign_out(self) -> None:
		self._session = None
		self._emit(AuthEvent.SIGNED_OUT, None)

	def refresh(self, session: IdentitySession) -> None:
		event = AuthEvent.TOKEN_REFRESHED if self._session and self._session.user_id == session.user_id else AuthEvent.SIGNED_IN
		self._session = session
		self._emit(event, session)

	def _emit(self, event: AuthEvent, session: Optional[IdentitySession]) -> None:
		for listener in list(self._listeners):
			listener(event, session)


@dataclass
class _StaffConnection:
	identity: ConnectionIdentity
	access: AccessSession
	subscription: Subscription
	pump: Optional[asyncio.Task] = None
	tasks: set = field(default_factory=set)


class StaffNamespace(socketio.AsyncNamespace):
	"""Staff-only namespace. Each connection holds one bus subscription."""

	def __init__(self, bus: NotificationBus | None = None, gate: AccessGate | None = None) -> None:
		super().__init__("/staff")
		self._bus_override = bus
		self._gate_override = gate
		self._connections: Dict[str, _StaffConnection] = {}

	@property
	def _bus(self) -> NotificationBus:
		return self._bus_override or get_container().bus

	@property
	def _gate(self) -> AccessGate:
		return self._gate_override or get_container().gate

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		try:
			session = self._authenticate(environ, auth)
		except ValueError:
			raise ConnectionRefusedError("unauthorized") from None
		identity = ConnectionIdentity(session)
		access = AccessSession(identity, self._gate)
		try:
			state = await access.start()
		except BaseException:
			await access.close()
			raise
		if state.role is not Role.ADMIN:
			await access.close()
			raise ConnectionRefusedError("forbidden")
		subscription = self._bus.subscribe(sid)
		connection = _StaffConnection(identity=identity, access=access, subscription=subscription)
		connection.pump = asyncio.create_task(self._pump(sid, subscription))
		self._connections[sid] = connection
		# counted only once registered so every increment has a matching release
		obs_metrics.socket_connected(self.namespace)
		access.subscribe(lambda new_state: self._on_session_state(sid, new_state))
		try:
			await self.emit("staff:ack", {"ok": True, "role": Role.ADMIN.value}, room=sid)
		except BaseException:
			await self._release(sid)
			raise

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		await self._release(sid)

	async def _release(self, sid: str) -> None:
		connection = self._connections.pop(sid, None)
		if connection is None:
			return
		obs_metrics.socket_disconnected(self.namespace)
		self._bus.unsubscribe(sid)
		if connection.pump is not None:
			connection.pump.cancel()
		await connection.access.close()

	async def on_session_refresh(self, sid: str, payload: Optional[dict] = None) -> dict:
		obs_metrics.socket_event(self.namespace, "session_refresh")
		connection = self._connections.get(sid)
		if connection is None:
			return {"ok": False, "error": "unauthenticated"}
		try:
			user = parse_socket_token(str((payload or {}).get("token") or ""))
		except ValueError:
			return {"ok": False, "error": "invalid_token"}
		connection.identity.refresh(IdentitySession(user_id=user.id, session_id=user.session_id))
		return {"ok": True}

	async def on_session_logout(self, sid: str, payload: Optional[dict] = None) -> dict:
		obs_metrics.socket_event(self.namespace, "session_logout")
		connection = self._connections.get(sid)
		if connection is None:
			return {"ok": False, "error": "unauthenticated"}
		await connection.access.sign_out()
		return {"ok": True}

	async def on_notification_dismiss(self, sid: str, payload: Optional[dict] = None) -> dict:
		obs_metrics.socket_event(self.namespace, "notification_dismiss")
		connection = self._connections.get(sid)
		if connection is None:
			return {"ok": False, "error": "unauthenticated"}
		notification_id = str((payload or {}).get("id") or "")
		return {"ok": connection.subscription.dismiss(notification_id)}

	def subscription_for(self, sid: str) -> Optional[Subscription]:
		connection = self._connections.get(sid)
		return connection.subscription if connection else None

	def _on_session_state(self, sid: str, state: SessionState) -> None:
		# a refresh that demotes or signs out the user ends the staff feed
		if state.status is SessionStatus.LOADING:
			return
		if state.status is SessionStatus.READY and state.role is Role.ADMIN:
			return
		connection = self._connections.get(sid)
		if connection is None:
			return
		task = asyncio.create_task(self.disconnect(sid))
		connection.tasks.add(task)
		task.add_done_callback(connection.tasks.discard)

	async def _pump(self, sid: str, subscription: Subscription) -> None:
		dismiss_after_ms = int(subscription.display_seconds * 1000)
		async for notification in subscription:
			payload = notification.to_payload()
			payload["dismiss_after_ms"] = dismiss_after_ms
			obs_metrics.socket_event(self.namespace, "reservation:new")
			try:
				await self.emit("reservation:new", payload, room=sid)
			except Exception:
				log.warning("staff notification emit failed", extra={"sid": sid}, exc_info=True)

	def _authenticate(self, environ: dict, auth: Optional[dict]) -> IdentitySession:
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
		token = auth_payload.get("token")
		if not token:
			auth_header = _header(scope, "authorization")
			if auth_header and auth_header.lower().startswith("bearer "):
				token = auth_header.split(" ", 1)[1]
		if token:
			user = parse_socket_token(str(token))
			return IdentitySession(user_id=user.id, session_id=user.session_id)
		if settings.is_dev():
			user_id = auth_payload.get("user_id") or auth_payload.get("userId")
			if user_id:
				return IdentitySession(user_id=str(user_id), session_id="dev-session")
		raise ValueError("missing_token")
