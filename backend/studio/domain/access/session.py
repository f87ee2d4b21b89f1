"""Process-visible auth state with an explicit lifecycle.

``AccessSession`` starts from the provider's current session, follows the
provider's auth-state stream, and re-resolves the role on every transition.
Each transition takes a new generation number; a role lookup that finishes
after a newer transition began is dropped, so a slow stale answer can never
overwrite a fresh one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set

from studio.domain.access.gate import AccessGate
from studio.domain.access.identity import AuthEvent, IdentityProvider, IdentitySession
from studio.domain.access.models import Role, SessionState, SessionStatus
from studio.domain.errors import StudioError

log = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


class AccessSession:
	def __init__(self, identity: IdentityProvider, gate: AccessGate | None = None) -> None:
		self._identity = identity
		self._gate = gate or AccessGate()
		self._state = SessionState(SessionStatus.LOADING)
		self._generation = 0
		self._listeners: List[StateListener] = []
		self._unsubscribe_identity: Optional[Callable[[], None]] = None
		self._role_task: Optional[asyncio.Task] = None
		self._transitions: Set[asyncio.Task] = set()
		self._closed = False

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def generation(self) -> int:
		return self._generation

	def subscribe(self, listener: StateListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	async def start(self) -> SessionState:
		if self._unsubscribe_identity is None:
			self._unsubscribe_identity = self._identity.on_auth_state_change(self._on_auth_change)
		generation = self._generation
		session = await self._identity.get_session()
		if generation == self._generation and not self._closed:
			await self.refresh(session)
		else:
			# an auth event arrived while loading; it carries the newer session
			await self.settle()
		return self._state

	async def refresh(self, session: Optional[IdentitySession]) -> SessionState:
		if self._closed:
			return self._state
		self._generation += 1
		generation = self._generation
		if self._role_task is not None and not self._role_task.done():
			self._role_task.cancel()
		self._role_task = None
		if session is None:
			self._apply(SessionState(SessionStatus.SIGNED_OUT, generation=generation))
			return self._state
		self._apply(SessionState(SessionStatus.LOADING, user_id=session.user_id, generation=generation))
		task = asyncio.create_task(self._resolve_role(session.user_id))
		self._role_task = task
		try:
			await asyncio.wait({task})
		except asyncio.CancelledError:
			task.cancel()
			raise
		if task.cancelled() or generation != self._generation:
			log.debug("discarding stale role refresh", extra={"generation": generation, "current": self._generation})
			return self._state
		self._apply(
			SessionState(
				SessionStatus.READY,
				user_id=session.user_id,
				role=task.result(),
				generation=generation,
			)
		)
		return self._state

	async def sign_out(self) -> None:
		await self._identity.sign_out()
		await self.refresh(None)

	async def settle(self) -> None:
		"""Wait until every scheduled transition has been applied or discarded."""
		while self._transitions:
			await asyncio.gather(*list(self._transitions), return_exceptions=True)

	async def close(self) -> None:
		if self._closed:
			return
		self._closed = True
		if self._unsubscribe_identity is not None:
			self._unsubscribe_identity()
			self._unsubscribe_identity = None
		self._generation += 1
		pending = [t for t in (self._role_task, *self._transitions) if t is not None and not t.done()]
		for task in pending:
			task.cancel()
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)
		self._role_task = None
		self._transitions.clear()
		self._state = SessionState(SessionStatus.SIGNED_OUT, generation=self._generation)
		self._listeners.clear()

	def _on_auth_change(self, event: AuthEvent, session: Optional[IdentitySession]) -> None:
		if self._closed:
			return
		if event is AuthEvent.SIGNED_OUT:
			session = None
		task = asyncio.create_task(self.refresh(session))
		self._transitions.add(task)
		task.add_done_callback(self._transitions.discard)

	async def _resolve_role(self, user_id: str) -> Optional[Role]:
		try:
			return await self._gate.resolve_role(user_id)
		except StudioError:
			log.warning("role lookup failed", extra={"user_id": user_id}, exc_info=True)
			return None

	def _apply(self, state: SessionState) -> None:
		self._state = state
		for listener in list(self._listeners):
			try:
				listener(state)
			except Exception:
				log.exception("session listener failed")
