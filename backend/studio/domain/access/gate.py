"""Role resolution and authorization for studio operations.

Roles are looked up in the profile store on every call. Nothing here trusts a
role claim carried by a token or cached on the client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from studio.domain.access.models import (
	ALLOWED_OPERATIONS,
	Operation,
	Principal,
	Role,
	SessionState,
	SessionStatus,
)
from studio.domain.access.profiles import ProfileStore
from studio.domain.errors import Forbidden
from studio.infra.postgres import retry_read

log = logging.getLogger(__name__)

LOGIN_PATH = "/login"
STAFF_HOME = "/admin"
MEMBER_HOME = "/app/schedule"


@dataclass(slots=True, frozen=True)
class ViewDecision:
	action: str
	redirect_to: Optional[str] = None

	@property
	def allowed(self) -> bool:
		return self.action == "allow"


WAIT = ViewDecision("wait")
ALLOW = ViewDecision("allow")


def home_for(role: Optional[Role]) -> str:
	if role is Role.ADMIN:
		return STAFF_HOME
	if role is Role.MEMBER:
		return MEMBER_HOME
	return LOGIN_PATH


def guard_view(state: SessionState, allowed_roles: Iterable[Role]) -> ViewDecision:
	"""Decide what a protected view should do for the given session snapshot.

	While the role is still being resolved the answer is ``wait``: a view must
	neither render nor redirect on a half-loaded session.
	"""
	if state.role_pending:
		return WAIT
	if state.status is SessionStatus.SIGNED_OUT or state.user_id is None or state.role is None:
		return ViewDecision("redirect", LOGIN_PATH)
	if state.role not in set(allowed_roles):
		return ViewDecision("redirect", home_for(state.role))
	return ALLOW


class AccessGate:
	def __init__(self, profiles: ProfileStore | None = None) -> None:
		self._profiles = profiles or ProfileStore()

	async def resolve_role(self, user_id: str) -> Optional[Role]:
		return await retry_read(self._profiles.get_role, user_id)

	async def principal_for(self, user_id: str) -> Principal:
		return Principal(user_id=user_id, role=await self.resolve_role(user_id))

	@staticmethod
	def can(principal: Principal, operation: Operation) -> bool:
		if principal.role is None:
			return False
		return operation in ALLOWED_OPERATIONS.get(principal.role, frozenset())

	def authorize(self, principal: Principal, operation: Operation) -> None:
		if not self.can(principal, operation):
			log.info(
				"operation denied",
				extra={"operation": operation.value, "role": principal.role.value if principal.role else None},
			)
			raise Forbidden(redirect_to=home_for(principal.role))

	def authorize_for_member(
		self,
		principal: Principal,
		member_id: str,
		*,
		own: Operation,
		staff: Operation,
	) -> None:
		"""Staff pass with ``staff``; members pass with ``own`` and only for themselves."""
		if principal.is_staff:
			self.authorize(principal, staff)
			return
		self.authorize(principal, own)
		if member_id != principal.user_id:
			raise Forbidden(redirect_to=home_for(principal.role))

	home_for = staticmethod(home_for)
	guard_view = staticmethod(guard_view)
