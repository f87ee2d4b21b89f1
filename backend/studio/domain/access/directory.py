"""Staff-side member management: listing, creation, roles and memberships."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from studio.domain.access.gate import AccessGate
from studio.domain.access.memberships import DEFAULT_MEMBERSHIP_TYPE, MembershipStore
from studio.domain.access.models import MemberProfile, MembershipGrant, Operation, Principal, Role
from studio.domain.access.profiles import ProfileStore
from studio.domain.errors import NotFound
from studio.infra.postgres import retry_read

log = logging.getLogger(__name__)


class MemberDirectory:
	def __init__(
		self,
		*,
		profiles: ProfileStore | None = None,
		memberships: MembershipStore | None = None,
		gate: AccessGate | None = None,
	) -> None:
		self._profiles = profiles or ProfileStore()
		self._memberships = memberships or MembershipStore()
		self._gate = gate or AccessGate(self._profiles)

	async def list_members(self, principal: Principal, search: Optional[str] = None) -> List[MemberProfile]:
		self._gate.authorize(principal, Operation.LIST_MEMBERS)
		return await retry_read(self._profiles.list_profiles, search)

	async def create_member(self, principal: Principal, *, full_name: str, phone: Optional[str] = None) -> MemberProfile:
		self._gate.authorize(principal, Operation.CREATE_MEMBER)
		profile = await self._profiles.create_profile(full_name=full_name, phone=phone)
		log.info("member created", extra={"member_id": profile.id})
		return profile

	async def toggle_role(self, principal: Principal, member_id: str) -> MemberProfile:
		"""Flip admin <-> member."""
		self._gate.authorize(principal, Operation.TOGGLE_ROLE)
		profile = await retry_read(self._profiles.get_profile, member_id)
		if profile is None:
			raise NotFound("Member not found.")
		new_role = Role.MEMBER if profile.role is Role.ADMIN else Role.ADMIN
		updated = await self._profiles.set_role(member_id, new_role)
		if updated is None:
			raise NotFound("Member not found.")
		log.info("member role changed", extra={"member_id": member_id, "role_after": new_role.value})
		return updated

	async def grant_membership(
		self,
		principal: Principal,
		member_id: str,
		*,
		start: date,
		type: str = DEFAULT_MEMBERSHIP_TYPE,
		end: Optional[date] = None,
		months: int = 1,
	) -> MembershipGrant:
		self._gate.authorize(principal, Operation.ASSIGN_MEMBERSHIP)
		if await retry_read(self._profiles.get_profile, member_id) is None:
			raise NotFound("Member not found.")
		return await self._memberships.grant(member_id, type=type, start=start, end=end, months=months)

	async def memberships_for(self, principal: Principal, member_id: str) -> List[MembershipGrant]:
		self._gate.authorize_for_member(
			principal,
			member_id,
			own=Operation.VIEW_OWN_PROFILE,
			staff=Operation.LIST_MEMBERS,
		)
		return await retry_read(self._memberships.list_for_user, member_id)
