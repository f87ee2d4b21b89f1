"""The caller's own identity, role and landing page."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from studio.api.deps import get_principal
from studio.container import get_container
from studio.domain.access import schemas
from studio.domain.access.gate import home_for
from studio.domain.access.models import Principal
from studio.infra.postgres import retry_read

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=schemas.MeOut)
async def who_am_i(principal: Principal = Depends(get_principal)) -> schemas.MeOut:
	profile = await retry_read(get_container().profiles.get_profile, principal.user_id)
	return schemas.MeOut(
		user_id=principal.user_id,
		role=principal.role.value if principal.role else None,
		home=home_for(principal.role),
		profile=schemas.MemberOut.from_model(profile) if profile else None,
	)


@router.get("/memberships", response_model=schemas.MembershipList)
async def my_memberships(principal: Principal = Depends(get_principal)) -> schemas.MembershipList:
	grants = await get_container().directory.memberships_for(principal, principal.user_id)
	return schemas.MembershipList(items=[schemas.MembershipOut.from_model(g) for g in grants])
