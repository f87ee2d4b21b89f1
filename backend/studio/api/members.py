"""Staff routes for member management."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from studio.api.deps import get_principal
from studio.container import get_container
from studio.domain.access import schemas
from studio.domain.access.models import Principal

router = APIRouter(prefix="/members", tags=["members"])


@router.get("", response_model=schemas.MemberList)
async def list_members(
	search: Optional[str] = Query(default=None, max_length=80),
	principal: Principal = Depends(get_principal),
) -> schemas.MemberList:
	profiles = await get_container().directory.list_members(principal, search)
	return schemas.MemberList(items=[schemas.MemberOut.from_model(p) for p in profiles])


@router.post("", response_model=schemas.MemberOut, status_code=status.HTTP_201_CREATED)
async def create_member(
	payload: schemas.MemberCreateRequest,
	principal: Principal = Depends(get_principal),
) -> schemas.MemberOut:
	profile = await get_container().directory.create_member(principal, full_name=payload.full_name, phone=payload.phone)
	return schemas.MemberOut.from_model(profile)


@router.post("/{member_id}/role/toggle", response_model=schemas.MemberOut)
async def toggle_role(member_id: str, principal: Principal = Depends(get_principal)) -> schemas.MemberOut:
	profile = await get_container().directory.toggle_role(principal, member_id)
	return schemas.MemberOut.from_model(profile)


@router.post("/{member_id}/memberships", response_model=schemas.MembershipOut, status_code=status.HTTP_201_CREATED)
async def grant_membership(
	member_id: str,
	payload: schemas.MembershipGrantRequest,
	principal: Principal = Depends(get_principal),
) -> schemas.MembershipOut:
	grant = await get_container().directory.grant_membership(
		principal,
		member_id,
		type=payload.type,
		start=payload.start_date,
		end=payload.end_date,
		months=payload.months,
	)
	return schemas.MembershipOut.from_model(grant)


@router.get("/{member_id}/memberships", response_model=schemas.MembershipList)
async def list_memberships(member_id: str, principal: Principal = Depends(get_principal)) -> schemas.MembershipList:
	grants = await get_container().directory.memberships_for(principal, member_id)
	return schemas.MembershipList(items=[schemas.MembershipOut.from_model(g) for g in grants])
