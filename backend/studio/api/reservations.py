"""FastAPI routes for booking and cancelling seats."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from studio.api.deps import get_principal
from studio.container import get_container
from studio.domain.access.models import Principal
from studio.domain.reservations import schemas

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("", response_model=schemas.ReservationOut, status_code=status.HTTP_201_CREATED)
async def book_seat(
	payload: schemas.BookSeatRequest,
	principal: Principal = Depends(get_principal),
) -> schemas.ReservationOut:
	record = await get_container().ledger.book_seat(
		principal,
		payload.member_id or principal.user_id,
		payload.class_template_id,
		payload.reservation_date,
	)
	return schemas.ReservationOut.from_model(record)


@router.get("", response_model=schemas.ReservationList)
async def list_reservations(
	on: Optional[date] = Query(default=None, alias="date"),
	principal: Principal = Depends(get_principal),
) -> schemas.ReservationList:
	ledger = get_container().ledger
	views = await (ledger.list_for_date(principal, on) if on else ledger.list_all(principal))
	return schemas.ReservationList(items=[schemas.ReservationViewOut.from_model(v) for v in views])


@router.get("/mine", response_model=schemas.ReservationList)
async def my_reservations(principal: Principal = Depends(get_principal)) -> schemas.ReservationList:
	views = await get_container().ledger.list_for_member(principal, principal.user_id)
	return schemas.ReservationList(items=[schemas.ReservationViewOut.from_model(v) for v in views])


@router.get("/member/{member_id}", response_model=schemas.ReservationList)
async def member_reservations(member_id: str, principal: Principal = Depends(get_principal)) -> schemas.ReservationList:
	views = await get_container().ledger.list_for_member(principal, member_id)
	return schemas.ReservationList(items=[schemas.ReservationViewOut.from_model(v) for v in views])


@router.get("/{reservation_id}", response_model=schemas.ReservationOut)
async def get_reservation(reservation_id: str, principal: Principal = Depends(get_principal)) -> schemas.ReservationOut:
	record = await get_container().ledger.get(principal, reservation_id)
	return schemas.ReservationOut.from_model(record)


@router.post("/{reservation_id}/cancel", response_model=schemas.ReservationOut)
async def cancel_seat(reservation_id: str, principal: Principal = Depends(get_principal)) -> schemas.ReservationOut:
	record = await get_container().ledger.cancel_seat(principal, reservation_id)
	return schemas.ReservationOut.from_model(record)
