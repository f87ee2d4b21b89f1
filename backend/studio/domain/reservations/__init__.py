"""Seat reservations: ledger, capacity accounting and the insert feed."""

from studio.domain.reservations.models import (
	DashboardStats,
	Occupancy,
	ReservationRecord,
	ReservationStatus,
	ReservationView,
)

__all__ = [
	"DashboardStats",
	"Occupancy",
	"ReservationRecord",
	"ReservationStatus",
	"ReservationView",
]
