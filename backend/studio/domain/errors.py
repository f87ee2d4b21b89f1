"""Domain errors shared by the schedule, reservation and access modules.

Every failure is localised to the request that triggered it. The API layer
renders these as JSON with the ``code`` and human readable ``detail``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class StudioError(Exception):
	"""Base class for studio errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	code: str = "studio_error"
	detail: str = "Request could not be completed."

	def __init__(self, detail: Optional[str] = None, **extra: Any) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail
		self.extra: dict[str, Any] = extra

	def to_payload(self) -> dict[str, Any]:
		payload: dict[str, Any] = {"code": self.code, "detail": self.detail}
		payload.update(self.extra)
		return payload


class ValidationError(StudioError):
	"""Malformed template or booking input. Never retried."""

	status_code = _HTTP_422
	code = "validation_error"
	detail = "Invalid input."


class Forbidden(StudioError):
	status_code = status.HTTP_403_FORBIDDEN
	code = "forbidden"
	detail = "You are not allowed to perform this action."

	def __init__(self, detail: Optional[str] = None, *, redirect_to: str = "/login") -> None:
		super().__init__(detail, redirect_to=redirect_to)
		self.redirect_to = redirect_to


class NotFound(StudioError):
	status_code = status.HTTP_404_NOT_FOUND
	code = "not_found"
	detail = "Resource not found."


class NoActiveMembership(StudioError):
	status_code = status.HTTP_403_FORBIDDEN
	code = "no_active_membership"
	detail = "An active membership is required to book a class."


class InvalidScheduleDate(StudioError):
	status_code = _HTTP_422
	code = "invalid_schedule_date"
	detail = "The class does not run on the selected date."


class CapacityExceeded(StudioError):
	status_code = status.HTTP_409_CONFLICT
	code = "capacity_exceeded"
	detail = "This class is full."


class DuplicateReservation(StudioError):
	status_code = status.HTTP_409_CONFLICT
	code = "duplicate_reservation"
	detail = "You already have a reservation for this class."


class AlreadyCancelled(StudioError):
	status_code = status.HTTP_409_CONFLICT
	code = "already_cancelled"
	detail = "This reservation is already cancelled."


class ReferentialConstraint(StudioError):
	"""Hard delete blocked by reservation history.

	The caller may confirm the soft-disable fallback instead.
	"""

	status_code = status.HTTP_409_CONFLICT
	code = "referential_constraint"
	detail = "The class has reservation history and cannot be deleted. Deactivate it instead?"

	def __init__(self, detail: Optional[str] = None, *, template_id: Optional[str] = None) -> None:
		super().__init__(detail, fallback="deactivate", template_id=template_id)
		self.template_id = template_id


class TransientStoreError(StudioError):
	status_code = status.HTTP_503_SERVICE_UNAVAILABLE
	code = "store_unavailable"
	detail = "The booking store is temporarily unavailable. Please try again."
