"""Shared service instances for the API routers and the socket namespace."""

from __future__ import annotations

from studio.domain.access.directory import MemberDirectory
from studio.domain.access.gate import AccessGate
from studio.domain.access.memberships import MembershipStore
from studio.domain.access.profiles import ProfileStore
from studio.domain.notifications.bus import NotificationBus
from studio.domain.reservations.capacity import CapacityAccountant
from studio.domain.reservations.feed import ReservationFeed
from studio.domain.reservations.repository import ReservationRepository
from studio.domain.reservations.service import ReservationLedger
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.domain.schedule.service import ScheduleCatalog


class StudioContainer:
	def __init__(self) -> None:
		self.profiles = ProfileStore()
		self.memberships = MembershipStore()
		self.gate = AccessGate(self.profiles)
		self.templates = ClassTemplateRepository()
		self.reservations = ReservationRepository()
		self.accountant = CapacityAccountant(self.templates, self.reservations)
		self.catalog = ScheduleCatalog(
			repository=self.templates,
			reservations=self.reservations,
			accountant=self.accountant,
			gate=self.gate,
		)
		self.ledger = ReservationLedger(
			repository=self.reservations,
			templates=self.templates,
			memberships=self.memberships,
			accountant=self.accountant,
			gate=self.gate,
		)
		self.directory = MemberDirectory(profiles=self.profiles, memberships=self.memberships, gate=self.gate)
		self.bus = NotificationBus()
		self.feed = ReservationFeed(self.bus)


_container: StudioContainer | None = None


def get_container() -> StudioContainer:
	global _container
	if _container is None:
		_container = StudioContainer()
	return _container


async def reset_container() -> None:
	"""Drop the shared instances, stopping the insert feed first."""
	global _container
	if _container is not None:
		await _container.feed.stop()
		_container.bus.close()
	_container = None
