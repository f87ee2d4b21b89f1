"""Contract with the external identity/session provider."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol


class AuthEvent(str, Enum):
	INITIAL_SESSION = "INITIAL_SESSION"
	SIGNED_IN = "SIGNED_IN"
	TOKEN_REFRESHED = "TOKEN_REFRESHED"
	SIGNED_OUT = "SIGNED_OUT"


@dataclass(slots=True, frozen=True)
class IdentitySession:
	user_id: str
	session_id: Optional[str] = None


AuthStateListener = Callable[[AuthEvent, Optional[IdentitySession]], None]


class IdentityProvider(Protocol):
	async def get_session(self) -> Optional[IdentitySession]:
		...

	def on_auth_state_change(self, listener: AuthStateListener) -> Callable[[], None]:
		"""Register ``listener``; the returned callable removes it."""
		...

	async def sign_out(self) -> None:
		...


class CredentialProvider(IdentityProvider, Protocol):
	"""Providers that also own sign-in and sign-up. Not implemented in this service."""

	async def sign_in(self, email: str, password: str) -> IdentitySession:
		...

	async def sign_up(self, email: str, password: str, *, full_name: str) -> IdentitySession:
		...
