"""Authentication helpers for FastAPI endpoints.

Identity comes from the external session provider as a bearer JWT. Only the
user id (``sub``) and session id (``sid``) are consumed here; the role is
never taken from the token and is resolved by the access gate instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from studio.infra import jwt as jwt_helper
from studio.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	session_id: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")

	sub = str(payload.get("sub") or "").strip()
	if not sub:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	session_id = payload.get("sid")
	return AuthenticatedUser(
		id=sub,
		session_id=str(session_id).strip() if session_id is not None else None,
	)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow a simple X-User-Id header. In all other environments
	headers are ignored and a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)

	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id, session_id="dev-session")

	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def parse_socket_token(token: str) -> AuthenticatedUser:
	"""Validate a token presented on a socket handshake or refresh event.

	Raises ValueError so socket handlers can refuse the connection.
	"""
	token = (token or "").strip()
	if not token:
		raise ValueError("empty_token")
	try:
		payload = jwt_helper.decode_access(token)
	except Exception as exc:
		raise ValueError("invalid_token") from exc
	session_id = payload.get("sid")
	return AuthenticatedUser(
		id=str(payload["sub"]),
		session_id=str(session_id) if session_id is not None else None,
	)
