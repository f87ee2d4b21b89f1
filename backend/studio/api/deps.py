"""FastAPI dependencies resolving the calling principal."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends

from studio.container import get_container
from studio.domain.access.models import Operation, Principal
from studio.infra.auth import AuthenticatedUser, get_current_user


async def get_principal(auth_user: AuthenticatedUser = Depends(get_current_user)) -> Principal:
	"""Principal with the role read fresh from the profile store."""
	return await get_container().gate.principal_for(auth_user.id)


def require_operation(operation: Operation) -> Callable[..., Principal]:
	async def _dependency(principal: Principal = Depends(get_principal)) -> Principal:
		get_container().gate.authorize(principal, operation)
		return principal

	return _dependency
