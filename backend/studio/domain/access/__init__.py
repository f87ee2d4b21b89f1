"""Roles, authorization and session state."""

from studio.domain.access.models import Operation, Principal, Role, SessionState, SessionStatus

__all__ = ["Operation", "Principal", "Role", "SessionState", "SessionStatus"]
