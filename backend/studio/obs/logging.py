"""JSON log lines carrying the current request context."""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from studio.settings import settings

_CONTEXT_FIELDS = ("request_id", "route", "user_id")
_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	name: ContextVar(f"studio_{name}", default=None) for name in _CONTEXT_FIELDS
}

_LOGGER_NAME = "studio"

# Member contact details and credentials never reach the log sink
_REDACTED_KEYS = ("token", "secret", "authorization", "password", "phone", "full_name")
_MAX_STRING_LENGTH = 256

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def bind_context(
	*,
	request_id: Optional[str] = None,
	route: Optional[str] = None,
	user_id: Optional[str] = None,
) -> Dict[str, Token]:
	"""Bind request fields for the current task; pass the result to ``reset_context``."""
	values = {"request_id": request_id, "route": route, "user_id": user_id}
	return {name: _CONTEXT[name].set(value) for name, value in values.items() if value is not None}


def reset_context(tokens: Dict[str, Token]) -> None:
	for name, token in tokens.items():
		_CONTEXT[name].reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT["request_id"].get()


def _clean(key: str, value: Any) -> Any:
	if any(part in key.lower() for part in _REDACTED_KEYS):
		return "[redacted]"
	if value is None or isinstance(value, (bool, int, float)):
		return value
	if isinstance(value, (list, tuple, set)):
		return [_clean(key, item) for item in value]
	text = value.value if hasattr(value, "value") and isinstance(value.value, str) else str(value)
	return text if len(text) <= _MAX_STRING_LENGTH else f"{text[:_MAX_STRING_LENGTH]}..."


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		for name, var in _CONTEXT.items():
			value = var.get()
			if value:
				payload[name] = value
		for key, value in record.__dict__.items():
			if key not in _RECORD_ATTRS:
				payload[key] = _clean(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
