"""JSON logging with request-scoped context fields."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from inkwell.settings import settings

_CONTEXT: ContextVar[Optional[Mapping[str, str]]] = ContextVar("inkwell_log_context", default=None)

_ROOT_LOGGER = "inkwell"
_REDACTED_KEYS = ("token", "secret", "authorization", "password", "email")
_MAX_TEXT = 256
_MAX_ITEMS = 10

# Attributes every LogRecord carries; anything else arrived through `extra=`
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Add fields (request_id, route, ...) to every log line in this context."""

	merged = dict(_CONTEXT.get() or {})
	merged.update({key: value for key, value in fields.items() if value is not None})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_request_id(default: str = "unknown") -> str:
	return (_CONTEXT.get() or {}).get("request_id") or default


def _clip(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _MAX_TEXT else f"{value[:_MAX_TEXT]}…"
	if isinstance(value, Mapping):
		items = list(value.items())
		clipped: dict[str, Any] = {str(key): _scrub(str(key), nested) for key, nested in items[:_MAX_ITEMS]}
		if len(items) > _MAX_ITEMS:
			clipped["…"] = f"+{len(items) - _MAX_ITEMS} keys"
		return clipped
	if isinstance(value, (list, tuple, set, frozenset)):
		values = [_clip(item) for item in value]
		return values if len(values) <= _MAX_ITEMS else [*values[:_MAX_ITEMS], "…"]
	return value


def _scrub(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(word in lowered for word in _REDACTED_KEYS):
		return "[redacted]"
	return _clip(value)


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: base fields, bound context, then extras."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		entry: dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		entry.update(_CONTEXT.get() or {})
		if record.exc_info:
			entry["exc_info"] = self.formatException(record.exc_info)
		for key, value in vars(record).items():
			if key in _STANDARD_ATTRS or key.startswith("_"):
				continue
			entry[key] = _scrub(key, value)
		return json.dumps(entry, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keep a fraction of INFO records; every other level passes."""

	def __init__(self, rate: Optional[float] = None) -> None:
		super().__init__()
		configured = settings.obs_log_sampling_rate_info if rate is None else rate
		self.rate = max(0.0, min(1.0, configured))

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or self.rate >= 1.0:
			return True
		return random.random() < self.rate


def configure_logging(level: Optional[str] = None) -> logging.Logger:
	"""Route the root logger through one JSON stream handler."""

	root = logging.getLogger()
	for handler in list(root.handlers):
		if getattr(handler, "_inkwell_json", False):
			root.removeHandler(handler)
	handler = logging.StreamHandler()
	handler._inkwell_json = True  # type: ignore[attr-defined]
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(level or settings.obs_log_level)
	return logging.getLogger(_ROOT_LOGGER)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _ROOT_LOGGER)
