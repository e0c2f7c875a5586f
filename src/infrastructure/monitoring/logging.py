"""
Structured Logging for the authentication core

JSON structured logs with correlation IDs and masking of credentials, one-time
codes and tokens. Services log through plain module loggers
(``logging.getLogger(__name__)``); this module only configures the handlers.
"""

import json
import logging
import re
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# Context variables for correlation tracking
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)

# Attributes every LogRecord carries; anything else on a record came from `extra=`
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


@dataclass
class SensitiveDataConfig:
    """Which keys are credentials and how they are hidden."""

    # Key patterns; `<key>=value`, `<key>: value` and `"<key>": "value"` are masked
    credential_patterns: list[str] = field(
        default_factory=lambda: [
            r"password",
            r"passwd",
            r"\botp",
            r"verification[_-]?code",
            r"reset[_-]?token",
            r"session[_-]?token",
            r"access[_-]?token",
            r"secret",
            r"authorization",
        ]
    )

    mask_replacement: str = "***MASKED***"

    # Extra fields dropped from structured output entirely
    excluded_fields: set[str] = field(
        default_factory=lambda: {"password", "code", "otp", "token", "secret", "private_key"}
    )


class SensitiveDataMasker:
    """Hides credential values in messages and structured extras."""

    def __init__(self, config: SensitiveDataConfig) -> None:
        self.config = config
        keys = "|".join(f"(?:{pattern})" for pattern in config.credential_patterns)
        self._key_pattern = re.compile(keys, re.IGNORECASE)
        self._pair_pattern = re.compile(
            rf'(?P<quote>")?(?P<key>(?:{keys})\w*)(?(quote)")(?P<sep>\s*[:=]\s*)'
            r'(?P<value>"[^"]*"|\S+)',
            re.IGNORECASE,
        )

    def mask_message(self, message: str) -> str:
        """Replace the value of every credential key/value pair in a message."""
        return self._pair_pattern.sub(self._mask_pair, message)

    def mask_extra_fields(self, extra: dict[str, Any]) -> dict[str, Any]:
        """Drop excluded fields, mask credential fields and recurse into dicts."""
        masked: dict[str, Any] = {}
        for key, value in extra.items():
            if key.lower() in self.config.excluded_fields:
                continue
            if self._key_pattern.search(key):
                masked[key] = self.config.mask_replacement
            elif isinstance(value, str):
                masked[key] = self.mask_message(value)
            elif isinstance(value, dict):
                masked[key] = self.mask_extra_fields(value)
            else:
                masked[key] = value
        return masked

    def _mask_pair(self, match: re.Match[str]) -> str:
        quote = match.group("quote") or ""
        value = self.config.mask_replacement
        if match.group("value").startswith('"'):
            value = f'"{value}"'
        return f"{quote}{match.group('key')}{quote}{match.group('sep')}{value}"


class AuthJSONFormatter(logging.Formatter):
    """One JSON object per record, with request context and masked credentials."""

    def __init__(
        self,
        sensitive_data_config: SensitiveDataConfig | None = None,
        include_extra: bool = True,
        sort_keys: bool = True,
    ):
        super().__init__()
        self.include_extra = include_extra
        self.sort_keys = sort_keys
        self.masker = SensitiveDataMasker(sensitive_data_config or SensitiveDataConfig())

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masker.mask_message(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(self._context_fields())

        if record.exc_info:
            entry["exception"] = self._exception_fields(record)

        if self.include_extra:
            extra = {
                key: value
                for key, value in vars(record).items()
                if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
            }
            if extra:
                entry["extra"] = self.masker.mask_extra_fields(extra)

        return json.dumps(entry, sort_keys=self.sort_keys, default=str)

    @staticmethod
    def _context_fields() -> dict[str, str]:
        fields = {"correlation_id": correlation_id_var.get(), "user_id": user_id_var.get()}
        return {key: value for key, value in fields.items() if value}

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc_type, exc_value, _ = record.exc_info  # type: ignore[misc]
        return {
            "type": exc_type.__name__ if exc_type else None,
            "message": self.masker.mask_message(str(exc_value)) if exc_value else None,
            "traceback": self.formatException(record.exc_info),  # type: ignore[arg-type]
        }


class MaskingTextFormatter(logging.Formatter):
    """Plain text formatter that still masks credentials."""

    def __init__(self, fmt: str, sensitive_data_config: SensitiveDataConfig | None = None):
        super().__init__(fmt)
        self.masker = SensitiveDataMasker(sensitive_data_config or SensitiveDataConfig())

    def format(self, record: logging.LogRecord) -> str:
        return self.masker.mask_message(super().format(record))


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


@contextmanager
def _bound(var: ContextVar[str | None], value: str) -> Generator[str, None, None]:
    token = var.set(value)
    try:
        yield value
    finally:
        var.reset(token)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Tag every record logged inside the block with a correlation ID (generated if omitted)."""
    with _bound(correlation_id_var, correlation_id or generate_correlation_id()) as bound_id:
        yield bound_id


@contextmanager
def user_context(user_id: str) -> Generator[None, None, None]:
    """Tag every record logged inside the block with a user ID."""
    with _bound(user_id_var, user_id):
        yield


def setup_structured_logging(
    level: str = "INFO",
    format_type: str = "json",
    sensitive_data_config: SensitiveDataConfig | None = None,
    log_file: str | None = None,
) -> None:
    """
    Route the root logger to stdout (and optionally a file) with masking formatters.

    Args:
        level: Logging level name
        format_type: 'json' for AuthJSONFormatter, anything else for masked plain text
        sensitive_data_config: Masking configuration
        log_file: Optional log file path
    """
    formatter: logging.Formatter
    if format_type == "json":
        formatter = AuthJSONFormatter(sensitive_data_config)
    else:
        formatter = MaskingTextFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", sensitive_data_config
        )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    logging.getLogger(__name__).info(f"Structured logging configured ({format_type}, {level})")
