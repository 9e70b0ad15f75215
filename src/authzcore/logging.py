"""Logging utilities for the authorization layer.

This module provides:
- Logging configuration from AuthzConfig
- Length-bounded previews of claims and Directory payloads
- Redaction of bearer tokens, client secrets and api keys
- A formatter and adapter that carry the organization and subject of a decision
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .config import AuthzConfig


# Credentials that show up around the Directory and the guard
SECRET_PATTERNS = [
    r'(?i)(?:client[_-]?secret|secret|password|access[_-]?token|api[_-]?key|apikey)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
    r'(?i)bearer\s+[A-Za-z0-9\-_.+/=]+',
    r'eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*',  # compact JWS
]

_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "org", "subject",
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Single-line, length-bounded string form of ``value`` for log output.

    Dicts and lists are rendered as JSON; whitespace is collapsed and the
    result is truncated with an ellipsis when longer than ``limit``.
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"
    return s


def redact_secrets(text: str, replacement: str = "[REDACTED]") -> str:
    """Replace credentials found in ``text`` with ``replacement``."""
    if not isinstance(text, str):
        return text

    result = text
    for pattern in SECRET_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.DOTALL)
    return result


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    """Preview plus optional redaction; use for any extra field of a record."""
    preview = safe_preview(value, limit=limit)
    if redact:
        preview = redact_secrets(preview)
    return preview


class AuthzFormatter(logging.Formatter):
    """Formatter emitting JSON or plain text with organization and subject.

    Extra fields attached to a record are previewed and, unless disabled,
    redacted before output.
    """

    def __init__(
        self,
        json_format: bool = False,
        redact_secrets: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.json_format = json_format
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        org = getattr(record, "org", None)
        subject = getattr(record, "subject", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if org:
            log_data["org"] = org
        if subject:
            log_data["subject"] = subject

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = safe_log_value(value, redact=self.redact_secrets)

        if self.redact_secrets:
            log_data["message"] = redact_secrets(log_data["message"])

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            log_data["level"],
            log_data["logger"],
        ]
        if org:
            parts.append(f"org={org}")
        if subject:
            parts.append(f"subject={subject}")
        parts.append(f": {log_data['message']}")
        if "exception" in log_data:
            parts.append("\n" + log_data["exception"])
        return " ".join(parts)


class AuthzLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps records with ``org`` and ``subject``.

    Usage:
        logger = get_authz_logger(__name__, org="ACME")
        logger.info("Role updated", subject=user_id)
    """

    def __init__(
        self,
        logger: logging.Logger,
        org: Optional[str] = None,
        subject: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.org = org
        self.subject = subject

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        org = kwargs.pop("org", self.org)
        subject = kwargs.pop("subject", self.subject)

        extra = kwargs.get("extra", {})
        if org:
            extra["org"] = org
        if subject:
            extra["subject"] = subject
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[AuthzConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
    service_name: Optional[str] = None,
) -> None:
    """Configure the root logger for a service embedding authzcore.

    Args:
        config: AuthzConfig instance (if None, loads from environment)
        json_format: Overrides ``config.log_json`` when given
        redact_secrets: Whether to redact credentials from records
        service_name: Optional logger name to set to the same level
    """
    if config is None:
        from .config import load_authz_config_from_env

        config = load_authz_config_from_env()

    log_level = logging.getLevelName(str(config.log_level).split(".")[-1].upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        AuthzFormatter(
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
        )
    )
    root_logger.addHandler(console_handler)

    if service_name:
        logging.getLogger(service_name).setLevel(log_level)


def get_authz_logger(
    name: str,
    org: Optional[str] = None,
    subject: Optional[str] = None,
) -> AuthzLoggerAdapter:
    """Return an AuthzLoggerAdapter around ``logging.getLogger(name)``."""
    return AuthzLoggerAdapter(logging.getLogger(name), org=org, subject=subject)


__all__ = [
    "safe_preview",
    "redact_secrets",
    "safe_log_value",
    "AuthzFormatter",
    "AuthzLoggerAdapter",
    "setup_logging",
    "get_authz_logger",
]
