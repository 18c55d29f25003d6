import json
import logging
import os
import re
from typing import Any, List

from .common import iso_utc, utc_now
from .settings import Settings

_PEM_PRIV = re.compile(
    r"-----BEGIN ((?:RSA |EC |DSA |ENCRYPTED )?PRIVATE KEY)-----.*?-----END \1-----",
    re.DOTALL,
)
# key=value pairs, openssl "-passin pass:xxx" and "--password xxx" / "-p xxx" argv forms
_SECRET_KV = re.compile(r"\b(password|passphrase|passin|passout|secret|token)\s*[=:]\s*([^\s,;]+)", re.IGNORECASE)
_OPENSSL_PASS = re.compile(r"\bpass:(\S*)")
_PASS_ARG = re.compile(r"(\s(?:--password|-p))(\s+|=)(\S+)")

_PLAIN_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def redact(text: str) -> str:
    text = _PEM_PRIV.sub("[REDACTED-PRIVATE-KEY]", text)
    text = _OPENSSL_PASS.sub("pass:[REDACTED]", text)
    text = _PASS_ARG.sub(lambda m: f"{m.group(1)}{m.group(2)}[REDACTED]", text)
    return _SECRET_KV.sub(lambda m: f"{m.group(1)}=[REDACTED]", text)


class _Redact(logging.Filter):
    """Renders the message with its args, then scrubs keys and passwords from it."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact(rendered)
        record.args = None
        return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": iso_utc(utc_now()),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = redact(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(settings: Settings, json_mode: bool | None = None) -> None:
    """
    Configure the root logger once per process.

    Records go to stderr, and also to ``settings.LOG_FILE`` when set so an
    install leaves a trail next to its backups. Every handler redacts.
    """
    root = logging.getLogger()
    if getattr(root, "_certnorm_configured", False):
        return

    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
    root.setLevel(level)

    if json_mode is None:
        json_mode = os.getenv("CERTNORM_LOG_JSON", "false").lower() in ("1", "true", "yes")

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(_Redact())
        handler.setFormatter(_JsonFormatter() if json_mode else logging.Formatter(_PLAIN_FORMAT))
        root.addHandler(handler)

    setattr(root, "_certnorm_configured", True)
