import datetime as dt
import hashlib
from dataclasses import dataclass
from typing import Literal, Optional

CERT_EXPIRES_SOON = "CERT_EXPIRES_SOON"
CHAIN_MISSING = "CHAIN_MISSING"
SINGLE_CERT_BUNDLE = "SINGLE_CERT_BUNDLE"
FULLCHAIN_LEAF_ONLY = "FULLCHAIN_LEAF_ONLY"
PKCS7_NO_KEY = "PKCS7_NO_KEY"
FIELD_OVERWRITTEN = "FIELD_OVERWRITTEN"
EXTRA_PEM_BLOCKS = "EXTRA_PEM_BLOCKS"
RELOAD_FAILED = "RELOAD_FAILED"
ENDPOINT_UNREACHABLE = "ENDPOINT_UNREACHABLE"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(d: dt.datetime) -> dt.datetime:
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc)


def iso_utc(d: dt.datetime) -> str:
    return as_utc(d).isoformat().replace("+00:00", "Z")


def days_until(ts: dt.datetime, now: Optional[dt.datetime] = None) -> int:
    now = as_utc(now) if now is not None else utc_now()
    delta = as_utc(ts) - now
    return int(delta.total_seconds() // 86400)


Severity = Literal["info", "warn", "error"]

@dataclass
class Warn:
    code: str
    message: str
    severity: Severity = "warn"

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "severity": self.severity}


def ensure_newline(pem: bytes) -> bytes:
    return pem if pem.endswith(b"\n") else pem + b"\n"
