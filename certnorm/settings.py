import os
import shlex
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

@dataclass(frozen=True)
class Settings:
    LOG_LEVEL: str = field(default="INFO")
    LOG_FILE: Optional[str] = field(default=None)
    INSTALL_DIR: str = field(default="/opt/certnorm")
    EXPIRY_WARN_DAYS: int = field(default=30)
    KEY_OWNER: Optional[Tuple[int, int]] = field(default=None)
    RELOAD_CMD: List[str] = field(default_factory=list)
    HEALTH_ENDPOINTS: List[str] = field(default_factory=list)

    @staticmethod
    def from_env() -> "Settings":
        log_level = os.getenv("CERTNORM_LOG_LEVEL", "INFO").upper()
        try:
            days = int(os.getenv("CERTNORM_EXPIRY_WARN_DAYS", "30"))
            if days <= 0:
                raise ValueError
        except ValueError:
            days = 30
        return Settings(
            LOG_LEVEL=log_level,
            LOG_FILE=os.getenv("CERTNORM_LOG_FILE") or None,
            INSTALL_DIR=os.getenv("CERTNORM_INSTALL_DIR", "/opt/certnorm"),
            EXPIRY_WARN_DAYS=days,
            KEY_OWNER=_parse_owner(os.getenv("CERTNORM_KEY_OWNER", "")),
            RELOAD_CMD=shlex.split(os.getenv("CERTNORM_RELOAD_CMD", "")),
            HEALTH_ENDPOINTS=[e.strip() for e in os.getenv("CERTNORM_HEALTH_ENDPOINTS", "").split(",") if e.strip()],
        )


def _parse_owner(raw: str) -> Optional[Tuple[int, int]]:
    uid, sep, gid = raw.strip().partition(":")
    if not uid:
        return None
    try:
        return int(uid), int(gid) if sep and gid else int(uid)
    except ValueError:
        return None
