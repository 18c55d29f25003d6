from __future__ import annotations

import contextlib
import fcntl
import logging
import os
import shutil
import socket
import ssl
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .common import ENDPOINT_UNREACHABLE, RELOAD_FAILED, Warn, utc_now
from .errors import InstallError
from .material import CA_CHAIN, FULL_CHAIN, SERVER_CERT, SERVER_KEY

log = logging.getLogger(__name__)

ARTIFACT_NAMES = (SERVER_CERT, SERVER_KEY, CA_CHAIN, FULL_CHAIN)
LOCK_NAME = ".certnorm.lock"

Reloader = Callable[[], None]


@dataclass
class InstallResult:
    target: Path
    release_dir: Path
    backup_dir: Optional[Path]
    files: List[str]
    reloaded: bool = False
    health: Dict[str, bool] = field(default_factory=dict)
    warnings: List[Warn] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "target": str(self.target),
            "release_dir": str(self.release_dir),
            "backup_dir": str(self.backup_dir) if self.backup_dir else None,
            "files": list(self.files),
            "reloaded": self.reloaded,
            "health": dict(self.health),
        }


class CommandReloader:
    """Runs an operator-supplied command, e.g. ``docker compose restart proxy``."""

    def __init__(self, argv: Sequence[str], timeout: float = 120.0) -> None:
        if not argv:
            raise ValueError("empty reload command")
        self.argv = list(argv)
        self.timeout = timeout

    def __call__(self) -> None:
        log.info("Reloading services: %s", " ".join(self.argv))
        subprocess.run(self.argv, check=True, capture_output=True, timeout=self.timeout)


def parse_endpoint(endpoint: str) -> Tuple[str, int]:
    host, sep, port = endpoint.rpartition(":")
    if not sep or not host:
        raise ValueError(f"endpoint must be host:port, got {endpoint!r}")
    return host.strip("[]"), int(port)


def probe_endpoint(endpoint: str, timeout: float = 5.0) -> bool:
    """TLS handshake without certificate verification; True when it completes."""
    host, port = parse_endpoint(endpoint)
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with ctx.wrap_socket(sock, server_hostname=host):
                return True
    except (OSError, ssl.SSLError) as e:
        log.debug("probe %s failed: %s", endpoint, e)
        return False


def write_file(path: Path, data: bytes, mode: int, replace: bool = False) -> None:
    """Create ``path`` at ``mode`` from the start; an existing entry is unlinked first, never followed."""
    if replace and os.path.lexists(path):
        os.unlink(path)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_NOFOLLOW, mode)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
        fh.flush()
        os.fsync(fh.fileno())
    os.chmod(path, mode)


def _fsync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class Installer:
    """
    Publishes a certificate set under ``<install_dir>/certs``.

    ``certs`` is a symlink to a release directory; a new set is written next to
    the current one and the link is swapped with ``os.replace``, so a reader
    sees either the old or the new set, never a mix. Installs on the same
    directory are serialized with an exclusive lock file.
    """

    def __init__(
        self,
        install_dir: str | os.PathLike[str],
        key_mode: int = 0o600,
        cert_mode: int = 0o644,
        key_owner: Optional[Tuple[int, int]] = None,
        reloader: Optional[Reloader] = None,
        health_endpoints: Sequence[str] = (),
        health_timeout: float = 5.0,
        prober: Callable[[str, float], bool] = probe_endpoint,
    ) -> None:
        self.install_dir = Path(install_dir)
        self.key_mode = key_mode
        self.cert_mode = cert_mode
        self.key_owner = key_owner
        self.reloader = reloader
        self.health_endpoints = list(health_endpoints)
        self.health_timeout = health_timeout
        self._prober = prober

    @property
    def target(self) -> Path:
        return self.install_dir / "certs"

    @property
    def releases_dir(self) -> Path:
        return self.install_dir / "releases"

    @property
    def backups_dir(self) -> Path:
        return self.install_dir / "backups"

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self.install_dir.mkdir(parents=True, exist_ok=True)
        with open(self.install_dir / LOCK_NAME, "a") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    def current_files(self) -> Dict[str, bytes]:
        out: Dict[str, bytes] = {}
        if not self.target.exists():
            return out
        for name in ARTIFACT_NAMES:
            p = self.target / name
            if p.is_file():
                out[name] = p.read_bytes()
        return out

    def install(self, artifacts: Mapping[str, bytes]) -> InstallResult:
        for required in (SERVER_CERT, SERVER_KEY, FULL_CHAIN):
            if required not in artifacts:
                raise InstallError(f"artifact set is missing {required}")
        unknown = set(artifacts) - set(ARTIFACT_NAMES)
        if unknown:
            raise InstallError(f"unexpected artifacts: {', '.join(sorted(unknown))}")

        with self._locked():
            result = self._publish(artifacts)
        self._after_install(result)
        return result

    def rollback(self, backup_dir: str | os.PathLike[str]) -> InstallResult:
        src = Path(backup_dir)
        if not src.is_dir():
            raise InstallError(f"backup directory not found: {src}")
        files = {name: (src / name).read_bytes() for name in ARTIFACT_NAMES if (src / name).is_file()}
        log.info("Rolling back certificates from %s", src)
        return self.install(files)

    def _stage(self, artifacts: Mapping[str, bytes], stamp: str) -> Path:
        self.releases_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f"certs_{stamp}.", dir=self.releases_dir))
        try:
            for name, data in artifacts.items():
                mode = self.key_mode if name == SERVER_KEY else self.cert_mode
                write_file(staging / name, data, mode)
            if self.key_owner is not None:
                uid, gid = self.key_owner
                os.chown(staging / SERVER_KEY, uid, gid)
            os.chmod(staging, 0o755)
            _fsync_dir(staging)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise InstallError(f"cannot stage new certificates: {e}") from e
        return staging

    def _backup(self, stamp: str) -> Optional[Path]:
        if not os.path.lexists(self.target):
            return None
        backup = self.backups_dir / f"certs_{stamp}"
        self.backups_dir.mkdir(parents=True, exist_ok=True)
        if self.target.is_symlink():
            shutil.copytree(self.target.resolve(), backup, symlinks=False)
        else:
            shutil.copytree(self.target, backup)
        log.info("Existing certificates backed up to: %s", backup)
        return backup

    def _swap(self, staging: Path, stamp: str) -> Optional[Path]:
        """Point ``certs`` at ``staging``; returns the release dir it replaced."""
        previous: Optional[Path] = None
        aside: Optional[Path] = None
        if self.target.is_symlink():
            previous = self.target.resolve()
        elif self.target.is_dir():
            # plain directory from an older layout; it was backed up already
            log.warning("Replacing plain directory %s by a release symlink", self.target)
            aside = self.install_dir / f".certs.{stamp}.old"
            os.rename(self.target, aside)

        tmp_link = self.install_dir / f".certs.{stamp}.tmp"
        try:
            os.symlink(os.path.relpath(staging, self.install_dir), tmp_link)
            try:
                os.replace(tmp_link, self.target)
            except OSError:
                os.unlink(tmp_link)
                raise
        except OSError:
            if aside is not None:
                os.rename(aside, self.target)
            raise
        _fsync_dir(self.install_dir)
        if aside is not None:
            shutil.rmtree(aside, ignore_errors=True)
        return previous

    def _publish(self, artifacts: Mapping[str, bytes]) -> InstallResult:
        stamp = utc_now().strftime("%Y%m%d_%H%M%S_%f")
        staging = self._stage(artifacts, stamp)
        try:
            backup = self._backup(stamp)
            previous = self._swap(staging, stamp)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise InstallError(f"cannot install new certificates: {e}") from e

        if previous is not None and previous != staging.resolve() and previous.parent == self.releases_dir.resolve():
            shutil.rmtree(previous, ignore_errors=True)
        log.info("Certificates installed to %s", self.target)
        return InstallResult(
            target=self.target,
            release_dir=staging,
            backup_dir=backup,
            files=sorted(artifacts),
        )

    def _after_install(self, result: InstallResult) -> None:
        if self.reloader is not None:
            try:
                self.reloader()
                result.reloaded = True
            except (OSError, subprocess.SubprocessError) as e:
                msg = f"services not reloaded, do it manually: {e}"
                log.warning(msg)
                result.warnings.append(Warn(RELOAD_FAILED, msg))

        for ep in self.health_endpoints:
            ok = self._prober(ep, self.health_timeout)
            result.health[ep] = ok
            if ok:
                log.info("%s answers TLS", ep)
            else:
                msg = f"{ep} is not responding to TLS yet"
                log.warning(msg)
                result.warnings.append(Warn(ENDPOINT_UNREACHABLE, msg))
