from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from .bundle import assemble
from .common import CERT_EXPIRES_SOON, Warn, iso_utc, sha256_hex
from .errors import UnrecognizedFormatError
from .format_identify import FormatTag, detect
from .formats import der as fmt_der
from .formats import pem as fmt_pem
from .formats import pkcs7 as fmt_pkcs7
from .formats import pkcs12 as fmt_pkcs12
from .material import SERVER_KEY, CertificateMaterial, InputFile
from .passwords import PasswordPolicy, Prompt
from .validator import EXPIRY_WARN_DAYS, ValidationReport, validate

if TYPE_CHECKING:
    from .installer import InstallResult, Installer

log = logging.getLogger(__name__)

Handler = Callable[[InputFile, CertificateMaterial, PasswordPolicy], None]


def _handle_pkcs12(f: InputFile, material: CertificateMaterial, policy: PasswordPolicy) -> None:
    fmt_pkcs12.extract(f, material, policy)


def _handle_pkcs7(f: InputFile, material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    fmt_pkcs7.extract(f, material)


def _handle_pem_cert(f: InputFile, material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    fmt_pem.extract_certificate(f, material)


def _handle_pem_bundle(f: InputFile, material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    fmt_pem.split_bundle(f, material)


def _handle_pem_key(f: InputFile, material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    fmt_pem.extract_key(f, material)


def _handle_pem_key_encrypted(f: InputFile, material: CertificateMaterial, policy: PasswordPolicy) -> None:
    fmt_pem.decrypt_key(f, material, policy)


def _handle_der_cert(f: InputFile, material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    fmt_der.convert_certificate(f, material)


def _handle_der_key(f: InputFile, material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    fmt_der.convert_key(f, material)


def _handle_unknown(f: InputFile, _material: CertificateMaterial, _policy: PasswordPolicy) -> None:
    raise UnrecognizedFormatError("unrecognized file format", filename=f.name)


_HANDLERS: Dict[FormatTag, Handler] = {
    FormatTag.PKCS12: _handle_pkcs12,
    FormatTag.PKCS7_DER: _handle_pkcs7,
    FormatTag.PKCS7_PEM: _handle_pkcs7,
    FormatTag.PEM_CERTIFICATE: _handle_pem_cert,
    FormatTag.PEM_CERTIFICATE_BUNDLE: _handle_pem_bundle,
    FormatTag.PEM_PRIVATE_KEY: _handle_pem_key,
    FormatTag.PEM_PRIVATE_KEY_ENCRYPTED: _handle_pem_key_encrypted,
    FormatTag.DER_CERTIFICATE: _handle_der_cert,
    FormatTag.DER_PRIVATE_KEY: _handle_der_key,
    FormatTag.UNKNOWN: _handle_unknown,
}


def collect(
    inputs: Sequence[InputFile],
    policy: PasswordPolicy,
    material: Optional[CertificateMaterial] = None,
) -> Tuple[CertificateMaterial, List[Tuple[str, FormatTag]]]:
    """Detect and extract every input in caller order into one scratch material."""
    material = material if material is not None else CertificateMaterial()
    formats: List[Tuple[str, FormatTag]] = []
    for f in inputs:
        tag = detect(f.data, filename=f.name, password=policy.for_file(f).password)
        log.info("File '%s' -> format: %s", f.name, tag.value)
        formats.append((f.name, tag))
        _HANDLERS[tag](f, material, policy)
    return material, formats


@dataclass
class ImportResult:
    material: CertificateMaterial
    report: ValidationReport
    full_chain: bytes
    formats: List[Tuple[str, FormatTag]] = field(default_factory=list)
    installed: Optional["InstallResult"] = None

    @property
    def warnings(self) -> List[Warn]:
        out = list(self.material.warnings)
        if self.installed is not None:
            out.extend(self.installed.warnings)
        return out

    @property
    def dry_run(self) -> bool:
        return self.installed is None

    def as_dict(self, include_key: bool = False) -> Dict[str, Any]:
        artifacts: Dict[str, Any] = {}
        for name, data in self.material.artifacts().items():
            if name == SERVER_KEY and not include_key:
                artifacts[name] = {"sha256": sha256_hex(data)}
                continue
            artifacts[name] = data.decode("ascii")
        out: Dict[str, Any] = {
            "ok": True,
            "dry_run": self.dry_run,
            "formats": [{"filename": n, "format": t.value} for n, t in self.formats],
            "report": self.report.as_dict(),
            "artifacts": artifacts,
            "warnings": [w.as_dict() for w in self.warnings],
        }
        if self.installed is not None:
            out["install"] = self.installed.as_dict()
        return out


def run(
    inputs: Sequence[InputFile],
    password: Optional[str] = None,
    interactive: bool = False,
    prompt: Optional[Prompt] = None,
    dry_run: bool = True,
    installer: Optional["Installer"] = None,
    now: Optional[dt.datetime] = None,
    warn_days: int = EXPIRY_WARN_DAYS,
) -> ImportResult:
    """
    Normalize the given inputs into the canonical certificate artifacts.

    Any hard error aborts the run before the installer is reached; nothing
    installed is touched unless validation and assembly both succeeded.
    """
    if not inputs:
        raise ValueError("no input file provided")
    if dry_run:
        installer = None
    elif installer is None:
        raise ValueError("an installer is required unless dry_run is set")

    policy = PasswordPolicy(password=password, interactive=interactive, prompt=prompt)
    log.info("Certificate normalization: %s", ", ".join(f.name for f in inputs))

    material, formats = collect(inputs, policy)
    report = validate(material, now=now, warn_days=warn_days)
    if report.expiry_warning:
        material.warn(
            CERT_EXPIRES_SOON,
            f"certificate expires in less than {warn_days} days (not after {iso_utc(report.not_after)})",
        )
    full_chain = assemble(material)
    result = ImportResult(material=material, report=report, full_chain=full_chain, formats=formats)

    if installer is None:
        log.info("Dry run, nothing installed")
        return result

    result.installed = installer.install(material.artifacts())
    return result
