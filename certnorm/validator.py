from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_private_key,
)

from .common import as_utc, days_until, iso_utc, sha256_hex, utc_now
from .errors import (
    IncompleteMaterialError,
    InvalidCertificateError,
    InvalidKeyError,
    KeyMismatchError,
)
from .material import CertificateMaterial
from .x509meta import chain_entry, name_to_cn, not_after_utc, not_before_utc, public_key_info, san_list

log = logging.getLogger(__name__)

EXPIRY_WARN_DAYS = 30


@dataclass(frozen=True)
class ValidationReport:
    subject: str
    issuer: str
    not_before: dt.datetime
    not_after: dt.datetime
    san: Tuple[str, ...]
    match: bool
    expiry_warning: bool
    subject_cn: Optional[str] = None
    issuer_cn: Optional[str] = None
    serial_hex: str = ""
    fingerprint_sha256: str = ""
    key_type: Dict[str, Any] = field(default_factory=dict)
    key_fingerprint: str = ""
    days_remaining: int = 0
    chain_length: int = 0
    chain: Tuple[Dict[str, Any], ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "subject_cn": self.subject_cn,
            "issuer_cn": self.issuer_cn,
            "not_before": iso_utc(self.not_before),
            "not_after": iso_utc(self.not_after),
            "days_remaining": self.days_remaining,
            "san": list(self.san),
            "serial_hex": self.serial_hex,
            "fingerprint_sha256": self.fingerprint_sha256,
            "key": dict(self.key_type),
            "key_fingerprint": self.key_fingerprint,
            "match": self.match,
            "expiry_warning": self.expiry_warning,
            "chain_length": self.chain_length,
            "chain": [dict(c) for c in self.chain],
        }


def public_key_fingerprint(pub) -> str:
    """
    Comparison fingerprint of a public key.

    RSA keys are compared on their modulus. Every other key type (EC, EdDSA, DSA)
    is compared on its DER SubjectPublicKeyInfo, which carries the curve and the
    public point, so equality of the two sides means the keys form a pair.
    """
    if isinstance(pub, rsa.RSAPublicKey):
        n = pub.public_numbers().n
        return "rsa-modulus:" + sha256_hex(n.to_bytes((n.bit_length() + 7) // 8, "big"))
    spki = pub.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
    return "spki:" + sha256_hex(spki)


def _load_cert(pem: bytes, what: str = "certificate") -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem)
    except Exception as e:
        raise InvalidCertificateError(f"{what} is not a valid PEM X.509 certificate") from e


def _load_key(pem: bytes):
    try:
        return load_pem_private_key(pem, password=None)
    except Exception as e:
        raise InvalidKeyError("private key is not a valid unencrypted PEM private key") from e


def keys_match(cert_pem: bytes, key_pem: bytes) -> bool:
    cert = _load_cert(cert_pem)
    key = _load_key(key_pem)
    return public_key_fingerprint(cert.public_key()) == public_key_fingerprint(key.public_key())


def validate(
    material: CertificateMaterial,
    now: Optional[dt.datetime] = None,
    warn_days: int = EXPIRY_WARN_DAYS,
) -> ValidationReport:
    leaf_pem, key_pem = material.leaf, material.key
    if not leaf_pem or not key_pem:
        raise IncompleteMaterialError(material.missing())

    cert = _load_cert(leaf_pem)
    key = _load_key(key_pem)
    chain = [_load_cert(b, f"ca chain certificate #{i}") for i, b in enumerate(material.chain or [], 1)]

    cert_fp = public_key_fingerprint(cert.public_key())
    key_fp = public_key_fingerprint(key.public_key())
    if cert_fp != key_fp:
        raise KeyMismatchError(
            "certificate and private key do not match "
            f"(certificate {material.sources.get('certificate')}, key {material.sources.get('private key')})"
        )
    log.info("Certificate and private key match")

    now = as_utc(now) if now is not None else utc_now()
    na = not_after_utc(cert)
    remaining = na - now
    expiry_warning = remaining < dt.timedelta(days=warn_days)

    report = ValidationReport(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        subject_cn=name_to_cn(cert.subject),
        issuer_cn=name_to_cn(cert.issuer),
        not_before=not_before_utc(cert),
        not_after=na,
        san=tuple(san_list(cert)),
        match=True,
        expiry_warning=expiry_warning,
        serial_hex=format(cert.serial_number, "x"),
        fingerprint_sha256=cert.fingerprint(hashes.SHA256()).hex(),
        key_type=public_key_info(key),
        key_fingerprint=key_fp,
        days_remaining=days_until(na, now),
        chain_length=len(chain),
        chain=tuple(chain_entry(c) for c in chain),
    )
    for line in _describe(report):
        log.info("  %s", line)

    return report


def _describe(report: ValidationReport) -> List[str]:
    return [
        f"subject={report.subject}",
        f"issuer={report.issuer}",
        f"notBefore={iso_utc(report.not_before)}",
        f"notAfter={iso_utc(report.not_after)}",
        f"subjectAltName={', '.join(report.san) or '-'}",
    ]
