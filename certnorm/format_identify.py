import os
import warnings
from enum import Enum
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.serialization import load_der_private_key
from cryptography.hazmat.primitives.serialization.pkcs7 import load_der_pkcs7_certificates
from cryptography.hazmat.primitives.serialization.pkcs12 import load_key_and_certificates

BEGIN_CERT = b"-----BEGIN CERTIFICATE-----"
_PRIVATE_KEY = b"PRIVATE KEY"
_ENCRYPTED = b"ENCRYPTED"
_PKCS7 = b"PKCS7"
_TEXT_SAMPLE = 8192


class FormatTag(str, Enum):
    PKCS12 = "pkcs12"
    PKCS7_DER = "pkcs7-der"
    PKCS7_PEM = "pkcs7-pem"
    PEM_CERTIFICATE = "pem-certificate"
    PEM_CERTIFICATE_BUNDLE = "pem-certificate-bundle"
    PEM_PRIVATE_KEY = "pem-private-key"
    PEM_PRIVATE_KEY_ENCRYPTED = "pem-private-key-encrypted"
    DER_CERTIFICATE = "der-certificate"
    DER_PRIVATE_KEY = "der-private-key"
    UNKNOWN = "unknown"


def is_textual(data: bytes) -> bool:
    sample = data[:_TEXT_SAMPLE]
    if not sample or b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError:
        # a multi-byte char may be cut at the sample boundary
        try:
            sample[:-3].decode("utf-8")
        except UnicodeDecodeError:
            return False
    return True


def _extension(filename: Optional[str]) -> str:
    if not filename:
        return ""
    return os.path.splitext(filename)[1].lstrip(".").lower()


def _classify_text(data: bytes) -> FormatTag:
    if _PRIVATE_KEY in data:
        if _ENCRYPTED in data:
            return FormatTag.PEM_PRIVATE_KEY_ENCRYPTED
        return FormatTag.PEM_PRIVATE_KEY
    if _PKCS7 in data:
        return FormatTag.PKCS7_PEM
    n = data.count(BEGIN_CERT)
    if n > 1:
        return FormatTag.PEM_CERTIFICATE_BUNDLE
    if n == 1:
        return FormatTag.PEM_CERTIFICATE
    return FormatTag.UNKNOWN


def _is_der_cert(data: bytes) -> bool:
    try:
        x509.load_der_x509_certificate(data)
        return True
    except Exception:
        return False


def _is_der_key(data: bytes) -> bool:
    try:
        load_der_private_key(data, password=None)
        return True
    except Exception:
        return False


def _opens_as_pkcs12(data: bytes, password: Optional[str]) -> bool:
    candidates = [None, b""]
    if password:
        candidates.append(password.encode("utf-8"))
    for pwd in candidates:
        try:
            load_key_and_certificates(data, password=pwd)
            return True
        except Exception:
            continue
    return False


def _is_der_pkcs7(data: bytes) -> bool:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        try:
            return bool(load_der_pkcs7_certificates(data))
        except Exception:
            return False


def _classify_binary(data: bytes, password: Optional[str]) -> FormatTag:
    if _is_der_cert(data):
        return FormatTag.DER_CERTIFICATE
    if _is_der_key(data):
        return FormatTag.DER_PRIVATE_KEY
    if _opens_as_pkcs12(data, password):
        return FormatTag.PKCS12
    if _is_der_pkcs7(data):
        return FormatTag.PKCS7_DER
    return FormatTag.UNKNOWN


def detect(data: bytes, filename: Optional[str] = None, password: Optional[str] = None) -> FormatTag:
    ext = _extension(filename)
    if ext in ("pfx", "p12"):
        return FormatTag.PKCS12
    if ext in ("p7b", "p7c"):
        return FormatTag.PKCS7_PEM if is_textual(data) else FormatTag.PKCS7_DER
    if not data:
        return FormatTag.UNKNOWN
    if is_textual(data):
        return _classify_text(data)
    return _classify_binary(data, password)
