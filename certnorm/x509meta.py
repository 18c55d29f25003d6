import datetime as dt
from typing import Any, Dict, List, Optional, cast

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.x509.oid import ExtensionOID, NameOID

from .common import as_utc, iso_utc


def not_before_utc(cert: x509.Certificate) -> dt.datetime:
    nb = getattr(cert, "not_valid_before_utc", None)
    return nb if nb is not None else as_utc(cert.not_valid_before)


def not_after_utc(cert: x509.Certificate) -> dt.datetime:
    na = getattr(cert, "not_valid_after_utc", None)
    return na if na is not None else as_utc(cert.not_valid_after)


def name_to_cn(name: x509.Name) -> Optional[str]:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return None
    return cast(str, attrs[0].value)


def public_key_info(pk: Any) -> Dict[str, Any]:
    """Key family and size/curve; accepts either half of a key pair."""
    if isinstance(pk, (rsa.RSAPublicKey, rsa.RSAPrivateKey)):
        return {"type": "RSA", "size": pk.key_size}
    if isinstance(pk, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return {"type": "EC", "curve": pk.curve.name}
    if isinstance(pk, (ed25519.Ed25519PublicKey, ed25519.Ed25519PrivateKey)):
        return {"type": "Ed25519"}
    if isinstance(pk, (ed448.Ed448PublicKey, ed448.Ed448PrivateKey)):
        return {"type": "Ed448"}
    return {"type": pk.__class__.__name__}


# SAN entry types shown in the report; other GeneralName kinds are skipped
_SAN_TYPES = (x509.DNSName, x509.IPAddress, x509.UniformResourceIdentifier, x509.RFC822Name)


def san_list(cert: x509.Certificate) -> List[str]:
    try:
        san = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME).value
    except x509.ExtensionNotFound:
        return []
    return [str(g.value) for g in cast(x509.SubjectAlternativeName, san) if isinstance(g, _SAN_TYPES)]


def is_ca(cert: x509.Certificate) -> bool:
    try:
        bc = cert.extensions.get_extension_for_oid(ExtensionOID.BASIC_CONSTRAINTS).value
    except x509.ExtensionNotFound:
        return False
    return bool(cast(x509.BasicConstraints, bc).ca)


def chain_entry(cert: x509.Certificate) -> Dict[str, Any]:
    """Short description of one CA chain member, in the order it was supplied."""
    return {
        "subject_cn": name_to_cn(cert.subject),
        "issuer_cn": name_to_cn(cert.issuer),
        "not_after": iso_utc(not_after_utc(cert)),
        "ca": is_ca(cert),
        "self_signed": cert.subject == cert.issuer,
        "fingerprint_sha256": cert.fingerprint(hashes.SHA256()).hex(),
    }
