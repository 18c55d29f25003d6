import logging

from cryptography import x509
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    load_der_private_key,
)

from ..errors import ConversionError
from ..material import CertificateMaterial, InputFile

log = logging.getLogger(__name__)


def der_certificate_to_pem(data: bytes) -> bytes:
    try:
        cert = x509.load_der_x509_certificate(data)
    except Exception as e:
        raise ConversionError("payload is not a DER certificate") from e
    return cert.public_bytes(Encoding.PEM)


def der_key_to_pem(data: bytes) -> bytes:
    try:
        key = load_der_private_key(data, password=None)
    except Exception as e:
        raise ConversionError("payload is not an unencrypted DER private key") from e
    return key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())


def convert_certificate(f: InputFile, material: CertificateMaterial) -> None:
    log.info("Converting DER certificate %s to PEM", f.name)
    try:
        pem = der_certificate_to_pem(f.data)
    except ConversionError as e:
        e.filename = f.name
        raise
    material.set_leaf(pem, f.name)


def convert_key(f: InputFile, material: CertificateMaterial) -> None:
    log.info("Converting DER private key %s to PEM", f.name)
    try:
        pem = der_key_to_pem(f.data)
    except ConversionError as e:
        e.filename = f.name
        raise
    material.set_key(pem, f.name)
