import logging
import warnings

from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization.pkcs7 import (
    load_der_pkcs7_certificates,
    load_pem_pkcs7_certificates,
)

from ..common import PKCS7_NO_KEY
from ..errors import ExtractionError
from ..format_identify import is_textual
from ..material import CertificateMaterial, InputFile
from .pem import apply_leaf_and_chain

log = logging.getLogger(__name__)


def load_certificates(data: bytes):
    loader = load_pem_pkcs7_certificates if is_textual(data) else load_der_pkcs7_certificates
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            category=UserWarning,
            message=r"PKCS#7 certificates could not be parsed as DER, falling back to parsing as BER\.",
        )
        return loader(data)


def extract(f: InputFile, material: CertificateMaterial) -> None:
    log.info("Extracting certificates from PKCS#7 %s", f.name)
    try:
        certs = load_certificates(f.data)
    except Exception as e:
        raise ExtractionError("cannot extract certificates from PKCS#7 file", filename=f.name) from e
    if not certs:
        raise ExtractionError("PKCS#7 file contains no certificates", filename=f.name)

    apply_leaf_and_chain([c.public_bytes(Encoding.PEM) for c in certs], f, material)
    material.warn(PKCS7_NO_KEY, f"{f.name}: PKCS#7 does not contain a private key; provide it as a separate file")
