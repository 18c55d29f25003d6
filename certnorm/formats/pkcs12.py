import logging
from typing import List, Optional

from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat
from cryptography.hazmat.primitives.serialization.pkcs12 import load_key_and_certificates

from ..common import CHAIN_MISSING
from ..errors import ExtractionError, PasswordUnavailableError
from ..material import CertificateMaterial, InputFile
from ..passwords import PasswordPolicy, iter_passwords

log = logging.getLogger(__name__)


def _load(data: bytes, password: str):
    # cryptography treats None and b"" differently for password-less containers
    if password == "":
        try:
            return load_key_and_certificates(data, password=None)
        except Exception:
            pass
    return load_key_and_certificates(data, password=password.encode("utf-8"))


def _open(f: InputFile, policy: PasswordPolicy):
    last_exc: Optional[Exception] = None
    try:
        for pwd in iter_passwords(policy.for_file(f).sources(probe_empty=True), f.name):
            try:
                return _load(f.data, pwd)
            except Exception as e:
                last_exc = e
                continue
    except PasswordUnavailableError as e:
        raise ExtractionError("PKCS#12 file is password-protected and no password is available", filename=f.name) from e
    raise ExtractionError("cannot open PKCS#12 file, wrong password or corrupt container", filename=f.name) from last_exc


def extract(f: InputFile, material: CertificateMaterial, policy: PasswordPolicy) -> None:
    log.info("Extracting certificate, key and CA chain from PKCS#12 %s", f.name)
    key, cert, additional = _open(f, policy)

    if cert is None and key is None:
        raise ExtractionError("PKCS#12 container holds neither a certificate nor a key", filename=f.name)
    if cert is not None:
        material.set_leaf(cert.public_bytes(Encoding.PEM), f.name)
    if key is not None:
        material.set_key(key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()), f.name)

    chain: List[bytes] = [c.public_bytes(Encoding.PEM) for c in additional or []]
    if chain:
        material.set_chain(chain, f.name)
    else:
        material.warn(CHAIN_MISSING, f"{f.name}: PKCS#12 file does not contain a CA chain; ca.crt will not be created")
