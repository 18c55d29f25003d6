from __future__ import annotations

import logging
import re
from typing import List, Optional

from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    load_pem_private_key,
)

from ..common import EXTRA_PEM_BLOCKS, SINGLE_CERT_BUNDLE
from ..errors import DecryptionError, ExtractionError, PasswordUnavailableError
from ..material import CertificateMaterial, InputFile
from ..passwords import PasswordPolicy, iter_passwords

log = logging.getLogger(__name__)

BEGIN_CERT = b"-----BEGIN CERTIFICATE-----"
END_CERT = b"-----END CERTIFICATE-----"

# PKCS#8 plain/encrypted plus the traditional RSA/EC/DSA forms
_PRIV_BLOCK = re.compile(
    rb"-----BEGIN ((?:ENCRYPTED |RSA |EC |DSA )?PRIVATE KEY)-----.*?-----END \1-----",
    re.DOTALL,
)


def iter_blocks(data: bytes, begin: bytes, end: bytes) -> List[bytes]:
    blocks: List[bytes] = []
    i = 0
    while True:
        s = data.find(begin, i)
        if s == -1:
            break
        e = data.find(end, s)
        if e == -1:
            break
        e2 = e + len(end)
        blocks.append(data[s:e2] + b"\n")
        i = e2
    return blocks


def certificate_blocks(data: bytes) -> List[bytes]:
    return iter_blocks(data, BEGIN_CERT, END_CERT)


def private_key_block(data: bytes) -> Optional[bytes]:
    m = _PRIV_BLOCK.search(data)
    return m.group(0) + b"\n" if m else None


def apply_leaf_and_chain(blocks: List[bytes], f: InputFile, material: CertificateMaterial) -> None:
    """First certificate is the leaf, every following one goes to the chain as found."""
    material.set_leaf(blocks[0], f.name)
    if len(blocks) > 1:
        material.set_chain(blocks[1:], f.name)


def extract_certificate(f: InputFile, material: CertificateMaterial) -> None:
    blocks = certificate_blocks(f.data)
    if not blocks:
        raise ExtractionError("no PEM certificate block found", filename=f.name)
    if len(blocks) > 1:
        material.warn(EXTRA_PEM_BLOCKS, f"{f.name}: only the first of {len(blocks)} certificates is used")
    material.set_leaf(blocks[0], f.name)


def split_bundle(f: InputFile, material: CertificateMaterial) -> None:
    log.info("Splitting PEM bundle %s into leaf certificate and CA chain", f.name)
    blocks = certificate_blocks(f.data)
    if not blocks:
        raise ExtractionError("no PEM certificate block found", filename=f.name)
    apply_leaf_and_chain(blocks, f, material)
    if len(blocks) == 1:
        material.warn(
            SINGLE_CERT_BUNDLE,
            f"{f.name}: bundle contains only one certificate, likely self-signed; no CA chain extracted",
        )


def extract_key(f: InputFile, material: CertificateMaterial) -> None:
    block = private_key_block(f.data)
    if block is None:
        raise ExtractionError("no PEM private key block found", filename=f.name)
    if BEGIN_CERT in f.data:
        material.warn(EXTRA_PEM_BLOCKS, f"{f.name}: certificate blocks next to the private key are ignored")
    material.set_key(block, f.name)


def _to_pkcs8_pem(key) -> bytes:
    return key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())


def decrypt_key(f: InputFile, material: CertificateMaterial, policy: PasswordPolicy) -> None:
    log.info("Decrypting encrypted private key %s", f.name)
    block = private_key_block(f.data)
    if block is None:
        raise DecryptionError("no PEM private key block found", filename=f.name)

    # an encrypted PEM key has no password-less form, so no empty probe
    candidates = iter_passwords(policy.for_file(f).sources(probe_empty=False), f.name)
    last_exc: Optional[Exception] = None
    try:
        for pwd in candidates:
            try:
                key = load_pem_private_key(block, password=pwd.encode("utf-8"))
            except (ValueError, TypeError) as e:
                last_exc = e
                continue
            material.set_key(_to_pkcs8_pem(key), f.name)
            return
    except PasswordUnavailableError as e:
        raise DecryptionError("key is encrypted and no password is available", filename=f.name) from e
    raise DecryptionError("cannot decrypt private key, wrong password?", filename=f.name) from last_exc
