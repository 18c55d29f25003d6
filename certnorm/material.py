from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .common import FIELD_OVERWRITTEN, Warn, ensure_newline

log = logging.getLogger(__name__)

SERVER_CERT = "server.crt"
SERVER_KEY = "server.key"
CA_CHAIN = "ca.crt"
FULL_CHAIN = "ca-bundle.crt"


@dataclass(frozen=True)
class InputFile:
    name: str
    data: bytes = field(repr=False)
    password: Optional[str] = field(default=None, repr=False)

    @staticmethod
    def from_path(path: str | os.PathLike[str], password: Optional[str] = None) -> "InputFile":
        with open(path, "rb") as fh:
            data = fh.read()
        return InputFile(name=os.fspath(path), data=data, password=password)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lstrip(".").lower()


@dataclass
class CertificateMaterial:
    """
    Scratch accumulator of one normalization run.

    Each setter overwrites the previous value of the same field: when several
    inputs provide a leaf, a key or a chain, the one processed last wins. The
    overwrite is recorded as a FIELD_OVERWRITTEN warning naming both files.
    """

    leaf: Optional[bytes] = None
    key: Optional[bytes] = field(default=None, repr=False)
    chain: Optional[List[bytes]] = None
    full_chain: Optional[bytes] = None
    warnings: List[Warn] = field(default_factory=list)
    sources: Dict[str, str] = field(default_factory=dict)

    def warn(self, code: str, message: str) -> None:
        log.warning(message)
        self.warnings.append(Warn(code, message))

    def _record(self, part: str, source: str) -> None:
        previous = self.sources.get(part)
        if previous is not None:
            self.warn(
                FIELD_OVERWRITTEN,
                f"{part} from '{previous}' replaced by {part} from '{source}' (last file wins)",
            )
        self.sources[part] = source
        self.full_chain = None

    def set_leaf(self, pem: bytes, source: str) -> None:
        self._record("certificate", source)
        self.leaf = pem

    def set_key(self, pem: bytes, source: str) -> None:
        self._record("private key", source)
        self.key = pem

    def set_chain(self, blocks: List[bytes], source: str) -> None:
        self._record("ca chain", source)
        self.chain = list(blocks)

    def missing(self) -> List[str]:
        out: List[str] = []
        if not self.leaf:
            out.append("certificate")
        if not self.key:
            out.append("private key")
        return out

    @property
    def is_complete(self) -> bool:
        return not self.missing()

    def chain_pem(self) -> Optional[bytes]:
        if not self.chain:
            return None
        return b"".join(ensure_newline(b) for b in self.chain)

    def artifacts(self) -> Dict[str, bytes]:
        if self.leaf is None or self.key is None or self.full_chain is None:
            raise ValueError("material is not assembled")
        out = {
            SERVER_CERT: ensure_newline(self.leaf),
            SERVER_KEY: ensure_newline(self.key),
            FULL_CHAIN: self.full_chain,
        }
        ca = self.chain_pem()
        if ca is not None:
            out[CA_CHAIN] = ca
        return out
