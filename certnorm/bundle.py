import logging

from .common import FULLCHAIN_LEAF_ONLY, ensure_newline
from .errors import IncompleteMaterialError
from .material import CertificateMaterial

log = logging.getLogger(__name__)


def assemble(material: CertificateMaterial) -> bytes:
    """
    Build the full chain bundle: leaf first, then the CA chain exactly as it was
    supplied (no deduplication, no reordering, no depth limit).
    """
    if not material.leaf:
        raise IncompleteMaterialError(["certificate"])

    parts = [ensure_newline(material.leaf)]
    if material.chain:
        parts.extend(ensure_newline(b) for b in material.chain)
        log.info("Full chain bundle built from leaf + %d CA certificate(s)", len(material.chain))
    else:
        material.warn(
            FULLCHAIN_LEAF_ONLY,
            "CA chain not provided; ca-bundle.crt contains only the leaf certificate",
        )

    material.full_chain = b"".join(parts)
    return material.full_chain
