import base64
import binascii
import json
from typing import Annotated, Callable, List, Optional

from fastmcp import FastMCP
from pydantic import Field

from .common import sha256_hex
from .errors import CertNormError
from .format_identify import detect
from .installer import CommandReloader, Installer
from .material import InputFile
from .mcp_contracts import B64File, ImportResponse
from .path_utils import load_input
from .pipeline import ImportResult, run
from .settings import Settings

mcp = FastMCP(
    name="CertNorm",
    instructions=(
        "Purpose: turn TLS server certificate material supplied in any common format into the canonical "
        "PEM set a TLS endpoint loads: server.crt (leaf), server.key (unencrypted key), ca.crt (CA chain, "
        "optional) and ca-bundle.crt (leaf + chain).\n\n"
        "Use me when: you have a PFX/P12, a PEM bundle (e.g. fullchain.pem + privkey.pem), separate PEM/DER "
        "files, an encrypted PEM key, or a PKCS#7/P7B chain and need to check that certificate and key match, "
        "see subject/issuer/SAN/expiry, and produce the canonical files.\n"
        "Do NOT use me for: issuing certificates, trust-path validation, OCSP or revocation checks.\n\n"
        "How to call:\n"
        "- Local files → `normalize_from_local_paths(paths=[...], password=?, dry_run=true)`.\n"
        "- Base64 files → `normalize_from_b64_files(files=[{filename, content_b64, password?}], password=?)`.\n"
        "- Format only → `detect_format(path=...)`.\n\n"
        "Files are processed in the order given; when two files provide the same part (certificate, key or "
        "chain) the LAST one wins and a FIELD_OVERWRITTEN warning is returned.\n"
        "`password` applies to any PKCS#12 or encrypted key that needs one; there is no interactive prompt.\n\n"
        "Safety: the private key is never returned, only its SHA-256; nothing is written unless "
        "`dry_run` is false on the local-path tool."
    ),
)


def _respond(call: Callable[[], ImportResult]) -> dict:
    try:
        result = call()
    except CertNormError as e:
        return ImportResponse(ok=False, **e.as_dict()).model_dump(exclude_none=True)
    return ImportResponse.model_validate(result.as_dict(include_key=False)).model_dump(exclude_none=True)


def _installer(settings: Settings, install_dir: Optional[str]) -> Installer:
    return Installer(
        install_dir or settings.INSTALL_DIR,
        key_owner=settings.KEY_OWNER,
        reloader=CommandReloader(settings.RELOAD_CMD) if settings.RELOAD_CMD else None,
        health_endpoints=settings.HEALTH_ENDPOINTS,
    )


@mcp.tool
def ping() -> str:
    return "pong"


@mcp.tool(
    description="Classify a local certificate/key file (pkcs12, pkcs7-pem, pem-certificate-bundle, der-certificate, ...). Read-only.",
    tags={"certnorm", "x509", "detect"},
    annotations={
        "title": "Detect file format",
        "readOnlyHint": True,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
def detect_format(
    path: Annotated[str, Field(description="Local path or file:// URI of the file.")],
    password: Annotated[
        Optional[str],
        Field(description="Optional password, only used to open binary PKCS#12 files without a .pfx/.p12 extension."),
    ] = None,
) -> dict:
    try:
        f = load_input(path)
    except CertNormError as e:
        return {"ok": False, **e.as_dict()}
    return {
        "ok": True,
        "path": f.name,
        "format": detect(f.data, filename=f.name, password=password).value,
        "size": len(f.data),
        "digest_sha256": sha256_hex(f.data),
    }


@mcp.tool(
    description=(
        "Normalize local certificate files into server.crt / server.key / ca.crt / ca-bundle.crt, "
        "validating that certificate and key match. Dry run by default; set dry_run=false to install."
    ),
    tags={"certnorm", "x509", "normalize", "filesystem"},
    annotations={
        "title": "Normalize local files",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": False,
    },
)
def normalize_from_local_paths(
    paths: Annotated[
        List[str],
        Field(description="Local paths or file:// URIs in processing order, e.g. [fullchain.pem, privkey.pem]. Later files override earlier ones."),
    ],
    password: Annotated[
        Optional[str],
        Field(description="Password for a PKCS#12 file or encrypted private key. Leave null if not required."),
    ] = None,
    dry_run: Annotated[bool, Field(description="Validate and assemble only, do not install.")] = True,
    install_dir: Annotated[
        Optional[str],
        Field(description="Installation directory; defaults to CERTNORM_INSTALL_DIR."),
    ] = None,
) -> dict:
    """
    Examples:

    - PFX with password:
      { "paths": ["/tmp/server.pfx"], "password": "changeit" }

    - Let's Encrypt style:
      { "paths": ["/etc/letsencrypt/live/x/fullchain.pem", "/etc/letsencrypt/live/x/privkey.pem"] }
    """
    settings = Settings.from_env()

    def call() -> ImportResult:
        inputs = [load_input(p) for p in paths]
        return run(
            inputs,
            password=password,
            interactive=False,
            dry_run=dry_run,
            installer=None if dry_run else _installer(settings, install_dir),
            warn_days=settings.EXPIRY_WARN_DAYS,
        )

    return _respond(call)


@mcp.tool(
    description=(
        "Normalize certificate files provided as base64 (dry run only) and return the canonical PEM artifacts "
        "without the private key. Use when the server cannot read the files directly."
    ),
    tags={"certnorm", "x509", "normalize", "binary"},
    annotations={
        "title": "Normalize base64 files",
        "readOnlyHint": True,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
def normalize_from_b64_files(
    files: Annotated[
        List[B64File],
        Field(description="Files in processing order; each carries filename, content_b64 and an optional password."),
    ],
    password: Annotated[
        Optional[str],
        Field(description="Password applied to any file that needs one and has no own password."),
    ] = None,
) -> dict:
    settings = Settings.from_env()
    try:
        inputs = [
            InputFile(name=f.filename, data=base64.b64decode(f.content_b64, validate=True), password=f.password)
            for f in files
        ]
    except binascii.Error as e:
        return ImportResponse(ok=False, error="InvalidBase64", message=str(e)).model_dump(exclude_none=True)
    return _respond(lambda: run(inputs, password=password, warn_days=settings.EXPIRY_WARN_DAYS))


@mcp.prompt(
    name="import_local_certificate",
    description=(
        "Normalize local certificate files with `normalize_from_local_paths` (dry run) and report "
        "whether they are ready to install."
    ),
    tags={"certnorm", "prompt", "import"},
)
def import_local_certificate(
    paths: Annotated[str, Field(description="Comma separated local paths, in processing order.")],
    password: Annotated[str, Field(description="Password if required; empty string if not.")] = "",
) -> str:
    items = ", ".join(json.dumps(p.strip()) for p in paths.split(",") if p.strip())
    return (
        "Task: check that the given certificate files can be installed on a TLS endpoint.\n\n"
        "1) Call the MCP tool `normalize_from_local_paths` with the following JSON arguments:\n"
        "```json\n"
        "{\n"
        f'  "paths": [{items}],\n'
        f'  "password": {json.dumps(password or None)},\n'
        '  "dry_run": true\n'
        "}\n"
        "```\n\n"
        "2) If `ok` is false, output ERROR: <error> <message> and stop. Do not invent results.\n"
        "3) Otherwise report: detected format per file, subject, issuer, not_after, SANs, chain length, "
        "and every warning (expiring within 30 days, missing chain, overwritten parts).\n"
    )


if __name__ == "__main__":
    mcp.run()
