from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import typer

from .errors import CertNormError
from .format_identify import detect
from .installer import CommandReloader, Installer, write_file
from .logging_conf import setup_logging
from .material import SERVER_KEY
from .path_utils import load_input
from .pipeline import run
from .settings import Settings

app = typer.Typer(
    help="Normalize TLS certificate material (PFX/P12, PEM, DER, P7B) into server.crt, server.key, ca.crt and ca-bundle.crt.",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    setup_logging(Settings.from_env())


def _fail(e: CertNormError) -> None:
    typer.echo(f"ERROR [{e.code}] {e}", err=True)
    if e.__cause__ is not None:
        typer.echo(f"  cause: {e.__cause__}", err=True)
    raise typer.Exit(code=1)


def _installer(settings: Settings, install_dir: Optional[Path], restart: bool) -> Installer:
    return Installer(
        install_dir or settings.INSTALL_DIR,
        key_owner=settings.KEY_OWNER,
        reloader=CommandReloader(settings.RELOAD_CMD) if (restart and settings.RELOAD_CMD) else None,
        health_endpoints=settings.HEALTH_ENDPOINTS if restart else (),
    )


def _write_outputs(out_dir: Path, artifacts: dict) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, data in artifacts.items():
        p = out_dir / name
        write_file(p, data, 0o600 if name == SERVER_KEY else 0o644, replace=True)
        typer.echo(f"  wrote {p}")


@app.command("import")
def import_(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Input files, processed in order"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password for PFX/P12 or encrypted key"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only, install nothing"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="With --dry-run, write the artifacts here"),
    install_dir: Optional[Path] = typer.Option(None, "--install-dir", help="Installation directory (default: CERTNORM_INSTALL_DIR)"),
    no_restart: bool = typer.Option(False, "--no-restart", help="Do not run the reload command after install"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt for a password"),
):
    """
    Import a certificate and key from any supported format.

    Examples: `server.pfx`, `fullchain.pem privkey.pem`, `cert.der key.pem`,
    `chain.p7b key.pem`.

    Files are processed in the order given. When two files provide the same part
    (certificate, private key or CA chain) the LAST file wins; a warning names both.
    A multi-certificate PEM file is read as leaf plus chain, so `cert.pem key.pem
    ca-chain.pem` fails: the first CA certificate replaces the leaf. Concatenate
    leaf and chain into one fullchain.pem (leaf first) instead.
    """
    settings = Settings.from_env()
    interactive = not non_interactive and sys.stdin.isatty()
    try:
        inputs = [load_input(f) for f in files]
        result = run(
            inputs,
            password=password,
            interactive=interactive,
            dry_run=dry_run,
            installer=None if dry_run else _installer(settings, install_dir, not no_restart),
            warn_days=settings.EXPIRY_WARN_DAYS,
        )
    except CertNormError as e:
        _fail(e)
        return

    r = result.report
    typer.echo("Certificate and key match.")
    typer.echo(f"  subject:  {r.subject}")
    typer.echo(f"  issuer:   {r.issuer}")
    typer.echo(f"  valid:    {r.not_before.isoformat()} .. {r.not_after.isoformat()}")
    typer.echo(f"  SAN:      {', '.join(r.san) or '-'}")
    typer.echo(f"  chain:    {r.chain_length} CA certificate(s)")
    for entry in r.chain:
        typer.echo(f"            {entry['subject_cn']} (issuer {entry['issuer_cn']}, not after {entry['not_after']})")
    for w in result.warnings:
        typer.echo(f"WARN [{w.code}] {w.message}", err=True)

    if result.installed is None:
        typer.echo("DRY RUN - nothing installed.")
        if output_dir is not None:
            _write_outputs(output_dir, result.material.artifacts())
        return

    typer.echo(f"Installed to {result.installed.target}")
    if result.installed.backup_dir:
        typer.echo(f"Backup: {result.installed.backup_dir}")
    if no_restart:
        typer.echo("Services NOT reloaded (--no-restart). Reload them manually.")


@app.command("detect")
def detect_files(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    password: Optional[str] = typer.Option(None, "--password", "-p"),
):
    """Print the detected format of each file."""
    for f in files:
        typer.echo(f"{f}: {detect(f.read_bytes(), filename=f.name, password=password).value}")


@app.command()
def rollback(
    backup_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="A backups/certs_<stamp> directory"),
    install_dir: Optional[Path] = typer.Option(None, "--install-dir"),
    no_restart: bool = typer.Option(False, "--no-restart"),
):
    """Re-install a previous certificate set from a backup directory."""
    settings = Settings.from_env()
    try:
        res = _installer(settings, install_dir, not no_restart).rollback(backup_dir)
    except CertNormError as e:
        _fail(e)
        return
    for w in res.warnings:
        typer.echo(f"WARN [{w.code}] {w.message}", err=True)
    typer.echo(f"Restored {', '.join(res.files)} from {backup_dir}")
    if res.backup_dir:
        typer.echo(f"Replaced set saved to {res.backup_dir}")


@app.command()
def serve():
    """Run the MCP server (stdio)."""
    from .server import mcp

    mcp.run()


if __name__ == "__main__":
    app()
