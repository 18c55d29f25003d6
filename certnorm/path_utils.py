import os
import pathlib
from typing import Optional
from urllib.parse import unquote, urlparse

from .errors import UnreadableInputError
from .material import InputFile


def parse_file_uri(uri_or_path: str) -> pathlib.Path:
    """Accepts a plain path or a local ``file://`` URI (percent-escapes decoded)."""
    if not uri_or_path.startswith("file://"):
        return pathlib.Path(uri_or_path)
    parsed = urlparse(uri_or_path)
    if parsed.netloc not in ("", "localhost"):
        raise UnreadableInputError(f"remote file URI is not supported: {uri_or_path}")
    return pathlib.Path(unquote(parsed.path or "/"))


def resolve_path(path_like: str | os.PathLike[str]) -> pathlib.Path:
    return parse_file_uri(os.fspath(path_like)).expanduser().resolve(strict=False)


def load_input(path_like: str | os.PathLike[str], password: Optional[str] = None) -> InputFile:
    p = resolve_path(path_like)
    if p.is_dir():
        raise UnreadableInputError("is a directory, expected a certificate or key file", filename=str(p))
    try:
        return InputFile.from_path(p, password=password)
    except OSError as e:
        raise UnreadableInputError(f"cannot read input file: {e.strerror or e}", filename=str(p)) from e
