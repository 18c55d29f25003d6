from __future__ import annotations

import getpass
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Protocol

from .errors import PasswordUnavailableError
from .material import InputFile

log = logging.getLogger(__name__)

Prompt = Callable[[str], str]


class PasswordSource(Protocol):
    def passwords(self, label: str) -> Iterator[str]: ...


@dataclass(frozen=True)
class FixedPassword:
    value: str

    def passwords(self, label: str) -> Iterator[str]:
        yield self.value


class EmptyPasswordProbe:
    def passwords(self, label: str) -> Iterator[str]:
        log.debug("probing %s with an empty password", label)
        yield ""


class InteractivePrompt:
    """Asks a human; the second attempt is the single re-prompt after a failure."""

    def __init__(self, prompt: Optional[Prompt] = None, attempts: int = 2) -> None:
        self._prompt = prompt or getpass.getpass
        self._attempts = attempts

    def passwords(self, label: str) -> Iterator[str]:
        for attempt in range(self._attempts):
            msg = f"Password for {label}: " if attempt == 0 else f"Wrong password, retry for {label}: "
            yield self._prompt(msg)


class Unattended:
    """Last source when nobody can be asked; reaching it ends the attempts."""

    def passwords(self, label: str) -> Iterator[str]:
        raise PasswordUnavailableError(
            "password required but none was supplied and prompting is disabled", filename=label
        )


@dataclass(frozen=True)
class PasswordPolicy:
    password: Optional[str] = None
    interactive: bool = False
    prompt: Optional[Prompt] = None

    def for_file(self, f: InputFile) -> "PasswordPolicy":
        if f.password is None:
            return self
        return PasswordPolicy(password=f.password, interactive=self.interactive, prompt=self.prompt)

    def sources(self, probe_empty: bool) -> List[PasswordSource]:
        if self.password is not None:
            return [FixedPassword(self.password)]
        out: List[PasswordSource] = []
        if probe_empty:
            out.append(EmptyPasswordProbe())
        out.append(InteractivePrompt(self.prompt) if self.interactive else Unattended())
        return out


def iter_passwords(sources: Iterable[PasswordSource], label: str) -> Iterator[str]:
    for src in sources:
        yield from src.passwords(label)
