import pytest

from certnorm.errors import PasswordUnavailableError
from certnorm.material import InputFile
from certnorm.passwords import (
    EmptyPasswordProbe,
    FixedPassword,
    InteractivePrompt,
    PasswordPolicy,
    Unattended,
    iter_passwords,
)


def test_explicit_password_is_the_only_candidate():
    sources = PasswordPolicy(password="changeit", interactive=True).sources(probe_empty=True)
    assert sources == [FixedPassword("changeit")]
    assert list(iter_passwords(sources, "f")) == ["changeit"]


def test_unattended_chain_tries_empty_then_fails():
    sources = PasswordPolicy().sources(probe_empty=True)
    assert [type(s) for s in sources] == [EmptyPasswordProbe, Unattended]
    it = iter_passwords(sources, "server.pfx")
    assert next(it) == ""
    with pytest.raises(PasswordUnavailableError):
        next(it)


def test_no_empty_password_for_encrypted_keys():
    sources = PasswordPolicy().sources(probe_empty=False)
    assert [type(s) for s in sources] == [Unattended]


def test_interactive_prompt_is_lazy_and_bounded():
    asked = []

    def prompt(msg):
        asked.append(msg)
        return f"pw{len(asked)}"

    sources = PasswordPolicy(interactive=True, prompt=prompt).sources(probe_empty=False)
    assert [type(s) for s in sources] == [InteractivePrompt]
    it = iter_passwords(sources, "key.pem")
    assert asked == []
    assert list(it) == ["pw1", "pw2"]
    assert "key.pem" in asked[0]


def test_per_file_password():
    policy = PasswordPolicy(password="global")
    assert policy.for_file(InputFile("a", b"")).password == "global"
    assert policy.for_file(InputFile("b", b"", password="own")).password == "own"


def test_unattended_raises_when_asked():
    with pytest.raises(PasswordUnavailableError) as ei:
        Unattended().passwords("server.pfx")
    assert ei.value.filename == "server.pfx"


def test_unattended_not_reached_while_earlier_sources_succeed():
    it = iter_passwords([FixedPassword("a"), Unattended()], "key.pem")
    assert next(it) == "a"
