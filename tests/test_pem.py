import pytest
from _util import cert_pem, chain, count_certs, encrypted_key_pem, inp, key_pem, load_all, make_cert, ec_key

from cryptography.hazmat.primitives.serialization import load_pem_private_key

from certnorm.common import EXTRA_PEM_BLOCKS, SINGLE_CERT_BUNDLE
from certnorm.errors import DecryptionError, ExtractionError
from certnorm.formats import pem
from certnorm.material import CertificateMaterial
from certnorm.passwords import PasswordPolicy


def _codes(m: CertificateMaterial):
    return [w.code for w in m.warnings]


@pytest.mark.parametrize("n", [2, 3, 5])
def test_split_bundle_first_is_leaf_rest_is_chain(n):
    certs = [make_cert(f"cert-{i}", ec_key(f"bundle-{i}")) for i in range(n)]
    data = b"".join(cert_pem(c) for c in certs)
    m = CertificateMaterial()
    pem.split_bundle(inp("fullchain.pem", data), m)

    assert load_all(m.leaf) == [certs[0]]
    assert m.chain is not None and len(m.chain) == n - 1
    assert [load_all(b)[0] for b in m.chain] == certs[1:]


def test_split_bundle_single_block_warns():
    m = CertificateMaterial()
    pem.split_bundle(inp("only.pem", cert_pem(chain().leaf)), m)
    assert m.leaf is not None
    assert m.chain is None
    assert SINGLE_CERT_BUNDLE in _codes(m)


def test_split_bundle_ignores_text_between_blocks():
    c = chain()
    data = b"subject=leaf\n" + cert_pem(c.leaf) + b"\nBag Attributes: none\n" + cert_pem(c.intermediate)
    m = CertificateMaterial()
    pem.split_bundle(inp("bundle.pem", data), m)
    assert m.leaf.startswith(b"-----BEGIN CERTIFICATE-----")
    assert count_certs(m.leaf) == 1


def test_certificate_passthrough_keeps_block():
    block = cert_pem(chain().leaf)
    m = CertificateMaterial()
    pem.extract_certificate(inp("cert.pem", block), m)
    assert m.leaf == block
    assert m.sources["certificate"] == "cert.pem"


def test_key_passthrough_and_extra_blocks():
    c = chain()
    m = CertificateMaterial()
    pem.extract_key(inp("combined.pem", cert_pem(c.leaf) + key_pem(c.leaf_key)), m)
    assert m.key == key_pem(c.leaf_key)
    assert EXTRA_PEM_BLOCKS in _codes(m)
    assert m.leaf is None


def test_key_without_block_fails():
    with pytest.raises(ExtractionError):
        pem.extract_key(inp("key.pem", b"PRIVATE KEY but no block"), CertificateMaterial())


@pytest.mark.parametrize("traditional", [False, True])
def test_decrypt_key_with_password(traditional):
    c = chain()
    m = CertificateMaterial()
    data = encrypted_key_pem(c.leaf_key, "s3cr3t", traditional=traditional)
    pem.decrypt_key(inp("key.pem", data), m, PasswordPolicy(password="s3cr3t"))

    assert b"ENCRYPTED" not in m.key
    loaded = load_pem_private_key(m.key, password=None)
    assert loaded.private_numbers() == c.leaf_key.private_numbers()


def test_decrypt_key_wrong_password():
    data = encrypted_key_pem(chain().leaf_key, "s3cr3t")
    with pytest.raises(DecryptionError) as ei:
        pem.decrypt_key(inp("key.pem", data), CertificateMaterial(), PasswordPolicy(password="nope"))
    assert ei.value.filename == "key.pem"


def test_decrypt_key_unattended_without_password():
    data = encrypted_key_pem(chain().leaf_key, "s3cr3t")
    with pytest.raises(DecryptionError):
        pem.decrypt_key(inp("key.pem", data), CertificateMaterial(), PasswordPolicy(interactive=False))


def test_decrypt_key_reprompts_once():
    data = encrypted_key_pem(chain().leaf_key, "s3cr3t")
    answers = iter(["typo", "s3cr3t"])
    prompts = []

    def prompt(msg):
        prompts.append(msg)
        return next(answers)

    m = CertificateMaterial()
    pem.decrypt_key(inp("key.pem", data), m, PasswordPolicy(interactive=True, prompt=prompt))
    assert m.key is not None
    assert len(prompts) == 2


def test_decrypt_key_gives_up_after_reprompt():
    data = encrypted_key_pem(chain().leaf_key, "s3cr3t")
    calls = []

    def prompt(msg):
        calls.append(msg)
        return "wrong"

    with pytest.raises(DecryptionError):
        pem.decrypt_key(inp("key.pem", data), CertificateMaterial(), PasswordPolicy(interactive=True, prompt=prompt))
    assert len(calls) == 2


def test_per_file_password_overrides_global():
    data = encrypted_key_pem(chain().leaf_key, "own")
    m = CertificateMaterial()
    pem.decrypt_key(inp("key.pem", data, password="own"), m, PasswordPolicy(password="global"))
    assert m.key is not None
