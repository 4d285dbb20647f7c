import base64

import pytest

from statecrypt.encryption.diagnostics import SourceRange
from statecrypt.encryption.environ_key_provider import EnvironKeyProvider, EnvironKeyProviderDefinition
from statecrypt.encryption.exceptions import ConfigurationError, KeyProviderError
from statecrypt.encryption.file_key_provider import FileKeyProvider, FileKeyProviderDefinition
from statecrypt.encryption.key_material import decode_key_material
from statecrypt.encryption.pbkdf2_key_provider import Pbkdf2KeyProvider, Pbkdf2KeyProviderDefinition
from statecrypt.encryption.schema import Attribute, BodyContent
from statecrypt.encryption.static_key_provider import StaticKeyProvider, StaticKeyProviderDefinition

TEST_KEY = bytes(range(32))

SOURCE = SourceRange(filename="test.json", pointer="/key_providers/0/config")


def content(**attributes) -> BodyContent:
    return BodyContent(
        attributes={k: Attribute(name=k, value=v, range=SOURCE.child(k)) for k, v in attributes.items()},
        blocks=(),
        range=SOURCE,
    )


def test_static_key_provider():
    provider, diags = StaticKeyProviderDefinition().configure(content(key=TEST_KEY.hex()), {})
    assert not diags
    assert provider() == TEST_KEY
    assert TEST_KEY.hex() not in repr(provider)


@pytest.mark.parametrize("key", ["", "00", TEST_KEY.hex().upper(), 42])
def test_static_key_provider_invalid_key(key):
    provider, diags = StaticKeyProviderDefinition().configure(content(key=key), {})
    assert provider is None
    assert [d.summary for d in diags] == ["Invalid key"]
    assert diags[0].subject == SourceRange(filename="test.json", pointer="/key_providers/0/config/key")


def test_environ_key_provider(monkeypatch):
    provider, diags = EnvironKeyProviderDefinition().configure(content(variable="TEST_STATE_KEY"), {})
    assert not diags

    monkeypatch.setenv("TEST_STATE_KEY", TEST_KEY.hex())
    assert provider() == TEST_KEY

    # The variable is re-read on every call.
    monkeypatch.setenv("TEST_STATE_KEY", bytes(32).hex())
    assert provider() == bytes(32)


def test_environ_key_provider_base64(monkeypatch):
    monkeypatch.setenv("TEST_STATE_KEY", base64.standard_b64encode(TEST_KEY).decode())
    provider = EnvironKeyProvider("TEST_STATE_KEY", encoding="base64")
    assert provider() == TEST_KEY


def test_environ_key_provider_unset(monkeypatch):
    monkeypatch.delenv("TEST_STATE_KEY", raising=False)
    with pytest.raises(KeyProviderError, match="TEST_STATE_KEY is not set"):
        EnvironKeyProvider("TEST_STATE_KEY")()


def test_environ_key_provider_not_hex(monkeypatch):
    monkeypatch.setenv("TEST_STATE_KEY", "not hex")
    with pytest.raises(KeyProviderError, match="not valid hex"):
        EnvironKeyProvider("TEST_STATE_KEY")()


def test_environ_key_provider_invalid_configuration():
    provider, diags = EnvironKeyProviderDefinition().configure(content(variable="", encoding="raw"), {})
    assert provider is None
    assert [d.summary for d in diags] == ["Invalid variable", "Invalid encoding"]


@pytest.mark.parametrize(
    "encoding,stored",
    [
        ("raw", TEST_KEY),
        ("hex", TEST_KEY.hex().encode() + b"\n"),
        ("base64", base64.standard_b64encode(TEST_KEY) + b"\n"),
    ],
)
def test_file_key_provider(tmp_path, encoding, stored):
    key_file = tmp_path / "state.key"
    key_file.write_bytes(stored)
    provider, diags = FileKeyProviderDefinition().configure(content(path=str(key_file), encoding=encoding), {})
    assert not diags
    assert provider() == TEST_KEY


def test_file_key_provider_missing_file(tmp_path):
    provider = FileKeyProvider(tmp_path / "missing.key")
    with pytest.raises(KeyProviderError, match="cannot be read"):
        provider()


def test_file_key_provider_invalid_configuration():
    provider, diags = FileKeyProviderDefinition().configure(content(path=7, encoding="rot13"), {})
    assert provider is None
    assert [d.summary for d in diags] == ["Invalid path", "Invalid encoding"]


def test_pbkdf2_key_provider_passphrase():
    definition = Pbkdf2KeyProviderDefinition()
    provider, diags = definition.configure(
        content(passphrase="correct horse battery staple", salt="0011223344556677", iterations=200_000), {}
    )
    assert not diags
    key = provider()
    assert len(key) == 32
    # Derivation is deterministic for a given passphrase and salt.
    assert provider() == key

    other, _ = definition.configure(
        content(passphrase="correct horse battery staple", salt="7766554433221100", iterations=200_000), {}
    )
    assert other() != key


def test_pbkdf2_key_provider_chained():
    provider, diags = Pbkdf2KeyProviderDefinition().configure(
        content(key_provider="seed", salt="00", iterations=200_000, hash_function="sha512"),
        {"seed": StaticKeyProvider(TEST_KEY)},
    )
    assert not diags
    assert isinstance(provider, Pbkdf2KeyProvider)
    assert len(provider()) == 32


def test_pbkdf2_key_provider_propagates_source_failure():
    def failing():
        raise KeyProviderError("unavailable")

    provider = Pbkdf2KeyProvider(failing, salt=b"\x00", iterations=200_000)
    with pytest.raises(KeyProviderError):
        provider()


@pytest.mark.parametrize(
    "attributes,summaries",
    [
        ({"salt": "00"}, ["Invalid passphrase source"]),
        ({"salt": "00", "passphrase": "x" * 16, "key_provider": "seed"}, ["Invalid passphrase source"]),
        ({"salt": "00", "passphrase": "too short"}, ["Passphrase too short"]),
        ({"salt": "zz", "passphrase": "x" * 16}, ["Invalid salt"]),
        ({"salt": "", "passphrase": "x" * 16}, ["Invalid salt"]),
        ({"salt": "00", "passphrase": "x" * 16, "iterations": 1000}, ["Invalid iterations"]),
        ({"salt": "00", "passphrase": "x" * 16, "iterations": True}, ["Invalid iterations"]),
        ({"salt": "00", "passphrase": "x" * 16, "hash_function": "md5"}, ["Invalid hash function"]),
    ],
)
def test_pbkdf2_key_provider_invalid_configuration(attributes, summaries):
    provider, diags = Pbkdf2KeyProviderDefinition().configure(
        content(**attributes), {"seed": StaticKeyProvider(TEST_KEY)}
    )
    assert provider is None
    assert [d.summary for d in diags] == summaries


def test_decode_key_material_unsupported_encoding():
    with pytest.raises(ConfigurationError, match="Unsupported key encoding"):
        decode_key_material(b"00", "rot13")
