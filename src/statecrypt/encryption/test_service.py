import json
from types import MappingProxyType

import pytest

from statecrypt.encryption import service
from statecrypt.encryption.aes_cfb_sha256 import NAME, AesCfbSha256Method
from statecrypt.encryption.constants import (
    ENV_STATECRYPT_ENCRYPTION,
    ENV_STATECRYPT_ENCRYPTION_FILE,
)
from statecrypt.encryption.exceptions import ConfigurationError, IntegrityError, SchemaError
from statecrypt.encryption.registry import MethodConfig
from statecrypt.encryption.service import StateEncryption
from statecrypt.encryption.unencrypted_method import UnencryptedMethod

OLD_KEY = "00" * 32
NEW_KEY = "ff" * 32


def aes(key: str) -> AesCfbSha256Method:
    return AesCfbSha256Method(MethodConfig(name=NAME, parameters=MappingProxyType({"key": key})))


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    monkeypatch.delenv(ENV_STATECRYPT_ENCRYPTION, raising=False)
    monkeypatch.delenv(ENV_STATECRYPT_ENCRYPTION_FILE, raising=False)
    monkeypatch.setattr(service, "_SERVICE", None)


def test_get_state_encryption_requires_setup():
    with pytest.raises(ConfigurationError, match="setup"):
        service.get_state_encryption()


def test_setup_without_configuration(log_messages):
    service.setup()
    encryption = service.get_state_encryption()
    assert isinstance(encryption.method, UnencryptedMethod)
    assert encryption.encrypt(b'{"version":4}') == b'{"version":4}'
    assert any("State encryption is disabled" in m for m in log_messages)


def test_setup_from_environment(monkeypatch):
    monkeypatch.setenv(
        ENV_STATECRYPT_ENCRYPTION,
        json.dumps({"method": {"type": "client-side/AES256-CFB/SHA256", "config": {"key": NEW_KEY}}}),
    )
    service.setup()
    encryption = service.get_state_encryption()
    encrypted = encryption.encrypt(b'{"version":4}')
    assert encrypted.startswith(b'{"crypted":"')
    assert aes(NEW_KEY).decrypt(encrypted) == b'{"version":4}'


def test_setup_with_invalid_configuration(monkeypatch):
    monkeypatch.setenv(
        ENV_STATECRYPT_ENCRYPTION,
        json.dumps({"method": {"type": "client-side/AES256-CFB/SHA256", "config": {"cipher": "aes"}}}),
    )
    with pytest.raises(SchemaError):
        service.setup()
    with pytest.raises(ConfigurationError, match="setup"):
        service.get_state_encryption()


def test_unencrypted_method_refuses_encrypted_state():
    encrypted = aes(OLD_KEY).encrypt(b"state")
    with pytest.raises(ConfigurationError, match="found encrypted state"):
        StateEncryption(UnencryptedMethod()).decrypt(encrypted)


def test_fallback_is_used_for_key_rotation(log_messages):
    encrypted_with_old_key = aes(OLD_KEY).encrypt(b"state")
    encryption = StateEncryption(aes(NEW_KEY), fallback=aes(OLD_KEY))

    assert encryption.decrypt(encrypted_with_old_key) == b"state"
    assert any("trying fallback method" in m for m in log_messages)

    # New state is always written with the primary method.
    assert aes(NEW_KEY).decrypt(encryption.encrypt(b"state2")) == b"state2"


def test_fallback_is_not_used_when_primary_succeeds():
    encryption = StateEncryption(aes(NEW_KEY), fallback=UnencryptedMethod())
    assert encryption.decrypt(aes(NEW_KEY).encrypt(b"state")) == b"state"


def test_primary_error_is_raised_when_fallback_fails():
    encrypted = aes("11" * 32).encrypt(b"state")
    encryption = StateEncryption(aes(NEW_KEY), fallback=UnencryptedMethod())
    with pytest.raises(IntegrityError):
        encryption.decrypt(encrypted)


def test_no_fallback_propagates_error():
    encrypted = aes(OLD_KEY).encrypt(b"state")
    with pytest.raises(IntegrityError):
        StateEncryption(aes(NEW_KEY)).decrypt(encrypted)


def test_fallback_is_used_when_primary_key_provider_is_broken():
    broken = AesCfbSha256Method(
        MethodConfig(name=NAME, parameters=MappingProxyType({}), key_providers=("broken",)),
        key_provider=lambda: "k" * 32,
    )
    encryption = StateEncryption(broken, fallback=aes(OLD_KEY))
    assert encryption.decrypt(aes(OLD_KEY).encrypt(b"state")) == b"state"
