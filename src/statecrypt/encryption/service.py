from typing import Optional

from loguru import logger

from statecrypt.encryption import binding, settings, unencrypted_method
from statecrypt.encryption.builtin import default_registry
from statecrypt.encryption.constants import (
    ENV_STATECRYPT_ENCRYPTION,
    ENV_STATECRYPT_ENCRYPTION_FILE,
)
from statecrypt.encryption.exceptions import ConfigurationError, StateEncryptionError
from statecrypt.encryption.registry import Method, Registry

_SERVICE: Optional["StateEncryption"] = None


def setup(registry: Registry | None = None):
    """Configures state encryption according to environment variables."""
    global _SERVICE
    _SERVICE = from_environment(registry)


def from_environment(registry: Registry | None = None) -> "StateEncryption":
    registry = registry if registry is not None else default_registry()
    config = settings.load_from_env()
    if config is None:
        logger.warning(
            f"Encryption: State encryption is disabled because neither {ENV_STATECRYPT_ENCRYPTION} nor "
            f"{ENV_STATECRYPT_ENCRYPTION_FILE} is set."
        )
        return StateEncryption(unencrypted_method.UnencryptedMethod())
    bound = binding.bind(registry, config)
    return StateEncryption(bound.method, fallback=bound.fallback)


class StateEncryption:
    """Encrypts and decrypts serialized state with a bound method."""

    def __init__(self, method: Method, *, fallback: Method | None = None):
        self.method = method
        self.fallback = fallback

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypts with the primary method. The fallback method is never used for encryption."""
        return self.method.encrypt(plaintext)

    def decrypt(self, data: bytes) -> bytes:
        """Decrypts with the primary method, then with the fallback method if one is configured.

        If both fail, the error from the primary method is raised.
        """
        try:
            return self.method.decrypt(data)
        except StateEncryptionError as err:
            if self.fallback is None:
                raise
            logger.info("Encryption: primary method failed to decrypt ({}), trying fallback method", err)
            try:
                return self.fallback.decrypt(data)
            except StateEncryptionError:
                raise err from None


def get_state_encryption() -> StateEncryption:
    if not _SERVICE:
        raise ConfigurationError("setup() must be called before encryption operations")
    return _SERVICE
