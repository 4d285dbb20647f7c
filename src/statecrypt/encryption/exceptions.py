from statecrypt.encryption.diagnostics import Diagnostics


class StateEncryptionError(Exception):
    """Base class for all errors raised while configuring or running state encryption."""


class ConfigurationError(StateEncryptionError):
    """Raised when a parameter is missing or malformed, or a name cannot be resolved.

    When raised by the binding step, diagnostics holds every problem found in the failing block.
    """

    def __init__(self, message: str, diagnostics: Diagnostics | None = None):
        super().__init__(message)
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()


class SchemaError(ConfigurationError):
    """Raised when a configuration body does not match its definition's schema."""


class DuplicateDefinitionError(ConfigurationError):
    def __init__(self, kind: str, name: str):
        super().__init__(f"A {kind} named '{name}' is already registered")
        self.kind = kind
        self.name = name


class DefinitionNotRegisteredError(ConfigurationError):
    def __init__(self, kind: str, name: str, available: list[str]):
        super().__init__(
            f"No {kind} named '{name}' is registered (available: {', '.join(available) or 'none'})"
        )
        self.kind = kind
        self.name = name


class KeyProviderError(StateEncryptionError):
    """Raised when a key provider cannot produce key material."""


class FormatError(StateEncryptionError):
    """Raised when data looks encrypted but is not a well-formed envelope."""


class CryptoError(StateEncryptionError):
    """Raised when the cipher cannot be constructed or random bytes cannot be generated."""


class IntegrityError(StateEncryptionError):
    """Raised when the decrypted payload does not match its SHA-256 tag."""

    def __init__(self, position: int):
        super().__init__(f"hash of decrypted payload did not match at position {position}")
        self.position = position
