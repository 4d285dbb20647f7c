import dataclasses
from collections.abc import Callable, Iterable, Mapping
from typing import Protocol

from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.exceptions import (
    ConfigurationError,
    DefinitionNotRegisteredError,
    DuplicateDefinitionError,
)
from statecrypt.encryption.schema import BodyContent, DefinitionSchema

# Produces raw key material. May perform blocking I/O on every call; raises KeyProviderError on failure.
type KeyProvider = Callable[[], bytes]


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class MethodConfig:
    """The configuration a Method is bound to: its name, string parameters, and referenced key providers."""

    name: str
    parameters: Mapping[str, str]
    key_providers: tuple[str, ...] = ()


class Method(Protocol):
    """A bound encryption method, ready to encrypt and decrypt state."""

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypts serialized state.

        :arg plaintext: the serialized state
        :raises ConfigurationError: when no usable key is configured
        :raises CryptoError: when the cipher cannot be constructed
        :returns: the encrypted state
        """

    def decrypt(self, data: bytes) -> bytes:
        """Decrypts serialized state, passing unencrypted state through unchanged.

        :arg data: the persisted state
        :raises FormatError: when data looks encrypted but is malformed
        :raises IntegrityError: when the decrypted payload fails its integrity check
        :returns: the plaintext state
        """


class KeyProviderDefinition(Protocol):
    def schema(self) -> DefinitionSchema:
        """Returns the schema of this definition's configuration body."""

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple[KeyProvider | None, Diagnostics]:
        """Binds validated configuration into a KeyProvider.

        key_providers holds the key providers configured before this one, by instance name.
        """


class MethodDefinition(Protocol):
    def schema(self) -> DefinitionSchema:
        """Returns the schema of this definition's configuration body."""

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple[Method | None, Diagnostics]:
        """Binds validated configuration into a Method."""


class Registry:
    """Catalog of key provider and method definitions.

    Populate it once at startup, then treat it as read-only.
    """

    def __init__(self):
        self.key_providers: dict[str, KeyProviderDefinition] = {}
        self.methods: dict[str, MethodDefinition] = {}

    @classmethod
    def from_definitions(
        cls,
        *,
        key_providers: Iterable[tuple[str, KeyProviderDefinition]] = (),
        methods: Iterable[tuple[str, MethodDefinition]] = (),
    ) -> "Registry":
        registry = cls()
        for name, key_provider in key_providers:
            registry.register_key_provider(name, key_provider)
        for name, method in methods:
            registry.register_method(name, method)
        return registry

    def get_key_providers(self):
        return list(self.key_providers.keys())

    def get_methods(self):
        return list(self.methods.keys())

    def get_key_provider(self, name: str) -> KeyProviderDefinition:
        definition = self.key_providers.get(name)
        if definition is None:
            raise DefinitionNotRegisteredError("key provider", name, self.get_key_providers())
        return definition

    def get_method(self, name: str) -> MethodDefinition:
        definition = self.methods.get(name)
        if definition is None:
            raise DefinitionNotRegisteredError("method", name, self.get_methods())
        return definition

    def register_key_provider(self, name: str, definition: KeyProviderDefinition):
        _register(self.key_providers, "key provider", name, definition)

    def register_method(self, name: str, definition: MethodDefinition):
        _register(self.methods, "method", name, definition)


def _register(table: dict, kind: str, name: str, definition):
    if not name:
        raise ConfigurationError(f"A {kind} cannot be registered without a name")
    if name in table:
        raise DuplicateDefinitionError(kind, name)
    table[name] = definition
