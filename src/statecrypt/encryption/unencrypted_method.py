from collections.abc import Mapping
from types import MappingProxyType

from statecrypt.encryption import envelope
from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.exceptions import ConfigurationError
from statecrypt.encryption.registry import KeyProvider, MethodConfig
from statecrypt.encryption.schema import BodyContent, BodySchema, DefinitionSchema

NAME = "unencrypted"


class UnencryptedDefinition:
    def schema(self) -> DefinitionSchema:
        return DefinitionSchema(body_schema=BodySchema())

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple["UnencryptedMethod", Diagnostics]:
        return UnencryptedMethod(), Diagnostics()


class UnencryptedMethod:
    """Implements a Method that doesn't perform any cryptographic operations.

    Useful as a fallback while migrating existing state to or from encryption.
    """

    config = MethodConfig(name=NAME, parameters=MappingProxyType({}))

    def encrypt(self, plaintext: bytes) -> bytes:
        return plaintext

    def decrypt(self, data: bytes) -> bytes:
        if envelope.is_encrypted(data):
            raise ConfigurationError("found encrypted state, but no encryption method is configured to decrypt it")
        return data
