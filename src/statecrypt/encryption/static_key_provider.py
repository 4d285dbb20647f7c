from collections.abc import Mapping

from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.exceptions import ConfigurationError
from statecrypt.encryption.key_material import parse_hex_key
from statecrypt.encryption.registry import KeyProvider
from statecrypt.encryption.schema import (
    AttributeSchema,
    BodyContent,
    BodySchema,
    DefinitionSchema,
)

NAME = "static"


class StaticKeyProviderDefinition:
    """A key provider whose key is written directly into the configuration.

    Intended for testing and for configurations whose source is already secret.
    """

    def schema(self) -> DefinitionSchema:
        return DefinitionSchema(body_schema=BodySchema(attributes=(AttributeSchema("key", required=True),)))

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple["StaticKeyProvider | None", Diagnostics]:
        diags = Diagnostics()
        try:
            key = parse_hex_key(content.get("key"))
        except ConfigurationError as err:
            diags.error("Invalid key", str(err), content.subject("key"))
            return None, diags
        return StaticKeyProvider(key), diags


class StaticKeyProvider:
    def __init__(self, key: bytes):
        self._key = key

    def __call__(self) -> bytes:
        return self._key

    def __repr__(self):
        return "StaticKeyProvider(<redacted>)"
