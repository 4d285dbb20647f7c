import os
from collections.abc import Mapping

from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.exceptions import KeyProviderError
from statecrypt.encryption.key_material import decode_key_material
from statecrypt.encryption.registry import KeyProvider
from statecrypt.encryption.schema import (
    AttributeSchema,
    BodyContent,
    BodySchema,
    DefinitionSchema,
)

NAME = "environ"

_ENCODINGS = ("hex", "base64")


class EnvironKeyProviderDefinition:
    def schema(self) -> DefinitionSchema:
        return DefinitionSchema(
            body_schema=BodySchema(
                attributes=(AttributeSchema("variable", required=True), AttributeSchema("encoding"))
            )
        )

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple["EnvironKeyProvider | None", Diagnostics]:
        diags = Diagnostics()
        variable = content.get("variable")
        encoding = content.get("encoding", "hex")
        if not isinstance(variable, str) or not variable:
            diags.error("Invalid variable", '"variable" must be a non-empty string.', content.subject("variable"))
        if encoding not in _ENCODINGS:
            diags.error(
                "Invalid encoding",
                f'"encoding" must be one of: {", ".join(_ENCODINGS)}.',
                content.subject("encoding"),
            )
        if diags.has_errors():
            return None, diags
        return EnvironKeyProvider(variable, encoding=encoding), diags


class EnvironKeyProvider:
    """Reads an encoded key from an environment variable each time it is called."""

    def __init__(self, variable: str, *, encoding: str = "hex"):
        self.variable = variable
        self.encoding = encoding

    def __call__(self) -> bytes:
        value = os.environ.get(self.variable)
        if not value:
            raise KeyProviderError(f"{self.variable} is not set but is required")
        return decode_key_material(value.encode("utf-8"), self.encoding)
