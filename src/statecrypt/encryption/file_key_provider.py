from collections.abc import Mapping
from pathlib import Path

from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.exceptions import KeyProviderError
from statecrypt.encryption.key_material import ENCODINGS, decode_key_material
from statecrypt.encryption.registry import KeyProvider
from statecrypt.encryption.schema import (
    AttributeSchema,
    BodyContent,
    BodySchema,
    DefinitionSchema,
)

NAME = "file"


class FileKeyProviderDefinition:
    def schema(self) -> DefinitionSchema:
        return DefinitionSchema(
            body_schema=BodySchema(attributes=(AttributeSchema("path", required=True), AttributeSchema("encoding")))
        )

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple["FileKeyProvider | None", Diagnostics]:
        diags = Diagnostics()
        path = content.get("path")
        encoding = content.get("encoding", "raw")
        if not isinstance(path, str) or not path:
            diags.error("Invalid path", '"path" must be a non-empty string.', content.subject("path"))
        if encoding not in ENCODINGS:
            diags.error(
                "Invalid encoding",
                f'"encoding" must be one of: {", ".join(ENCODINGS)}.',
                content.subject("encoding"),
            )
        if diags.has_errors():
            return None, diags
        return FileKeyProvider(Path(path), encoding=encoding), diags


class FileKeyProvider:
    """Reads a key from the local filesystem each time it is called."""

    def __init__(self, path: Path, *, encoding: str = "raw"):
        self.path = path
        self.encoding = encoding

    def __call__(self) -> bytes:
        try:
            value = self.path.read_bytes()
        except OSError as err:
            raise KeyProviderError(f"The {self.path} file cannot be read.") from err
        return decode_key_material(value, self.encoding)
