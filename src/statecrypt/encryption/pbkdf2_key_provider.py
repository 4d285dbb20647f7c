import binascii
from collections.abc import Mapping

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from statecrypt.encryption.constants import KEY_SIZE
from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.registry import KeyProvider
from statecrypt.encryption.schema import (
    AttributeSchema,
    BodyContent,
    BodySchema,
    DefinitionSchema,
)

NAME = "pbkdf2"

MIN_PASSPHRASE_LENGTH = 16
MIN_ITERATIONS = 200_000
DEFAULT_ITERATIONS = 600_000

_HASH_FUNCTIONS = {"sha256": hashes.SHA256, "sha512": hashes.SHA512}


class Pbkdf2KeyProviderDefinition:
    """Derives a key from a passphrase, or from the output of another key provider."""

    def schema(self) -> DefinitionSchema:
        return DefinitionSchema(
            body_schema=BodySchema(
                attributes=(
                    AttributeSchema("passphrase"),
                    AttributeSchema("key_provider"),
                    AttributeSchema("salt", required=True),
                    AttributeSchema("iterations"),
                    AttributeSchema("hash_function"),
                )
            ),
            key_provider_fields=("key_provider",),
        )

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple["Pbkdf2KeyProvider | None", Diagnostics]:
        diags = Diagnostics()
        passphrase = content.get("passphrase")
        provider_name = content.get("key_provider")
        iterations = content.get("iterations", DEFAULT_ITERATIONS)
        hash_function = content.get("hash_function", "sha256")

        if (passphrase is None) == (provider_name is None):
            diags.error(
                "Invalid passphrase source",
                'Specify exactly one of "passphrase" or "key_provider".',
                content.range,
            )
        elif passphrase is not None and (not isinstance(passphrase, str) or len(passphrase) < MIN_PASSPHRASE_LENGTH):
            diags.error(
                "Passphrase too short",
                f"The passphrase must be at least {MIN_PASSPHRASE_LENGTH} characters long.",
                content.subject("passphrase"),
            )

        try:
            salt = binascii.unhexlify(content.get("salt"))
        except (binascii.Error, TypeError, ValueError):
            salt = b""
        if not salt:
            diags.error("Invalid salt", '"salt" must be a non-empty hex string.', content.subject("salt"))

        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < MIN_ITERATIONS:
            diags.error(
                "Invalid iterations",
                f'"iterations" must be an integer of at least {MIN_ITERATIONS}.',
                content.subject("iterations"),
            )
        if hash_function not in _HASH_FUNCTIONS:
            diags.error(
                "Invalid hash function",
                f'"hash_function" must be one of: {", ".join(_HASH_FUNCTIONS)}.',
                content.subject("hash_function"),
            )
        if diags.has_errors():
            return None, diags

        if provider_name is not None:
            source = key_providers[provider_name]
        else:
            encoded = passphrase.encode("utf-8")
            source = lambda: encoded  # noqa: E731
        return Pbkdf2KeyProvider(
            source, salt=salt, iterations=iterations, hash_function=hash_function
        ), diags


class Pbkdf2KeyProvider:
    def __init__(self, source: KeyProvider, *, salt: bytes, iterations: int, hash_function: str = "sha256"):
        self.source = source
        self.salt = salt
        self.iterations = iterations
        self.hash_function = hash_function

    def __call__(self) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=_HASH_FUNCTIONS[self.hash_function](),
            length=KEY_SIZE,
            salt=self.salt,
            iterations=self.iterations,
        )
        return kdf.derive(self.source())
