import hashlib
import hmac
from collections.abc import Mapping
from types import MappingProxyType

import nacl.exceptions
import nacl.utils
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from loguru import logger

try:
    from cryptography.hazmat.decrepit.ciphers.modes import CFB
except ImportError:  # older cryptography releases keep CFB with the other modes
    from cryptography.hazmat.primitives.ciphers.modes import CFB

from statecrypt.encryption import envelope
from statecrypt.encryption.constants import BLOCK_SIZE, TAG_SIZE
from statecrypt.encryption.diagnostics import Diagnostics
from statecrypt.encryption.exceptions import (
    ConfigurationError,
    CryptoError,
    FormatError,
    IntegrityError,
)
from statecrypt.encryption.key_material import parse_hex_key, require_key_size
from statecrypt.encryption.registry import KeyProvider, MethodConfig
from statecrypt.encryption.schema import (
    AttributeSchema,
    BodyContent,
    BodySchema,
    DefinitionSchema,
)

NAME = "client-side/AES256-CFB/SHA256"


class AesCfbSha256Definition:
    def schema(self) -> DefinitionSchema:
        return DefinitionSchema(
            body_schema=BodySchema(attributes=(AttributeSchema("key"), AttributeSchema("key_provider"))),
            key_provider_fields=("key_provider",),
        )

    def configure(
        self, content: BodyContent, key_providers: Mapping[str, KeyProvider]
    ) -> tuple["AesCfbSha256Method | None", Diagnostics]:
        """Binds the method configuration.

        The key itself is not validated here; it is parsed on every encrypt and decrypt call.
        """
        diags = Diagnostics()
        parameters = {}
        for name, attribute in content.attributes.items():
            if not isinstance(attribute.value, str):
                diags.error("Incorrect attribute value type", f'"{name}" must be a string.', attribute.range)
                continue
            parameters[name] = attribute.value
        if "key" in parameters and "key_provider" in parameters:
            diags.error(
                "Conflicting key sources",
                'Specify either "key" or "key_provider", not both.',
                content.range,
            )
        if diags.has_errors():
            return None, diags

        provider_name = parameters.get("key_provider")
        config = MethodConfig(
            name=NAME,
            parameters=MappingProxyType(parameters),
            key_providers=(provider_name,) if provider_name else (),
        )
        key_provider = key_providers[provider_name] if provider_name else None
        return AesCfbSha256Method(config, key_provider=key_provider), diags


class AesCfbSha256Method:
    """Encrypts state with AES-256 in CFB mode and protects it with a SHA-256 digest of the plaintext.

    The encrypted value is: ENVELOPE ( IV (16 bytes) || AES-CFB ( PLAINTEXT || SHA256(PLAINTEXT) ) )
    """

    def __init__(self, config: MethodConfig, *, key_provider: KeyProvider | None = None):
        self.config = config
        self.key_provider = key_provider

    def _key(self) -> bytes:
        hex_key = self.config.parameters.get("key")
        if hex_key is not None:
            return parse_hex_key(hex_key)
        if self.key_provider is not None:
            return require_key_size(self.key_provider(), f"key provider '{self.config.key_providers[0]}'")
        raise ConfigurationError(
            "configuration for AES256 needs the parameter 'key' set to a 32 byte lower case hexadecimal value"
        )

    @staticmethod
    def _cipher(key: bytes, iv: bytes) -> Cipher:
        try:
            return Cipher(algorithms.AES256(key), CFB(iv))
        except (ValueError, TypeError) as err:
            raise CryptoError(f"cannot construct AES256-CFB cipher: {err}") from err

    @staticmethod
    def _random_iv() -> bytes:
        try:
            return nacl.utils.random(BLOCK_SIZE)
        except nacl.exceptions.CryptoError as err:
            raise CryptoError(f"cannot generate initial vector: {err}") from err

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypts plaintext into an envelope.

        Raises rather than returning anything when encryption is not possible, so callers never persist plaintext.
        """
        key = self._key()
        iv = self._random_iv()
        encryptor = self._cipher(key, iv).encryptor()
        # The digest lets decrypt() detect a wrong key or a modified ciphertext.
        tag = hashlib.sha256(plaintext).digest()
        body = encryptor.update(plaintext + tag) + encryptor.finalize()
        return envelope.encode_envelope(iv + body)

    def decrypt(self, data: bytes) -> bytes:
        """Decrypts an envelope, or returns data unchanged (with a warning) when it is not encrypted."""
        if not envelope.is_encrypted(data):
            logger.warning("found unencrypted state, transparently reading it anyway")
            return data

        # The key is required before the envelope is checked strictly, so a missing key is reported first.
        key = self._key()
        ciphertext = envelope.decode_envelope(data)
        if len(ciphertext) < BLOCK_SIZE:
            raise FormatError("ciphertext too short, did not contain initial vector")
        iv, payload_with_tag = ciphertext[:BLOCK_SIZE], ciphertext[BLOCK_SIZE:]
        if len(payload_with_tag) < TAG_SIZE:
            raise FormatError("ciphertext too short, did not contain integrity hash")

        decryptor = self._cipher(key, iv).decryptor()
        decrypted = decryptor.update(payload_with_tag) + decryptor.finalize()
        plaintext, tag_read = decrypted[:-TAG_SIZE], decrypted[-TAG_SIZE:]

        tag_computed = hashlib.sha256(plaintext).digest()
        if not hmac.compare_digest(tag_computed, tag_read):
            position = next(i for i, (a, b) in enumerate(zip(tag_computed, tag_read, strict=True)) if a != b)
            raise IntegrityError(position)
        return plaintext
