import base64
import binascii
import re

from statecrypt.encryption.constants import KEY_SIZE
from statecrypt.encryption.exceptions import ConfigurationError, KeyProviderError

_HEX_KEY = re.compile(r"[0-9a-f]{64}")

ENCODINGS = ("raw", "hex", "base64")


def parse_hex_key(hex_key: str) -> bytes:
    """Decodes a 64 character lowercase hex string into a 32 byte key."""
    if not isinstance(hex_key, str) or not _HEX_KEY.fullmatch(hex_key):
        raise ConfigurationError(
            "key was not a hex string representing 32 bytes, must match [0-9a-f]{64}"
        )
    return bytes.fromhex(hex_key)


def decode_key_material(value: bytes, encoding: str) -> bytes:
    """Decodes key material read from an external source.

    Surrounding whitespace is ignored for the text encodings so that keys can be stored with a trailing newline.
    """
    if encoding == "raw":
        return value
    try:
        if encoding == "hex":
            return binascii.unhexlify(value.strip())
        if encoding == "base64":
            return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as err:
        raise KeyProviderError(f"key material is not valid {encoding}") from err
    raise ConfigurationError(f"Unsupported key encoding '{encoding}' (supported: {', '.join(ENCODINGS)})")


def require_key_size(key: bytes, source: str) -> bytes:
    if len(key) != KEY_SIZE:
        raise ConfigurationError(
            f"{source} produced a {len(key)} byte key, but exactly {KEY_SIZE} bytes are required"
        )
    return key
