"""Wire format of encrypted state.

Encrypted state is a single-field JSON object with no whitespace:

    {"crypted":"<lowercase hex of IV || ciphertext>"}

Detection is deliberately two-tiered. Any data starting with the envelope prefix is treated as encrypted, and must
then parse strictly; data that does not start with the prefix is treated as legacy plaintext state.
"""

import binascii
import dataclasses

from statecrypt.encryption.constants import ENVELOPE_PREFIX, ENVELOPE_SUFFIX
from statecrypt.encryption.exceptions import FormatError

_LOWER_HEX = frozenset(b"0123456789abcdef")


@dataclasses.dataclass(slots=True, frozen=True)
class Plaintext:
    """Data that is not in the envelope format."""

    data: bytes


@dataclasses.dataclass(slots=True, frozen=True)
class EncryptedEnvelope:
    """A strictly valid envelope and its decoded payload (IV followed by ciphertext)."""

    ciphertext: bytes


def is_encrypted(data: bytes) -> bool:
    """Returns True if data starts like an envelope, regardless of what follows."""
    return data.startswith(ENVELOPE_PREFIX)


def _interior(data: bytes) -> bytes | None:
    """Returns the hex between the envelope prefix and suffix, or None if data is not strictly an envelope."""
    # The prefix and suffix share a quote character, so check the length before slicing.
    if len(data) <= len(ENVELOPE_PREFIX) + len(ENVELOPE_SUFFIX):
        return None
    if not (data.startswith(ENVELOPE_PREFIX) and data.endswith(ENVELOPE_SUFFIX)):
        return None
    interior = data[len(ENVELOPE_PREFIX) : len(data) - len(ENVELOPE_SUFFIX)]
    if not _LOWER_HEX.issuperset(interior):
        return None
    return interior


def is_syntactically_valid(data: bytes) -> bool:
    """Returns True only if data is exactly {"crypted":"<one or more lowercase hex characters>"}."""
    return _interior(data) is not None


def decode_envelope(data: bytes) -> bytes:
    """Extracts and hex-decodes the payload of a strictly valid envelope."""
    interior = _interior(data)
    if interior is None:
        raise FormatError("ciphertext contains invalid characters, possibly cut off or garbled")
    try:
        return binascii.unhexlify(interior)
    except binascii.Error as err:
        raise FormatError(
            f"did not fully decode, only read {len(interior) // 2} bytes before encountering an error"
        ) from err


def encode_envelope(ciphertext: bytes) -> bytes:
    return ENVELOPE_PREFIX + ciphertext.hex().encode("ascii") + ENVELOPE_SUFFIX


def parse(data: bytes) -> Plaintext | EncryptedEnvelope:
    """Classifies data as plaintext or a decoded envelope.

    Data that starts like an envelope but is not strictly valid raises FormatError rather than being treated as
    plaintext. Methods that must validate their key before the envelope (such as AES256-CFB/SHA256) use
    is_encrypted() and decode_envelope() separately, which classify data exactly as this function does.
    """
    if not is_encrypted(data):
        return Plaintext(data)
    return EncryptedEnvelope(decode_envelope(data))
