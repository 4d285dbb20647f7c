# Inline JSON encryption configuration. Takes precedence over STATECRYPT_ENCRYPTION_FILE.
ENV_STATECRYPT_ENCRYPTION = "STATECRYPT_ENCRYPTION"

# Path to a JSON file holding the encryption configuration.
ENV_STATECRYPT_ENCRYPTION_FILE = "STATECRYPT_ENCRYPTION_FILE"

# Encrypted state is serialized as {"crypted":"<hex>"}. Anything starting with the prefix is treated as encrypted.
ENVELOPE_PREFIX = b'{"crypted":"'
ENVELOPE_SUFFIX = b'"}'

# AES block size, which is also the IV length.
BLOCK_SIZE = 16

# AES-256 key length.
KEY_SIZE = 32

# Length of the SHA-256 integrity tag appended to the plaintext.
TAG_SIZE = 32
