from statecrypt.encryption import (
    aes_cfb_sha256,
    environ_key_provider,
    file_key_provider,
    pbkdf2_key_provider,
    static_key_provider,
    unencrypted_method,
)
from statecrypt.encryption.registry import Registry


def default_registry() -> Registry:
    """Returns a new registry holding every built-in key provider and method definition."""
    return Registry.from_definitions(
        key_providers=[
            (static_key_provider.NAME, static_key_provider.StaticKeyProviderDefinition()),
            (environ_key_provider.NAME, environ_key_provider.EnvironKeyProviderDefinition()),
            (file_key_provider.NAME, file_key_provider.FileKeyProviderDefinition()),
            (pbkdf2_key_provider.NAME, pbkdf2_key_provider.Pbkdf2KeyProviderDefinition()),
        ],
        methods=[
            (aes_cfb_sha256.NAME, aes_cfb_sha256.AesCfbSha256Definition()),
            (unencrypted_method.NAME, unencrypted_method.UnencryptedDefinition()),
        ],
    )
