"""Settings describe the encryption configuration, read as JSON from the environment at startup.

Example:

    {
      "key_providers": [{"type": "static", "name": "main", "config": {"key": "<64 hex characters>"}}],
      "method": {"type": "client-side/AES256-CFB/SHA256", "config": {"key_provider": "main"}},
      "fallback": {"type": "unencrypted"}
    }

Within each "config" object, scalar values become attributes and nested objects (or lists of objects) become blocks.
JSON has no notation for block labels, so every block built from JSON is unlabelled; a schema whose BlockSchema
declares label_names can only be satisfied by a configuration parser that supplies labels.
"""

import os
from typing import Annotated, Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from statecrypt.encryption.binding import EncryptionConfig, KeyProviderBlock, MethodBlock
from statecrypt.encryption.constants import (
    ENV_STATECRYPT_ENCRYPTION,
    ENV_STATECRYPT_ENCRYPTION_FILE,
)
from statecrypt.encryption.diagnostics import Diagnostics, SourceRange
from statecrypt.encryption.exceptions import ConfigurationError, SchemaError
from statecrypt.encryption.schema import Attribute, Block, Body

NonEmptyStr = Annotated[str, Field(min_length=1)]


class ConfigBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class KeyProviderSettings(ConfigBaseModel):
    type: NonEmptyStr
    name: NonEmptyStr
    config: dict[str, Any] = Field(default_factory=dict)


class MethodSettings(ConfigBaseModel):
    type: NonEmptyStr
    config: dict[str, Any] = Field(default_factory=dict)


class EncryptionSettings(ConfigBaseModel):
    key_providers: list[KeyProviderSettings] = Field(default_factory=list)
    method: MethodSettings
    fallback: MethodSettings | None = None

    def to_config(self, source: str) -> EncryptionConfig:
        """Converts these settings into the structured form consumed by the binding step."""
        root = SourceRange(filename=source)
        key_providers = tuple(
            KeyProviderBlock(
                type=kp.type,
                name=kp.name,
                body=_to_body(kp.config, root.child("key_providers", i, "config")),
                range=root.child("key_providers", i),
            )
            for i, kp in enumerate(self.key_providers)
        )
        return EncryptionConfig(
            key_providers=key_providers,
            method=_method_block(self.method, root.child("method")),
            fallback=_method_block(self.fallback, root.child("fallback")) if self.fallback else None,
        )


def _method_block(method: MethodSettings, range: SourceRange) -> MethodBlock:
    return MethodBlock(type=method.type, body=_to_body(method.config, range.child("config")), range=range)


def _to_body(values: dict[str, Any], range: SourceRange) -> Body:
    attributes = {}
    blocks = []
    for name, value in values.items():
        child = range.child(name)
        if isinstance(value, dict):
            blocks.append(Block(type=name, body=_to_body(value, child), range=child))
        elif isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
            blocks.extend(
                Block(type=name, body=_to_body(v, child.child(i)), range=child.child(i)) for i, v in enumerate(value)
            )
        else:
            attributes[name] = Attribute(name=name, value=value, range=child)
    return Body(attributes=attributes, blocks=tuple(blocks), range=range)


def parse_settings(raw: str | bytes, source: str) -> EncryptionConfig:
    """Parses a JSON encryption configuration, raising SchemaError with one diagnostic per validation error."""
    try:
        settings = EncryptionSettings.model_validate_json(raw)
    except ValidationError as err:
        root = SourceRange(filename=source)
        diags = Diagnostics()
        for error in err.errors():
            diags.error("Invalid encryption configuration", error["msg"], root.child(*error["loc"]))
        raise SchemaError(f"{source} is not a valid encryption configuration", diags) from err
    return settings.to_config(source)


def load_from_env() -> EncryptionConfig | None:
    """Reads the encryption configuration from the environment, or returns None when none is configured."""
    if inline := os.environ.get(ENV_STATECRYPT_ENCRYPTION):
        logger.info("Loading {} from environment", ENV_STATECRYPT_ENCRYPTION)
        return parse_settings(inline, f"env:{ENV_STATECRYPT_ENCRYPTION}")
    if path := os.environ.get(ENV_STATECRYPT_ENCRYPTION_FILE):
        logger.info("Loading {} from disk: {}", ENV_STATECRYPT_ENCRYPTION_FILE, path)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as err:
            raise ConfigurationError(f"The {path} file cannot be read.") from err
        return parse_settings(raw, path)
    return None
