"""Turns a parsed encryption configuration into bound key providers and methods.

Key providers are configured in declaration order, so a key provider may reference any key provider declared before
it. The method (and the optional fallback method) is configured last and may reference any key provider.
"""

import dataclasses
from collections.abc import Mapping

from loguru import logger

from statecrypt.encryption.diagnostics import Diagnostics, SourceRange
from statecrypt.encryption.exceptions import (
    ConfigurationError,
    DefinitionNotRegisteredError,
    SchemaError,
)
from statecrypt.encryption.registry import KeyProvider, Method, Registry
from statecrypt.encryption.schema import Body, BodyContent, DefinitionSchema, validate_body


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class KeyProviderBlock:
    """Declares a key provider instance: the definition to use, a unique instance name, and its body."""

    type: str
    name: str
    body: Body
    range: SourceRange


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class MethodBlock:
    type: str
    body: Body
    range: SourceRange


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class EncryptionConfig:
    method: MethodBlock
    key_providers: tuple[KeyProviderBlock, ...] = ()
    # Used to decrypt state the primary method cannot; never used for encryption.
    fallback: MethodBlock | None = None


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class BoundEncryption:
    method: Method
    method_name: str
    key_providers: Mapping[str, KeyProvider]
    fallback: Method | None = None
    fallback_name: str | None = None


class _ResolutionFailed(Exception):
    def __init__(self, schema_failure: bool):
        self.schema_failure = schema_failure


class _Resolver:
    def __init__(self, registry: Registry):
        self.registry = registry
        self.diags = Diagnostics()

    def _content(self, schema: DefinitionSchema, body: Body, available: Mapping[str, KeyProvider]) -> BodyContent:
        content, diags = validate_body(body, schema.body_schema)
        self.diags.extend(diags)
        if diags.has_errors():
            raise _ResolutionFailed(schema_failure=True)
        for field in schema.key_provider_fields:
            reference = content.get(field)
            if reference is None:
                continue
            if not isinstance(reference, str) or reference not in available:
                self.diags.error(
                    "Reference to undeclared key provider",
                    f'"{field}" refers to "{reference}", which is not a key provider declared earlier '
                    f"(available: {', '.join(available) or 'none'}).",
                    content.subject(field),
                )
        if self.diags.has_errors():
            raise _ResolutionFailed(schema_failure=False)
        return content

    def _check(self, instance, diags: Diagnostics):
        self.diags.extend(diags)
        if diags.has_errors() or instance is None:
            raise _ResolutionFailed(schema_failure=False)
        return instance

    def key_providers(self, blocks: tuple[KeyProviderBlock, ...]) -> dict[str, KeyProvider]:
        resolved: dict[str, KeyProvider] = {}
        for block in blocks:
            if block.name in resolved:
                self.diags.error(
                    "Duplicate key provider",
                    f'A key provider named "{block.name}" was already declared.',
                    block.range,
                )
                raise _ResolutionFailed(schema_failure=False)
            try:
                definition = self.registry.get_key_provider(block.type)
            except DefinitionNotRegisteredError as err:
                self.diags.error("Unknown key provider type", str(err), block.range)
                raise _ResolutionFailed(schema_failure=False) from err
            content = self._content(definition.schema(), block.body, resolved)
            resolved[block.name] = self._check(*definition.configure(content, dict(resolved)))
        return resolved

    def method(self, block: MethodBlock, key_providers: Mapping[str, KeyProvider]) -> Method:
        try:
            definition = self.registry.get_method(block.type)
        except DefinitionNotRegisteredError as err:
            self.diags.error("Unknown encryption method", str(err), block.range)
            raise _ResolutionFailed(schema_failure=False) from err
        content = self._content(definition.schema(), block.body, key_providers)
        return self._check(*definition.configure(content, key_providers))


def _resolve(registry: Registry, config: EncryptionConfig) -> tuple[BoundEncryption | None, Diagnostics, bool]:
    resolver = _Resolver(registry)
    try:
        key_providers = resolver.key_providers(config.key_providers)
        method = resolver.method(config.method, key_providers)
        fallback = resolver.method(config.fallback, key_providers) if config.fallback else None
    except _ResolutionFailed as failed:
        return None, resolver.diags, failed.schema_failure
    bound = BoundEncryption(
        method=method,
        method_name=config.method.type,
        key_providers=key_providers,
        fallback=fallback,
        fallback_name=config.fallback.type if config.fallback else None,
    )
    return bound, resolver.diags, False


def resolve(registry: Registry, config: EncryptionConfig) -> tuple[BoundEncryption | None, Diagnostics]:
    """Binds config against registry.

    Returns the bound encryption, or None when any block produced an error diagnostic. Resolution stops at the first
    failing block, so the diagnostics describe that block only (plus warnings from earlier blocks).
    """
    bound, diags, _ = _resolve(registry, config)
    return bound, diags


def bind(registry: Registry, config: EncryptionConfig) -> BoundEncryption:
    """Like resolve(), but raises SchemaError or ConfigurationError instead of returning error diagnostics."""
    bound, diags, schema_failure = _resolve(registry, config)
    if bound is None:
        errors = diags.errors()
        message = errors[0].summary if errors else "encryption configuration failed"
        if schema_failure:
            raise SchemaError(f"Invalid encryption configuration: {message}", diags)
        raise ConfigurationError(f"Invalid encryption configuration: {message}", diags)
    for diag in diags:
        logger.warning("Encryption configuration: {}", diag)
    logger.info(
        "Encryption: using '{}' (key providers: {})",
        bound.method_name,
        ", ".join(bound.key_providers) or "none",
    )
    return bound
