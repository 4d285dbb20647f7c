"""Structural schemas for definition configuration bodies.

A configuration body arrives already parsed: a set of named attributes plus nested blocks. Each definition declares a
BodySchema describing which attributes it requires or accepts and which block types may appear. validate_body() checks
a Body against a BodySchema and returns the accepted BodyContent alongside any diagnostics.
"""

import dataclasses
from typing import Any

from statecrypt.encryption.diagnostics import Diagnostics, SourceRange


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class Attribute:
    name: str
    value: Any
    range: SourceRange


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class Block:
    type: str
    labels: tuple[str, ...] = ()
    body: "Body"
    range: SourceRange


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class Body:
    attributes: dict[str, Attribute] = dataclasses.field(default_factory=dict)
    blocks: tuple[Block, ...] = ()
    range: SourceRange


@dataclasses.dataclass(slots=True, frozen=True)
class AttributeSchema:
    name: str
    required: bool = False


@dataclasses.dataclass(slots=True, frozen=True)
class BlockSchema:
    type: str
    label_names: tuple[str, ...] = ()


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class BodySchema:
    attributes: tuple[AttributeSchema, ...] = ()
    blocks: tuple[BlockSchema, ...] = ()


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class DefinitionSchema:
    """Schema of a key provider or method definition.

    key_provider_fields names the attributes whose values are references to other key providers by instance name.
    The binding step verifies that each reference resolves before configure() is called.
    """

    body_schema: BodySchema
    key_provider_fields: tuple[str, ...] = ()


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class BodyContent:
    """The subset of a Body accepted by a BodySchema."""

    attributes: dict[str, Attribute]
    blocks: tuple[Block, ...]
    range: SourceRange

    def get(self, name: str, default: Any = None) -> Any:
        """Returns the value of the named attribute, or default when it is absent."""
        attribute = self.attributes.get(name)
        return default if attribute is None else attribute.value

    def subject(self, name: str) -> SourceRange:
        """Returns the source range of the named attribute, falling back to the body itself."""
        attribute = self.attributes.get(name)
        return self.range if attribute is None else attribute.range


def validate_body(body: Body, schema: BodySchema) -> tuple[BodyContent, Diagnostics]:
    diags = Diagnostics()
    known_attributes = {a.name for a in schema.attributes}
    block_schemas = {b.type: b for b in schema.blocks}

    for attr in schema.attributes:
        if attr.required and attr.name not in body.attributes:
            diags.error(
                "Missing required argument",
                f'The argument "{attr.name}" is required, but no definition was found.',
                body.range,
            )

    attributes = {}
    for name, attribute in body.attributes.items():
        if name not in known_attributes:
            if name in block_schemas:
                diags.error(
                    "Unsupported argument",
                    f'"{name}" is a block type, not an argument.',
                    attribute.range,
                )
            else:
                diags.error(
                    "Unsupported argument",
                    f'An argument named "{name}" is not expected here.',
                    attribute.range,
                )
            continue
        attributes[name] = attribute

    blocks = []
    for block in body.blocks:
        block_schema = block_schemas.get(block.type)
        if block_schema is None:
            diags.error(
                "Unsupported block type",
                f'Blocks of type "{block.type}" are not expected here.',
                block.range,
            )
            continue
        if len(block.labels) != len(block_schema.label_names):
            expected = ", ".join(block_schema.label_names) or "no labels"
            diags.error(
                "Wrong number of block labels",
                f'Blocks of type "{block.type}" expect {expected}, got {len(block.labels)}.',
                block.range,
            )
            continue
        blocks.append(block)

    return BodyContent(attributes=attributes, blocks=tuple(blocks), range=body.range), diags
