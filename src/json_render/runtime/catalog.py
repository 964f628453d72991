"""
Catalog registry.

The catalog is the closed set of component types, action names and
validation-function names the generator may reference. Each member carries
an opaque schema; the runtime only asks "does this value satisfy schema S"
through pydantic's TypeAdapter and never interprets schema internals.

Usage:
    from pydantic import BaseModel
    from json_render.runtime.catalog import create_catalog

    class CardProps(BaseModel):
        title: str

    catalog = create_catalog(
        components={"Card": {"props": CardProps, "hasChildren": True}},
        actions={"submit_form": {"params": SubmitParams}},
        validation_functions={"isValidPhone": {"description": "Phone format"}},
    )
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic.errors import PydanticInvalidForJsonSchema, PydanticSchemaGenerationError

from json_render.errors import CatalogError, DuplicateRegistrationError
from json_render.specs.element import UIElement

logger = logging.getLogger(__name__)


# =============================================================================
# Definitions
# =============================================================================


@dataclass(frozen=True)
class ComponentDefinition:
    """A component type the generator may emit. ``props=None`` accepts any props."""

    name: str
    props: Any = None
    has_children: bool = False
    description: str | None = None


@dataclass(frozen=True)
class ActionDefinition:
    """A named action. ``params=None`` accepts any params."""

    name: str
    params: Any = None
    description: str | None = None


@dataclass(frozen=True)
class ValidationFunctionDefinition:
    """A host-supplied validation function name."""

    name: str
    description: str | None = None


# =============================================================================
# Schema validation
# =============================================================================


@lru_cache(maxsize=256)
def _adapter(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(schema)


def validate_against_schema(schema: Any, value: Any) -> list[str]:
    """
    Check value against an opaque schema.

    Args:
        schema: Anything TypeAdapter accepts (BaseModel subclass, TypedDict,
            typing construct), or None for "anything goes"
        value: Value to check

    Returns:
        List of error strings; empty when the value is valid
    """
    if schema is None:
        return []
    try:
        _adapter(schema).validate_python(value)
    except ValidationError as e:
        return [_format_error(err) for err in e.errors()]
    return []


def _format_error(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else str(err["msg"])


# =============================================================================
# Catalog
# =============================================================================


class Catalog:
    """
    Immutable registry of components, actions and validation functions.

    Names are unique within each namespace; registering one twice raises
    DuplicateRegistrationError at construction.
    """

    def __init__(
        self,
        components: Iterable[ComponentDefinition] = (),
        actions: Iterable[ActionDefinition] = (),
        validation_functions: Iterable[ValidationFunctionDefinition] = (),
    ):
        self._components = MappingProxyType(_index("component", components))
        self._actions = MappingProxyType(_index("action", actions))
        self._validation_functions = MappingProxyType(
            _index("validation function", validation_functions)
        )

    def __repr__(self) -> str:
        return (
            f"Catalog(components={len(self._components)}, actions={len(self._actions)}, "
            f"validation_functions={len(self._validation_functions)})"
        )

    # Lookups

    @property
    def components(self) -> Mapping[str, ComponentDefinition]:
        return self._components

    @property
    def actions(self) -> Mapping[str, ActionDefinition]:
        return self._actions

    @property
    def validation_functions(self) -> Mapping[str, ValidationFunctionDefinition]:
        return self._validation_functions

    def has_component(self, type_name: str) -> bool:
        return type_name in self._components

    def component_schema(self, type_name: str) -> Any | None:
        definition = self._components.get(type_name)
        return definition.props if definition else None

    def has_action(self, name: str) -> bool:
        return name in self._actions

    def action_schema(self, name: str) -> Any | None:
        definition = self._actions.get(name)
        return definition.params if definition else None

    def has_validation_fn(self, name: str) -> bool:
        return name in self._validation_functions

    # Validation

    def validate_element(self, element: UIElement) -> list[str]:
        """
        Check an element's type and props against the catalog.

        Returns:
            List of error strings; empty when the element is allowed
        """
        definition = self._components.get(element.type)
        if definition is None:
            return [f"Unknown component type: {element.type!r}"]
        errors = [f"props.{e}" for e in validate_against_schema(definition.props, element.props)]
        if element.children and not definition.has_children:
            errors.append(f"Component {element.type!r} does not accept children")
        return errors

    def validate_action_params(self, name: str, params: Mapping[str, Any]) -> list[str]:
        """Check params against an action's schema."""
        definition = self._actions.get(name)
        if definition is None:
            return [f"Unknown action: {name!r}"]
        return validate_against_schema(definition.params, dict(params))

    # Prompt

    def generate_prompt(self, *, data_sources: Iterable[str] | None = None) -> str:
        """
        Build a system prompt describing this catalog and the JSONL patch format.

        Args:
            data_sources: Optional control-line vocabulary to announce

        Returns:
            Prompt text for the generator
        """
        lines = ["You generate user interfaces as JSONL patches.", "", "## Components"]
        for definition in self._components.values():
            lines.append(_describe_component(definition))

        if self._actions:
            lines += ["", "## Actions"]
            for action in self._actions.values():
                fields = _schema_fields(action.params)
                entry = f"- {action.name}"
                if fields:
                    entry += f": params {{{fields}}}"
                if action.description:
                    entry += f" - {action.description}"
                lines.append(entry)

        if self._validation_functions:
            lines += ["", "## Validation functions"]
            for fn in self._validation_functions.values():
                entry = f"- {fn.name}"
                if fn.description:
                    entry += f" - {fn.description}"
                lines.append(entry)

        lines += ["", "## Output format"]
        sources = list(data_sources or [])
        if sources:
            lines.append(f"First output one line: DATA_SOURCE: {'|'.join(sources)}")
        lines += [
            "Then output one JSON patch per line:",
            '{"op":"set","path":"/root","value":"<root-key>"}',
            '{"op":"add","path":"/elements/<key>","value":{"key":"<key>","type":"<Component>",'
            '"props":{...},"children":["<child-key>"]}}',
            "",
            "## Rules",
            "1. Set /root to the key of the root element first.",
            "2. Add every element under /elements/{key}.",
            "3. children lists contain child keys, never nested elements.",
            "4. Emit parents before their children.",
            "5. Every element needs key, type and props.",
            "6. Only use the components, actions and validation functions listed above.",
        ]
        return "\n".join(lines)


def _index(namespace: str, definitions: Iterable[Any]) -> dict[str, Any]:
    index: dict[str, Any] = {}
    for definition in definitions:
        if definition.name in index:
            raise DuplicateRegistrationError(namespace, definition.name)
        index[definition.name] = definition
    return index


def _schema_fields(schema: Any) -> str:
    if schema is None:
        return ""
    try:
        json_schema = _adapter(schema).json_schema()
    except (PydanticInvalidForJsonSchema, PydanticSchemaGenerationError) as e:
        logger.debug("No JSON schema for %r: %s", schema, e)
        return ""
    properties = json_schema.get("properties", {})
    required = set(json_schema.get("required", []))
    parts = []
    for name, prop in properties.items():
        if "enum" in prop:
            kind = "|".join(json.dumps(v) for v in prop["enum"])
        else:
            kind = prop.get("type", "any")
        parts.append(f"{name}{'' if name in required else '?'}: {kind}")
    return ", ".join(parts)


def _describe_component(definition: ComponentDefinition) -> str:
    entry = f"- {definition.name}"
    fields = _schema_fields(definition.props)
    if fields:
        entry += f": {{ {fields} }}"
    if definition.has_children:
        entry += " [has children]"
    if definition.description:
        entry += f" - {definition.description}"
    return entry


# =============================================================================
# Construction from mappings
# =============================================================================


def create_catalog(
    components: Mapping[str, Any] | None = None,
    actions: Mapping[str, Any] | None = None,
    validation_functions: Mapping[str, Any] | None = None,
) -> Catalog:
    """
    Build a Catalog from name -> definition mappings.

    Each value may be a definition object, a dict with ``props``/``params``,
    ``hasChildren`` and ``description`` keys, or a bare schema (a BaseModel
    subclass) used as the props/params schema.
    """
    return Catalog(
        components=[_component(n, v) for n, v in (components or {}).items()],
        actions=[_action(n, v) for n, v in (actions or {}).items()],
        validation_functions=[_validation_fn(n, v) for n, v in (validation_functions or {}).items()],
    )


def _component(name: str, raw: Any) -> ComponentDefinition:
    if isinstance(raw, ComponentDefinition):
        return raw
    if isinstance(raw, Mapping):
        return ComponentDefinition(
            name=name,
            props=raw.get("props"),
            has_children=bool(raw.get("hasChildren", raw.get("has_children", False))),
            description=raw.get("description"),
        )
    if raw is None or (isinstance(raw, type) and issubclass(raw, BaseModel)):
        return ComponentDefinition(name=name, props=raw)
    raise CatalogError(f"Invalid definition for component {name!r}: {raw!r}")


def _action(name: str, raw: Any) -> ActionDefinition:
    if isinstance(raw, ActionDefinition):
        return raw
    if isinstance(raw, Mapping):
        return ActionDefinition(name=name, params=raw.get("params"), description=raw.get("description"))
    if raw is None or (isinstance(raw, type) and issubclass(raw, BaseModel)):
        return ActionDefinition(name=name, params=raw)
    raise CatalogError(f"Invalid definition for action {name!r}: {raw!r}")


def _validation_fn(name: str, raw: Any) -> ValidationFunctionDefinition:
    if isinstance(raw, ValidationFunctionDefinition):
        return raw
    if isinstance(raw, Mapping):
        return ValidationFunctionDefinition(name=name, description=raw.get("description"))
    if raw is None or isinstance(raw, str):
        return ValidationFunctionDefinition(name=name, description=raw)
    raise CatalogError(f"Invalid definition for validation function {name!r}: {raw!r}")
