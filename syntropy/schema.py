"""Attribute schemas for resources and data sources.

Each resource declares its attributes with a type and required / optional /
computed / requires_replace markers. The schema is used to validate and
coerce configuration, to tell which changes force a replacement, and to
document resource types on the command line.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from syntropy.exceptions import SchemaValidationError
from syntropy.models import to_int

STRING = "string"
INT = "int"
BOOL = "bool"
LIST = "list"
SET = "set"
OBJECT = "object"
LIST_OBJECT = "list_object"

Validator = Callable[[Any], Optional[str]]


@dataclass
class Attribute:
    """
    One schema attribute.

    Args:
        type: One of STRING, INT, BOOL, LIST, SET, OBJECT, LIST_OBJECT
        description: Human readable description
        required: Must be set in configuration
        optional: May be set in configuration
        computed: Filled in by the provider
        sensitive: Marked sensitive in the published schema
        requires_replace: A change forces delete and re-create
        elem_type: Element type for LIST / SET
        attributes: Nested attributes for OBJECT / LIST_OBJECT
        validators: Callables returning an error message or None
    """

    type: str
    description: str = ""
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False
    requires_replace: bool = False
    elem_type: Optional[str] = None
    attributes: Dict[str, "Attribute"] = field(default_factory=dict)
    validators: List[Validator] = field(default_factory=list)

    @property
    def configurable(self) -> bool:
        return self.required or self.optional

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type, "description": self.description}
        for flag in ("required", "optional", "computed", "sensitive", "requires_replace"):
            if getattr(self, flag):
                out[flag] = True
        if self.elem_type:
            out["elem_type"] = self.elem_type
        if self.attributes:
            out["attributes"] = {k: v.to_dict() for k, v in self.attributes.items()}
        return out


@dataclass
class Schema:
    description: str
    attributes: Dict[str, Attribute]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "attributes": {k: v.to_dict() for k, v in self.attributes.items()},
        }


def _coerce_scalar(kind: str, value: Any, path: str) -> Any:
    if kind == STRING:
        if isinstance(value, (dict, list)):
            raise SchemaValidationError("Expected a string", context={"attribute": path})
        return str(value)
    if kind == INT:
        try:
            return to_int(value)
        except SchemaValidationError as e:
            raise SchemaValidationError(
                "Expected an integer", context={"attribute": path, "value": value}
            ) from e
    if kind == BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise SchemaValidationError("Expected a bool", context={"attribute": path, "value": value})
    raise SchemaValidationError(f"Unsupported scalar type {kind}", context={"attribute": path})


def _unwrap_block(value: Any) -> Any:
    # HCL blocks (`filter { ... }`) parse as a one element list
    if isinstance(value, list) and len(value) == 1 and isinstance(value[0], dict):
        return value[0]
    return value


def _coerce(attr: Attribute, value: Any, path: str) -> Any:
    if value is None:
        return None
    if attr.type in (STRING, INT, BOOL):
        return _coerce_scalar(attr.type, value, path)
    if attr.type in (LIST, SET):
        if not isinstance(value, (list, tuple, set)):
            raise SchemaValidationError("Expected a list", context={"attribute": path})
        items = [_coerce_scalar(attr.elem_type or STRING, v, path) for v in value]
        if attr.type == SET:
            deduped: List[Any] = []
            for item in items:
                if item not in deduped:
                    deduped.append(item)
            items = deduped
        return items
    if attr.type == OBJECT:
        value = _unwrap_block(value)
        if not isinstance(value, dict):
            raise SchemaValidationError("Expected an object", context={"attribute": path})
        return _coerce_object(attr.attributes, value, path)
    if attr.type == LIST_OBJECT:
        if isinstance(value, dict):
            value = [value]
        if not isinstance(value, list):
            raise SchemaValidationError("Expected a list of objects", context={"attribute": path})
        out = []
        for i, item in enumerate(value):
            if not isinstance(item, dict):
                raise SchemaValidationError("Expected an object", context={"attribute": f"{path}[{i}]"})
            out.append(_coerce_object(attr.attributes, item, f"{path}[{i}]"))
        return out
    raise SchemaValidationError(f"Unsupported type {attr.type}", context={"attribute": path})


def _coerce_object(attributes: Dict[str, Attribute], config: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    unknown = sorted(k for k in config if k not in attributes)
    if unknown:
        path = f"{prefix}.{unknown[0]}" if prefix else unknown[0]
        raise SchemaValidationError("Unsupported attribute", context={"attribute": path})
    out: Dict[str, Any] = {}
    for name, attr in attributes.items():
        path = f"{prefix}.{name}" if prefix else name
        value = config.get(name)
        if value is not None and not attr.configurable:
            raise SchemaValidationError(
                "Attribute is computed and cannot be configured", context={"attribute": path}
            )
        if value is None and attr.required:
            raise SchemaValidationError("Missing required attribute", context={"attribute": path})
        value = _coerce(attr, value, path)
        if value is not None:
            for validator in attr.validators:
                problem = validator(value)
                if problem:
                    raise SchemaValidationError(problem, context={"attribute": path})
        out[name] = value
    return out


def validate_config(schema: Schema, config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and coerce configuration against a schema.

    Args:
        schema: Resource or data source schema
        config: Raw configuration attributes

    Returns:
        Coerced attributes; every schema attribute is present (None if unset)

    Raises:
        SchemaValidationError: On unknown, missing, computed-only or mistyped attributes
    """
    return _coerce_object(schema.attributes, dict(config or {}))


def _normalise(attr: Attribute, value: Any) -> Any:
    if attr.type in (LIST, SET, LIST_OBJECT) and value is None:
        return []
    if attr.type == SET:
        return sorted(value, key=repr)
    return value


def changed_attributes(schema: Schema, config: Dict[str, Any], state: Dict[str, Any]) -> List[str]:
    """Configurable attributes whose configured value differs from state.

    Optional attributes that are unset in configuration keep their state
    value when they are also computed.
    """
    changed = []
    for name, attr in schema.attributes.items():
        if not attr.configurable:
            continue
        wanted = config.get(name)
        if wanted is None and attr.computed:
            continue
        if _normalise(attr, wanted) != _normalise(attr, state.get(name)):
            changed.append(name)
    return changed


def replace_triggers(schema: Schema, config: Dict[str, Any], state: Dict[str, Any]) -> List[str]:
    """Changed attributes that force the resource to be replaced."""
    return [
        name
        for name in changed_attributes(schema, config, state)
        if schema.attributes[name].requires_replace
    ]
