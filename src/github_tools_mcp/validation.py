"""Argument validation.

validate() is the single boundary between untyped agent input and typed tool arguments.
It never performs I/O. Arguments absent from the input stay absent (unless the schema declares
a default), so "not provided" and "provided as []" remain distinguishable downstream.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .errors import (UNEXPECTED_ARGUMENT, ToolError, invalid_enum_value,
                     invalid_value, missing_argument, type_mismatch)
from .schemas import ARRAY, BOOLEAN, INTEGER, STRING, ArgumentSpec, ToolSchema

_EXPECTED = {
    STRING: "a string",
    INTEGER: "an integer",
    BOOLEAN: "a boolean",
    ARRAY: "an array of strings",
}


@dataclass(frozen=True, slots=True)
class ToolArguments(Mapping[str, Any]):
    """Validated arguments for one tool invocation."""

    tool: str
    values: Mapping[str, Any]

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def present(self, name: str) -> bool:
        """True if the caller supplied the argument (or a default applies)."""
        return name in self.values


def json_type_name(value: Any) -> str:
    """Name a raw JSON value's type the way JSON Schema does."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _check_kind(spec: ArgumentSpec, value: Any) -> Any:
    actual = json_type_name(value)
    if spec.kind == STRING and isinstance(value, str):
        return value
    # bool is an int subclass in Python but a distinct JSON type.
    if spec.kind == INTEGER and isinstance(value, int) and not isinstance(value, bool):
        return value
    if spec.kind == INTEGER and isinstance(value, float) and value.is_integer():
        return int(value)
    if spec.kind == BOOLEAN and isinstance(value, bool):
        return value
    if spec.kind == ARRAY and isinstance(value, list):
        for item in value:
            if not isinstance(item, str):
                raise type_mismatch(spec.name, expected=_EXPECTED[ARRAY], actual=f"array containing {json_type_name(item)}")
        return list(value)
    raise type_mismatch(spec.name, expected=_EXPECTED.get(spec.kind, spec.kind), actual=actual)


def _check_constraints(spec: ArgumentSpec, value: Any) -> None:
    if spec.enum is not None and value not in spec.enum:
        raise invalid_enum_value(spec.name, spec.enum)

    if spec.kind == STRING and spec.min_length is not None and len(value) < spec.min_length:
        raise invalid_value(spec.name, f"Argument '{spec.name}' must be at least {spec.min_length} characters")

    if spec.kind == INTEGER:
        if spec.minimum is not None and value < spec.minimum:
            raise invalid_value(spec.name, f"Argument '{spec.name}' must be >= {spec.minimum}")
        if spec.maximum is not None and value > spec.maximum:
            raise invalid_value(spec.name, f"Argument '{spec.name}' must be <= {spec.maximum}")


def validate(schema: ToolSchema, raw: Any) -> ToolArguments:
    """Validate raw arguments against a tool schema.

    Raises:
        ToolError: MissingArgument, TypeMismatch, InvalidEnumValue, InvalidValue or
            UnexpectedArgument, naming the offending argument.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise type_mismatch("arguments", expected="an object", actual=json_type_name(raw))

    extras = sorted(k for k in raw if schema.argument(k) is None)
    if extras:
        raise ToolError(
            code=UNEXPECTED_ARGUMENT,
            message=f"Unexpected arguments for {schema.name}: {', '.join(extras)}",
            details={"arguments": extras},
        )

    values: dict[str, Any] = {}
    for spec in schema.arguments:
        if spec.name not in raw or raw[spec.name] is None:
            if spec.required:
                raise missing_argument(spec.name)
            if spec.default is not None:
                values[spec.name] = spec.default
            continue

        value = _check_kind(spec, raw[spec.name])
        _check_constraints(spec, value)
        values[spec.name] = value

    return ToolArguments(tool=schema.name, values=MappingProxyType(values))
