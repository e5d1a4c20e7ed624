"""Typed workflow parameters: validation and coercion to native values.

Parameters are edited as text and carry a declared type. Before every
execution attempt the ordered parameter list is validated and coerced into a
name -> native value map; nothing is memoized between attempts.

Coercion rules:
    STRING   -> unchanged
    NUMBER   -> numeric literal, or float("nan") when not numeric
    BOOLEAN  -> value.lower() == "true"
    OBJECT   -> strict JSON, falling back to the raw string
    ARRAY    -> strict JSON, falling back to comma-split trimmed strings
"""

from __future__ import annotations

import json
import math
import re
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import EmptyParameterSet, IncompleteParameter, ValidationError


class ParameterType(str, Enum):
    """Declared type of a parameter value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class Parameter(BaseModel):
    """One named workflow parameter, stored in its raw textual form.

    The id is assigned once at creation and is frozen; the remaining fields
    may be edited in place (validated on assignment).
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        frozen=True,
        description="Opaque unique token, never reused",
    )
    name: str = Field(default="", description="Parameter name sent to the workflow")
    value: str = Field(default="", description="Raw textual value")
    type: ParameterType = Field(default=ParameterType.STRING, description="Declared value type")

    @property
    def is_complete(self) -> bool:
        """True when both name and value are non-blank."""
        return bool(self.name.strip()) and bool(self.value.strip())


class ParameterSet:
    """Ordered, mutable collection of parameters owned by one caller.

    Example:
        params = ParameterSet()
        url = params.add("url", "https://example.test")
        params.update(url.id, type=ParameterType.STRING)
        params.remove(url.id)
    """

    def __init__(self, parameters: Iterable[Parameter] | None = None) -> None:
        self._parameters: list[Parameter] = list(parameters or [])

    def add(
        self,
        name: str = "",
        value: str = "",
        type: ParameterType = ParameterType.STRING,
    ) -> Parameter:
        parameter = Parameter(name=name, value=value, type=type)
        self._parameters.append(parameter)
        return parameter

    def update(self, parameter_id: str, **fields: Any) -> Parameter:
        """Edit fields of an existing parameter in place.

        Raises:
            KeyError: If no parameter has this id
            ValueError: If ``id`` is among the fields, or a value fails validation
        """
        if "id" in fields:
            raise ValueError("Parameter id cannot be changed")
        parameter = self.get(parameter_id)
        if parameter is None:
            raise KeyError(f"Parameter not found: {parameter_id}")
        for field_name, field_value in fields.items():
            setattr(parameter, field_name, field_value)
        return parameter

    def remove(self, parameter_id: str) -> None:
        self._parameters = [p for p in self._parameters if p.id != parameter_id]

    def get(self, parameter_id: str) -> Parameter | None:
        for parameter in self._parameters:
            if parameter.id == parameter_id:
                return parameter
        return None

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def __getitem__(self, index: int) -> Parameter:
        return self._parameters[index]

    def to_list(self) -> list[Parameter]:
        return list(self._parameters)


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class ParameterValidation:
    """Outcome of validate_parameters()."""

    error: ValidationError | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error else None

    def raise_if_invalid(self) -> None:
        if self.error is not None:
            raise self.error


def validate_parameters(parameters: Iterable[Parameter]) -> ParameterValidation:
    """Check that the list is non-empty and every entry has a name and a value."""
    items = list(parameters)
    if not items:
        return ParameterValidation(EmptyParameterSet())

    incomplete = [p.name for p in items if not p.is_complete]
    if incomplete:
        return ParameterValidation(IncompleteParameter(incomplete))

    return ParameterValidation()


# =============================================================================
# Coercion
# =============================================================================

_DECIMAL_LITERAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$", re.ASCII)
_PREFIXED_INTEGER = re.compile(r"^0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$")
_INFINITY = re.compile(r"^([+-]?)Infinity$")


def parse_number(text: str) -> int | float:
    """Parse a numeric literal the way JavaScript's Number() does.

    Non-numeric input yields float("nan") instead of raising.

    Examples:
        >>> parse_number("42")
        42
        >>> parse_number(" 1.5e3 ")
        1500
        >>> parse_number("0x1f")
        31
        >>> parse_number("abc")
        nan
    """
    literal = text.strip()
    if not literal:
        return 0

    if _PREFIXED_INTEGER.match(literal):
        return int(literal, 0)

    infinity = _INFINITY.match(literal)
    if infinity:
        return -math.inf if infinity.group(1) == "-" else math.inf

    if not _DECIMAL_LITERAL.match(literal):
        return math.nan

    number = float(literal)
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse_json_strict(text: str) -> Any:
    """json.loads that rejects NaN/Infinity literals.

    Raises:
        ValueError: If the text is not strict JSON
    """
    return json.loads(text, parse_constant=_reject_constant)


def coerce_value(value: str, type: ParameterType) -> Any:
    """Convert one raw textual value according to its declared type."""
    if type == ParameterType.NUMBER:
        return parse_number(value)
    if type == ParameterType.BOOLEAN:
        return value.lower() == "true"
    if type == ParameterType.OBJECT:
        try:
            return parse_json_strict(value)
        except ValueError:
            return value
    if type == ParameterType.ARRAY:
        try:
            return parse_json_strict(value)
        except ValueError:
            return [segment.strip() for segment in value.split(",")]
    return value


def coerce_parameters(parameters: Iterable[Parameter]) -> dict[str, Any]:
    """Build the name -> native value map; later duplicates overwrite earlier ones."""
    coerced: dict[str, Any] = {}
    for parameter in parameters:
        coerced[parameter.name] = coerce_value(parameter.value, parameter.type)
    return coerced


def encode_parameters(coerced: dict[str, Any]) -> str:
    """Human-readable ``name: value`` encoding used for history records."""
    parts = []
    for name, value in coerced.items():
        text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
        parts.append(f"{name}: {text}")
    return ", ".join(parts)


def to_wire_value(value: Any) -> Any:
    """Replace non-finite floats with None, recursively.

    Mirrors JSON.stringify, which serializes NaN and Infinity as null, so a
    NaN sentinel from NUMBER coercion never produces an invalid request body.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: to_wire_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_wire_value(item) for item in value]
    return value


__all__ = [
    "Parameter",
    "ParameterSet",
    "ParameterType",
    "ParameterValidation",
    "validate_parameters",
    "coerce_value",
    "coerce_parameters",
    "encode_parameters",
    "parse_number",
    "parse_json_strict",
    "to_wire_value",
]
