"""
Report parameters: type tags, case-insensitive maps and the request builder.

Callers describe report parameters either as an explicit ``ParameterRequest``
(preferred) or as a flat list of ``(name, value, type)`` triples, which
``normalize_parameters`` validates into a ``ParameterMap``.

Manifesto:
    - **Explicit requests:** A builder validates each parameter as it is
      added instead of relying on positional conventions
    - **Case-insensitive names:** ``MNT`` and ``mnt`` are the same parameter
    - **Duplicates are errors:** There is no "first wins" policy

Examples:
    >>> request = (
    ...     ParameterRequest.builder()
    ...     .add("mnt", 275, ParamType.INT32)
    ...     .add("sugts", "4", ParamType.STRING)
    ...     .build()
    ... )
    >>> request.parameters["MNT"].value
    275

Tags:
    parameters, validation, builder, reportgen

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import IntEnum
from typing import Any

from reportgen.core.errors import (
    DuplicateParameterError,
    ParameterStructureError,
    ParameterTypeError,
)


class ParamType(IntEnum):
    """Parameter type tags. Numbering follows the ADO.NET ``DbType`` enum."""

    ANSI_STRING = 0
    BINARY = 1
    BYTE = 2
    BOOLEAN = 3
    CURRENCY = 4
    DATE = 5
    DATETIME = 6
    DECIMAL = 7
    DOUBLE = 8
    GUID = 9
    INT16 = 10
    INT32 = 11
    INT64 = 12
    OBJECT = 13
    SBYTE = 14
    SINGLE = 15
    STRING = 16
    TIME = 17
    UINT16 = 18
    UINT32 = 19
    UINT64 = 20
    VAR_NUMERIC = 21
    ANSI_STRING_FIXED_LENGTH = 22
    STRING_FIXED_LENGTH = 23
    XML = 25
    DATETIME2 = 26
    DATETIME_OFFSET = 27

    @property
    def is_textual(self) -> bool:
        return self in _TEXTUAL

    @property
    def is_integral(self) -> bool:
        return self in _INTEGRAL

    @property
    def is_numeric(self) -> bool:
        return self in _INTEGRAL or self in _FRACTIONAL

    @property
    def is_temporal(self) -> bool:
        return self in _TEMPORAL


_TEXTUAL = frozenset({
    ParamType.ANSI_STRING,
    ParamType.STRING,
    ParamType.ANSI_STRING_FIXED_LENGTH,
    ParamType.STRING_FIXED_LENGTH,
    ParamType.XML,
})
_INTEGRAL = frozenset({
    ParamType.BYTE,
    ParamType.SBYTE,
    ParamType.INT16,
    ParamType.INT32,
    ParamType.INT64,
    ParamType.UINT16,
    ParamType.UINT32,
    ParamType.UINT64,
})
_FRACTIONAL = frozenset({
    ParamType.CURRENCY,
    ParamType.DECIMAL,
    ParamType.DOUBLE,
    ParamType.SINGLE,
    ParamType.VAR_NUMERIC,
})
_TEMPORAL = frozenset({
    ParamType.DATE,
    ParamType.DATETIME,
    ParamType.DATETIME2,
    ParamType.DATETIME_OFFSET,
    ParamType.TIME,
})


def coerce_param_type(value: Any, *, name: str | None = None) -> ParamType:
    """
    Convert a type tag to ``ParamType``.

    ``ParamType`` members pass through. Anything else goes through ``int()``
    and must land on a defined member.

    Raises:
        ParameterTypeError: If the value is not convertible.
    """
    if isinstance(value, ParamType):
        return value
    try:
        return ParamType(int(value))
    except (TypeError, ValueError) as e:
        raise ParameterTypeError(
            f"Invalid parameter type {value!r}" + (f" for '{name}'" if name else ""),
            parameter=name,
            type_value=value,
            cause=e,
        ) from e


def sql_type_to_param_type(sql_type: str | None) -> ParamType:
    """Map a declared SQL type name (``nvarchar``, ``bigint`` ...) to ``ParamType``."""
    t = (sql_type or "").strip().lower()
    if "bigint" in t:
        return ParamType.INT64
    if "smallint" in t:
        return ParamType.INT16
    if "tinyint" in t:
        return ParamType.BYTE
    if "int" in t:
        return ParamType.INT32
    if t == "bit" or t == "boolean":
        return ParamType.BOOLEAN
    if "money" in t:
        return ParamType.CURRENCY
    if "decimal" in t or "numeric" in t:
        return ParamType.DECIMAL
    if "float" in t:
        return ParamType.DOUBLE
    if "real" in t:
        return ParamType.SINGLE
    if "datetimeoffset" in t:
        return ParamType.DATETIME_OFFSET
    if "datetime2" in t:
        return ParamType.DATETIME2
    if "datetime" in t:
        return ParamType.DATETIME
    if "date" in t:
        return ParamType.DATE
    if "time" in t:
        return ParamType.TIME
    if "uniqueidentifier" in t:
        return ParamType.GUID
    if "xml" in t:
        return ParamType.XML
    if t.startswith("n") and ("char" in t or "text" in t):
        return ParamType.STRING
    if "char" in t or "text" in t:
        return ParamType.ANSI_STRING
    return ParamType.STRING


def default_for(param_type: ParamType, nullable: bool = False) -> Any:
    """
    Synthesized value for a declared parameter the caller did not supply.

    Textual → ``""``; numeric/boolean → zero/False unless nullable;
    date/time and anything else → ``None``.
    """
    if param_type.is_textual:
        return ""
    if nullable:
        return None
    if param_type == ParamType.BOOLEAN:
        return False
    if param_type.is_integral:
        return 0
    if param_type in (ParamType.DECIMAL, ParamType.CURRENCY, ParamType.VAR_NUMERIC):
        return Decimal("0")
    if param_type.is_numeric:
        return 0.0
    return None


@dataclass(frozen=True)
class Parameter:
    """A named, typed parameter value."""

    name: str
    value: Any
    type: ParamType = ParamType.STRING

    @property
    def is_null(self) -> bool:
        return self.value is None


class ParameterMap(Mapping[str, Parameter]):
    """
    Case-insensitive mapping of parameter name → ``Parameter``.

    Iteration yields the names as first supplied.
    """

    def __init__(self, parameters: Sequence[Parameter] = ()):
        self._items: dict[str, Parameter] = {}
        for parameter in parameters:
            self.add(parameter.name, parameter.value, parameter.type)

    @staticmethod
    def _key(name: str) -> str:
        return name.casefold()

    def add(self, name: str, value: Any, param_type: ParamType = ParamType.STRING) -> Parameter:
        """Add a parameter. A name already present raises ``DuplicateParameterError``."""
        if not name or not name.strip():
            raise ParameterStructureError("Parameter name must not be empty")
        key = self._key(name)
        if key in self._items:
            raise DuplicateParameterError(f"Duplicate parameter: {name}", parameter=name)
        parameter = Parameter(name=name, value=value, type=param_type)
        self._items[key] = parameter
        return parameter

    def add_if_absent(self, name: str, value: Any, param_type: ParamType = ParamType.STRING) -> bool:
        """Add only when ``name`` is absent. Returns True when it was added."""
        if name in self:
            return False
        self.add(name, value, param_type)
        return True

    def value(self, name: str, default: Any = None) -> Any:
        parameter = self._items.get(self._key(name))
        return default if parameter is None else parameter.value

    def values_by_name(self) -> dict[str, Any]:
        """Plain ``{name: value}`` dict for data-source calls."""
        return {p.name: p.value for p in self._items.values()}

    def copy(self) -> ParameterMap:
        return ParameterMap(list(self._items.values()))

    def __getitem__(self, name: str) -> Parameter:
        return self._items[self._key(name)]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._items

    def __iter__(self) -> Iterator[str]:
        return (p.name for p in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        inner = ", ".join(f"{p.name}={p.value!r}" for p in self._items.values())
        return f"ParameterMap({inner})"


def normalize_parameters(raw: Sequence[Any]) -> ParameterMap:
    """
    Validate a flat ``[name, value, type, name, value, type, ...]`` list.

    Raises:
        ParameterStructureError: Length not a multiple of 3, or empty name.
        ParameterTypeError: Type tag not convertible to ``ParamType``.
        DuplicateParameterError: Same name twice (case-insensitive).
    """
    if raw is None:
        return ParameterMap()
    if len(raw) % 3 != 0:
        raise ParameterStructureError(
            f"Parameter list must contain (name, value, type) triples; got {len(raw)} items"
        )
    result = ParameterMap()
    for i in range(0, len(raw), 3):
        name, value, type_value = raw[i], raw[i + 1], raw[i + 2]
        if name is None or not str(name).strip():
            raise ParameterStructureError(f"Parameter name at position {i} is empty")
        name = str(name)
        result.add(name, value, coerce_param_type(type_value, name=name))
    return result


@dataclass(frozen=True)
class ParameterRequest:
    """Validated caller input for a report run."""

    parameters: ParameterMap

    @classmethod
    def builder(cls) -> ParameterRequestBuilder:
        return ParameterRequestBuilder()

    @classmethod
    def from_triples(cls, raw: Sequence[Any]) -> ParameterRequest:
        return cls(parameters=normalize_parameters(raw))


class ParameterRequestBuilder:
    """Fluent builder for ``ParameterRequest``. Validation happens on ``add``."""

    def __init__(self) -> None:
        self._parameters = ParameterMap()

    def add(self, name: str, value: Any, param_type: ParamType | int = ParamType.STRING) -> ParameterRequestBuilder:
        self._parameters.add(name, value, coerce_param_type(param_type, name=name))
        return self

    def build(self) -> ParameterRequest:
        return ParameterRequest(parameters=self._parameters.copy())
