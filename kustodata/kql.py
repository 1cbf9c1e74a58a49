"""Building KQL statements and query parameters with safe quoting."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from kustodata.kql_format import (
    KustoType,
    KustoValue,
    quote_string,
    quote_value,
    requires_quoting,
)

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _dynamic_from_object(obj: Any) -> bytes:
    text = json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    for char, escaped in _JSON_ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def normalize_name(name: str) -> str:
    """Bracket-quote ``name`` if it is not a plain identifier."""
    if name == "" or not requires_quoting(name):
        return name
    return "[" + quote_string(name, False) + "]"


class Builder:
    """Accumulates a KQL statement from literals, identifiers and typed values."""

    def __init__(self, value: str = "") -> None:
        self._parts: list[str] = []
        self.add_literal(value)

    @classmethod
    def from_builder(cls, builder: Builder) -> Builder:
        """Start a new builder holding a copy of another builder's text."""
        return cls(str(builder))

    def __str__(self) -> str:
        return "".join(self._parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"

    def _append(self, text: str) -> Builder:
        self._parts.append(text)
        return self

    def add_value(self, value: KustoValue) -> Builder:
        """Append a typed value as a KQL literal."""
        return self._append(quote_value(value))

    def add_unsafe(self, value: str) -> Builder:
        """Append text as is, with no validation or escaping."""
        return self._append(value)

    def add_literal(self, value: str) -> Builder:
        """Append literal statement text."""
        return self._append(str(value))

    def add_bool(self, value: bool) -> Builder:
        return self.add_value(KustoValue(KustoType.BOOL, value))

    def add_datetime(self, value: datetime) -> Builder:
        return self.add_value(KustoValue(KustoType.DATETIME, value))

    def add_dynamic(self, value: Any) -> Builder:
        """Append an object serialized to JSON as a dynamic literal."""
        return self.add_value(KustoValue(KustoType.DYNAMIC, _dynamic_from_object(value)))

    def add_serialized_dynamic(self, value: bytes) -> Builder:
        """Append already serialized JSON as a dynamic literal."""
        return self.add_value(KustoValue(KustoType.DYNAMIC, value))

    def add_guid(self, value: uuid.UUID) -> Builder:
        return self.add_value(KustoValue(KustoType.GUID, value))

    def add_int(self, value: int) -> Builder:
        return self.add_value(KustoValue(KustoType.INT, value))

    def add_long(self, value: int) -> Builder:
        return self.add_value(KustoValue(KustoType.LONG, value))

    def add_real(self, value: float) -> Builder:
        return self.add_value(KustoValue(KustoType.REAL, value))

    def add_string(self, value: str) -> Builder:
        return self.add_value(KustoValue(KustoType.STRING, value))

    def add_timespan(self, value: timedelta) -> Builder:
        return self.add_value(KustoValue(KustoType.TIMESPAN, value))

    def add_decimal(self, value: Decimal) -> Builder:
        return self.add_value(KustoValue(KustoType.DECIMAL, value))

    def add_database(self, database: str) -> Builder:
        """Append a ``database("name")`` reference."""
        return self._append(f"database({quote_string(database, False)})")

    def add_table(self, table: str) -> Builder:
        return self._append(normalize_name(table))

    def add_keyword(self, keyword: str) -> Builder:
        """Append a keyword; raises ValueError if it would need escaping."""
        if requires_quoting(keyword):
            raise ValueError(
                "Invalid keyword. Cannot add a keyword that requires escaping."
            )
        return self._append(keyword)

    def add_column(self, column: str) -> Builder:
        return self._append(normalize_name(column))

    def add_function(self, function: str) -> Builder:
        return self._append(normalize_name(function))

    def get_parameters(self) -> dict[str, str]:
        """Return inline parameters; a plain builder has none, so this raises ValueError."""
        if not self.supports_inline_parameters():
            raise ValueError("this option does not support Parameters")
        return {}

    def supports_inline_parameters(self) -> bool:
        return False

    def reset(self) -> None:
        """Clear the accumulated text."""
        self._parts.clear()


class Parameters:
    """Named, typed query parameters and their declaration statement."""

    def __init__(self) -> None:
        self._parameters: dict[str, KustoValue] = {}

    def __len__(self) -> int:
        return len(self._parameters)

    def add_value(self, key: str, value: KustoValue) -> Parameters:
        """Set a parameter; raises ValueError if ``key`` is not a plain identifier."""
        if requires_quoting(key):
            raise ValueError(
                "Invalid parameter values. make sure to adhere to KQL entity name "
                "conventions and escaping rules."
            )
        self._parameters[key] = value
        return self

    def add_bool(self, key: str, value: bool) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.BOOL, value))

    def add_datetime(self, key: str, value: datetime) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.DATETIME, value))

    def add_dynamic(self, key: str, value: Any) -> Parameters:
        return self.add_value(
            key, KustoValue(KustoType.DYNAMIC, _dynamic_from_object(value))
        )

    def add_serialized_dynamic(self, key: str, value: bytes) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.DYNAMIC, value))

    def add_guid(self, key: str, value: uuid.UUID) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.GUID, value))

    def add_int(self, key: str, value: int) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.INT, value))

    def add_long(self, key: str, value: int) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.LONG, value))

    def add_real(self, key: str, value: float) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.REAL, value))

    def add_string(self, key: str, value: str) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.STRING, value))

    def add_timespan(self, key: str, value: timedelta) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.TIMESPAN, value))

    def add_decimal(self, key: str, value: Decimal) -> Parameters:
        return self.add_value(key, KustoValue(KustoType.DECIMAL, value))

    def to_declaration_string(self) -> str:
        """Return ``declare query_parameters(...);``, or "" when empty."""
        if not self._parameters:
            return ""
        declarations = ", ".join(
            f"{key}:{value.type}" for key, value in self._parameters.items()
        )
        return f"declare query_parameters({declarations});"

    def to_parameter_collection(self) -> dict[str, str]:
        """Map each parameter name to its value as a KQL literal."""
        return {key: quote_value(value) for key, value in self._parameters.items()}

    def reset(self) -> None:
        """Remove all parameters."""
        self._parameters = {}