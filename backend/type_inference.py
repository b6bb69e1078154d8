"""Column type inference from a sample of uploaded rows.

The policy is fixed because existing generated tables were created with it:
look at the first ``SAMPLE_SIZE`` rows only, and the first value that is a
native boolean or number decides the column. Anything else stays TEXT. Later
rows are never checked against the decision.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

SAMPLE_SIZE = 10


class ColumnType(str, Enum):
    TEXT = "TEXT"
    NUMERIC = "NUMERIC"
    BOOLEAN = "BOOLEAN"


def _is_number(value: Any) -> bool:
    # bool is a subclass of int
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def infer_column_type(values: Iterable[Any]) -> ColumnType:
    """First boolean or number among ``values`` wins; otherwise TEXT."""
    for value in values:
        if isinstance(value, bool):
            return ColumnType.BOOLEAN
        if _is_number(value):
            return ColumnType.NUMERIC
    return ColumnType.TEXT


def infer_types(rows: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> dict[str, ColumnType]:
    sample = rows[:SAMPLE_SIZE]
    return {col: infer_column_type(row.get(col) for row in sample) for col in columns}
