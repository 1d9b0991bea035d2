"""
Schema shaping shared by all adapters.

Adapters fetch catalog rows in their own dialect; these helpers turn the
rows into the autocomplete listing, zero-filled counts and the ERD.
"""

from typing import Any, Dict, Iterable, List, Sequence, Set, Tuple

from sqlstudio.adapters.formatting import by_name_length
from sqlstudio.models import Erd, ErdColumn, ErdRelationship, ErdTable, TableColumns


def fill_counts(tables: Iterable[str], rows: Iterable[Sequence[Any]]) -> List[Tuple[str, int]]:
    """Pair every table with its count from (name, count) rows, 0 when absent."""
    counts = {row[0]: int(row[1] or 0) for row in rows}
    return [(name, counts.get(name, 0)) for name in tables]


def group_columns(rows: Iterable[Sequence[Any]]) -> List[TableColumns]:
    """Group ordered (table, column, ...) rows into the autocomplete listing."""
    grouped: Dict[str, List[str]] = {}
    for row in rows:
        grouped.setdefault(row[0], []).append(row[1])
    return [TableColumns(table_name=name, columns=grouped[name]) for name in by_name_length(grouped)]


def assemble_erd(
    columns: Iterable[Sequence[Any]],
    primary_keys: Set[Tuple[str, str]],
    foreign_keys: Iterable[Sequence[Any]] = ()
) -> Erd:
    """
    Build an Erd.

    Args:
        columns: Ordered (table, column, data_type, nullable) rows
        primary_keys: (table, column) pairs that belong to a primary key
        foreign_keys: (from_table, from_column, to_table, to_column) rows

    Relationships whose tables are not both in the column listing are
    dropped, so every relationship endpoint names a listed table.
    """
    tables: Dict[str, List[ErdColumn]] = {}
    for table, column, data_type, nullable in columns:
        tables.setdefault(table, []).append(ErdColumn(
            name=column,
            data_type=str(data_type or ""),
            nullable=bool(nullable),
            is_primary_key=(table, column) in primary_keys,
        ))

    relationships = []
    seen = set()
    for from_table, from_column, to_table, to_column in foreign_keys:
        key = (from_table, from_column, to_table, to_column)
        if from_table not in tables or to_table not in tables or key in seen:
            continue
        seen.add(key)
        relationships.append(ErdRelationship(
            from_table=from_table,
            from_column=from_column,
            to_table=to_table,
            to_column=to_column,
        ))

    return Erd(
        tables=[ErdTable(name=name, columns=cols) for name, cols in tables.items()],
        relationships=relationships,
    )


def is_yes(value: Any) -> bool:
    """information_schema flags come back as 'YES'/'NO' strings."""
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode()
    if isinstance(value, str):
        return value.upper() in ("YES", "Y", "TRUE", "1")
    return bool(value)
