"""
SQLite-family catalog queries.

Shared by the embedded SQLite adapter and the remote libSQL adapter, which
speak the same dialect through different drivers. Only SQL text and pure
row-shaping functions live here; fetching is up to each adapter.

Table-valued pragma functions (pragma_table_info(?) etc.) take the table
name as a bound parameter, so no identifier is ever spliced into catalog SQL.
"""

from typing import Any, Dict, Iterable, List, Sequence, Tuple

from sqlstudio.adapters.schema import assemble_erd, group_columns
from sqlstudio.models import Erd, TableColumns

_USER_TABLES = "m.type = 'table' AND m.name NOT LIKE 'sqlite\\_%' ESCAPE '\\'"

TABLE_NAMES = f"SELECT m.name FROM sqlite_master m WHERE {_USER_TABLES} ORDER BY m.name"

OBJECT_COUNTS = f"""
SELECT
    (SELECT count(*) FROM sqlite_master m WHERE {_USER_TABLES}),
    (SELECT count(*) FROM sqlite_master WHERE type = 'index'),
    (SELECT count(*) FROM sqlite_master WHERE type = 'trigger'),
    (SELECT count(*) FROM sqlite_master WHERE type = 'view')
"""

COLUMN_COUNTS = f"""
SELECT m.name, count(*)
FROM sqlite_master m JOIN pragma_table_info(m.name) p
WHERE {_USER_TABLES}
GROUP BY m.name
"""

# A rowid-alias primary key has no entry in index_list but is an index
INDEX_COUNTS = f"""
SELECT m.name,
    (SELECT count(*) FROM pragma_index_list(m.name))
    + (EXISTS (SELECT 1 FROM pragma_table_info(m.name) WHERE pk > 0)
       AND NOT EXISTS (SELECT 1 FROM pragma_index_list(m.name) WHERE origin = 'pk'))
FROM sqlite_master m
WHERE {_USER_TABLES}
"""

TABLE_SQL = "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?"

TABLE_COLUMN_COUNT = "SELECT count(*) FROM pragma_table_info(?)"

TABLE_INDEX_COUNT = """
SELECT (SELECT count(*) FROM pragma_index_list(?1))
    + (EXISTS (SELECT 1 FROM pragma_table_info(?1) WHERE pk > 0)
       AND NOT EXISTS (SELECT 1 FROM pragma_index_list(?1) WHERE origin = 'pk'))
"""

TABLE_COLUMNS = "SELECT name FROM pragma_table_info(?) ORDER BY cid"

ALL_COLUMNS = f"""
SELECT m.name, p.name, p.type, p."notnull", p.pk
FROM sqlite_master m JOIN pragma_table_info(m.name) p
WHERE {_USER_TABLES}
ORDER BY m.name, p.cid
"""

ALL_FOREIGN_KEYS = f"""
SELECT m.name, f."from", f."table", f."to"
FROM sqlite_master m JOIN pragma_foreign_key_list(m.name) f
WHERE {_USER_TABLES}
ORDER BY m.name, f.id, f.seq
"""

DBSTAT_PROBE = "SELECT 1 FROM dbstat LIMIT 1"

DBSTAT_TABLE_SIZE = "SELECT SUM(pgsize) FROM dbstat WHERE name = ?"

DATABASE_SIZE = "SELECT page_count * page_size FROM pragma_page_count(), pragma_page_size()"

VERSION = "SELECT sqlite_version()"


def pairs(rows: Iterable[Sequence[Any]]) -> List[Tuple[str, int]]:
    return [(row[0], int(row[1] or 0)) for row in rows]


def autocomplete(column_rows: Iterable[Sequence[Any]]) -> List[TableColumns]:
    return group_columns(column_rows)


def build_erd(column_rows: Iterable[Sequence[Any]], fk_rows: Iterable[Sequence[Any]]) -> Erd:
    """
    Shape ALL_COLUMNS and ALL_FOREIGN_KEYS rows into an Erd.

    A foreign key declared without a target column points at the target's
    primary key.
    """
    column_rows = list(column_rows)
    primary_keys: Dict[str, List[str]] = {}
    for table, column, _, _, pk in sorted(column_rows, key=lambda row: (row[0], row[4])):
        if pk:
            primary_keys.setdefault(table, []).append(column)

    columns = [
        (table, column, data_type, not not_null and not pk)
        for table, column, data_type, not_null, pk in column_rows
    ]
    foreign_keys = []
    for table, from_column, to_table, to_column in fk_rows:
        if to_column is None:
            target_keys = primary_keys.get(to_table)
            if not target_keys:
                continue
            to_column = target_keys[0]
        foreign_keys.append((table, from_column, to_table, to_column))

    pk_pairs = {(table, column) for table, keys in primary_keys.items() for column in keys}
    return assemble_erd(columns, pk_pairs, foreign_keys)
