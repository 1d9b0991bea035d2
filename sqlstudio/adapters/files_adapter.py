"""
Flat-file Adapters for SQL Studio

Parquet and CSV files are exposed as a single table: at open time an
in-memory DuckDB database creates a view named after the file's base name
over the file reader, and every operation runs against that view.

Sizes are the underlying file's size; there is no DDL, no index and no
relationship to report.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlstudio.adapters.base import DEFAULT_QUERY_TIMEOUT, ConnectionError
from sqlstudio.adapters.duckdb_adapter import DuckDBAdapter, duckdb, sql_string
from sqlstudio.adapters.formatting import format_size, ranked
from sqlstudio.adapters.schema import assemble_erd, is_yes
from sqlstudio.models import AutocompleteCatalog, Erd, Overview, TableColumns, TableDetail

logger = logging.getLogger(__name__)


class FileViewAdapter(DuckDBAdapter):
    """
    Base for single-file readers backed by a DuckDB view.

    Config options:
        path: Path to the data file (required)

    Subclasses set READER to the DuckDB table function that scans the file.
    """

    READER: str = ""

    def __init__(self, config: Optional[Dict[str, Any]] = None, query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)

        path = self.config.get("path") or self.config.get("database")
        if not path:
            raise ConnectionError(
                "Missing required config: path",
                engine=self.ENGINE
            )

        self.database = str(path)
        self.view_name = Path(self.database).stem

    def open(self) -> None:
        if not os.path.isfile(self.database):
            raise ConnectionError(
                f"File not found: {self.database}",
                engine=self.ENGINE
            )

        self._connection = duckdb.connect(database=":memory:")
        source = sql_string(str(Path(self.database).absolute()))
        self._connection.execute(
            f"CREATE VIEW {self.quote(self.view_name)} AS SELECT * FROM {self.READER}({source})"
        )
        logger.info(f"{self.ENGINE} file opened as view {self.view_name}: {self.database}")

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def list_tables(self) -> List[str]:
        return [self.view_name]

    def _describe_view(self) -> List[tuple]:
        """(column_name, column_type, null, ...) rows for the view."""
        return self.execute(f"DESCRIBE {self.quote(self.view_name)}").rows

    def table_columns(self, name: str) -> List[str]:
        return [row[0] for row in self._describe_view()]

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    def get_overview(self) -> Overview:
        file_size = os.path.getsize(self.database)
        column_count = len(self._describe_view())

        return Overview(
            file_name=os.path.basename(self.database),
            db_size=format_size(file_size),
            sqlite_version=self.scalar("SELECT version()"),
            tables=1,
            indexes=0,
            triggers=0,
            views=0,
            row_counts=ranked([(self.view_name, self.count_rows(self.view_name))]),
            column_counts=ranked([(self.view_name, column_count)]),
            index_counts=ranked([(self.view_name, 0)]),
            **self._file_times()
        )

    def get_table(self, name: str) -> TableDetail:
        self.ensure_table(name)
        return TableDetail(
            name=name,
            sql=None,
            row_count=self.count_rows(name),
            column_count=len(self._describe_view()),
            index_count=0,
            table_size=format_size(os.path.getsize(self.database)),
        )

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=[
            TableColumns(table_name=self.view_name, columns=self.table_columns(self.view_name))
        ])

    def get_erd(self) -> Erd:
        columns = [
            (self.view_name, row[0], row[1], is_yes(row[2]))
            for row in self._describe_view()
        ]
        return assemble_erd(columns, primary_keys=set())


class ParquetAdapter(FileViewAdapter):
    """
    Columnar-file reader for Apache Parquet files.

    Example:
        adapter = ParquetAdapter({"path": "events.parquet"})
        await adapter.connect()
        data = await adapter.table_data("events", 1)
    """

    ENGINE = "parquet"
    READER = "read_parquet"


class CsvAdapter(FileViewAdapter):
    """
    Flat-file reader for delimited text; dialect and types are sniffed.

    Example:
        adapter = CsvAdapter({"path": "users.csv"})
        await adapter.connect()
    """

    ENGINE = "csv"
    READER = "read_csv_auto"
