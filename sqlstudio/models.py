"""
Response models for SQL Studio.

These pydantic models are the JSON wire format shared by every adapter.
Adapters build them directly; the HTTP layer returns them unchanged.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# OVERVIEW & TABLES
# =============================================================================

class Count(BaseModel):
    """A (table name, integer) pair used by every ranked listing."""
    name: str
    count: int


class Overview(BaseModel):
    """Database-wide summary."""
    file_name: str
    db_size: str
    sqlite_version: Optional[str] = Field(
        default=None,
        description="Engine version string (name kept for UI compatibility)"
    )
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    tables: int
    indexes: int
    triggers: int
    views: int
    row_counts: List[Count]
    column_counts: List[Count]
    index_counts: List[Count]


class Tables(BaseModel):
    tables: List[Count]


class TableDetail(BaseModel):
    name: str
    sql: Optional[str] = None
    row_count: int
    column_count: int
    index_count: int
    table_size: str


# =============================================================================
# ROW DATA
# =============================================================================

class TableData(BaseModel):
    """One page of table contents. Rows hold canonical values."""
    columns: List[str]
    rows: List[List[Any]]


class QueryResult(BaseModel):
    columns: List[str]
    rows: List[List[Any]]


class QueryRequest(BaseModel):
    query: str


# =============================================================================
# AUTOCOMPLETE & ERD
# =============================================================================

class TableColumns(BaseModel):
    table_name: str
    columns: List[str]


class AutocompleteCatalog(BaseModel):
    tables: List[TableColumns]


class ErdColumn(BaseModel):
    name: str
    data_type: str
    nullable: bool
    is_primary_key: bool


class ErdTable(BaseModel):
    name: str
    columns: List[ErdColumn]


class ErdRelationship(BaseModel):
    from_table: str
    from_column: str
    to_table: str
    to_column: str


class Erd(BaseModel):
    tables: List[ErdTable]
    relationships: List[ErdRelationship]


class Metadata(BaseModel):
    version: str
    engine: str
    can_shutdown: bool = False
