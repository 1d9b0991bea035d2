"""
Studio API Endpoints

Each endpoint resolves to one capability operation on the Dispatcher.
Adapter errors propagate to the handlers installed by errors.py.
"""

from fastapi import APIRouter, Depends, Query

from sqlstudio import __version__
from sqlstudio.adapters.factory import Dispatcher
from sqlstudio.core.dependencies import get_dispatcher
from sqlstudio.models import (
    AutocompleteCatalog,
    Erd,
    Metadata,
    Overview,
    QueryRequest,
    QueryResult,
    TableData,
    TableDetail,
    Tables,
)

router = APIRouter(tags=["Studio"])


@router.get("/overview", response_model=Overview)
async def get_overview(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Database-wide counts, sizes and the three ranked lists."""
    return await dispatcher.overview()


@router.get("/tables", response_model=Tables)
async def get_tables(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """All tables with their row counts, smallest first."""
    return await dispatcher.tables()


@router.get("/tables/{name}", response_model=TableDetail)
async def get_table(name: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    return await dispatcher.table(name)


@router.get("/tables/{name}/data", response_model=TableData)
async def get_table_data(
    name: str,
    page: int = Query(default=1, ge=1),
    dispatcher: Dispatcher = Depends(get_dispatcher)
):
    """
    One page of table rows.

    Pages are 50 rows, 1-based, ordered by the table's first column. A page
    past the end is empty.
    """
    return await dispatcher.table_data(name, page)


@router.get("/autocomplete", response_model=AutocompleteCatalog)
async def get_autocomplete(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return await dispatcher.tables_with_columns()


@router.post("/query", response_model=QueryResult)
async def run_query(body: QueryRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """
    Run caller SQL verbatim.

    There is no statement whitelist: the studio is an operator tool pointed at
    the operator's own database. Runs are bounded by the query timeout.
    """
    return await dispatcher.query(body.query)


@router.get("/erd", response_model=Erd)
async def get_erd(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return await dispatcher.erd()


@router.get("/metadata", response_model=Metadata)
async def get_metadata(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return Metadata(version=__version__, engine=dispatcher.engine, can_shutdown=False)
