# engine/fetch_schema.py
from __future__ import annotations
import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import List, Tuple

from core.ports import Transport
from engine.sql import bt
from modelgen.meta_models import ColumnMetadata, FetchedSchema, FetchedTable

logger = logging.getLogger(__name__)


async def fetch_table_names(transport: Transport) -> Tuple[str, List[str]]:
    """(database name, base table names). Views are skipped."""
    result = await transport.execute("SHOW FULL TABLES", [])
    if result.fields:
        name_key = result.fields[0]
    elif result.rows:
        name_key = next(iter(result.rows[0]))
    else:
        name_key = ""
    database_name = re.sub(r"^tables_in_", "", name_key, flags=re.I)

    names: List[str] = []
    for row in result.rows:
        values = list(row.values())
        if len(values) < 2 or values[1] != "BASE TABLE":
            continue
        names.append(values[0])
    return database_name, names


async def fetch_create_table_sql(transport: Transport, table_name: str) -> str:
    result = await transport.execute(f"SHOW CREATE TABLE {bt(table_name).sql}", [])
    return result.rows[0]["Create Table"] if result.rows else ""


async def fetch_table_columns(transport: Transport, table_name: str) -> List[ColumnMetadata]:
    result = await transport.execute(f"SHOW FULL COLUMNS FROM {bt(table_name).sql}", [])
    return [ColumnMetadata.model_validate(row) for row in result.rows]


async def fetch_table_indexes(transport: Transport, table_name: str) -> List[dict]:
    result = await transport.execute(f"SHOW INDEXES FROM {bt(table_name).sql}", [])
    return [dict(row) for row in result.rows]


async def fetch_table(transport: Transport, table_name: str) -> FetchedTable:
    columns, indexes, create_sql = await asyncio.gather(
        fetch_table_columns(transport, table_name),
        fetch_table_indexes(transport, table_name),
        fetch_create_table_sql(transport, table_name),
    )
    return FetchedTable(name=table_name, columns=columns, indexes=indexes, create_sql=create_sql)


async def fetch_schema(transport: Transport) -> FetchedSchema:
    logger.info("Fetching schema...")
    database_name, table_names = await fetch_table_names(transport)
    tables = await asyncio.gather(*(fetch_table(transport, t) for t in table_names))
    logger.info("Schema fetched: %s (%d tables)", database_name, len(tables))
    return FetchedSchema(
        database_name=database_name,
        fetched=datetime.now(timezone.utc),
        tables=list(tables),
    )
