# adapters/sqlalchemy_transport.py
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from core.errors import EngineError
from core.ports import ExecutedQuery
from core.settings import get_settings

logger = logging.getLogger(__name__)

ASYNC_DRIVERS = {"mysql": "mysql+aiomysql", "sqlite": "sqlite+aiosqlite"}


def to_named_params(sql_text: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Rewrite `?` placeholders as :p0, :p1, ... for sqlalchemy.text().
    Quoted strings and identifiers are left alone; bare colons are escaped so
    text() does not take them for bind names.
    """
    out: List[str] = []
    binds: Dict[str, Any] = {}
    quote: Optional[str] = None
    i = 0
    while i < len(sql_text):
        ch = sql_text[i]
        if quote:
            if ch == "\\" and quote != "`" and i + 1 < len(sql_text):
                out.append(sql_text[i:i + 2].replace(":", "\\:"))
                i += 2
                continue
            if ch == quote:
                quote = None
            out.append("\\:" if ch == ":" else ch)
        elif ch in ("'", '"', "`"):
            quote = ch
            out.append(ch)
        elif ch == "?":
            n = len(binds)
            if n >= len(params):
                raise ValueError(f"Statement has more placeholders than the {len(params)} parameters given.")
            binds[f"p{n}"] = params[n]
            out.append(f":p{n}")
        elif ch == ":":
            out.append("\\:")
        else:
            out.append(ch)
        i += 1
    if len(binds) != len(params):
        raise ValueError(f"Statement has {len(binds)} placeholders but {len(params)} parameters were given.")
    return "".join(out), binds


def _to_executed_query(result) -> ExecutedQuery:
    if result.returns_rows:
        return ExecutedQuery(
            rows=[dict(m) for m in result.mappings().all()],
            fields=list(result.keys()),
        )
    return ExecutedQuery(
        insert_id=result.lastrowid or None,
        rows_affected=max(result.rowcount or 0, 0),
    )


class SqlAlchemyTransport:
    """
    Transport over an AsyncEngine (each statement in its own short transaction)
    or over an AsyncConnection the caller manages.
    """

    def __init__(self, bind: Union[AsyncEngine, AsyncConnection]) -> None:
        self._bind = bind

    @property
    def bind(self) -> Union[AsyncEngine, AsyncConnection]:
        return self._bind

    async def execute(self, sql_text: str, params: Sequence[Any]) -> ExecutedQuery:
        statement, binds = to_named_params(sql_text, list(params))
        if isinstance(self._bind, AsyncConnection):
            result = await self._bind.execute(text(statement), binds)
            return _to_executed_query(result)
        async with self._bind.begin() as conn:
            result = await conn.execute(text(statement), binds)
            return _to_executed_query(result)

    @asynccontextmanager
    async def begin(self) -> AsyncIterator["SqlAlchemyTransport"]:
        """Transaction-scoped transport; commits on exit, rolls back on error."""
        if isinstance(self._bind, AsyncConnection):
            tx = self._bind.begin_nested() if self._bind.in_transaction() else self._bind.begin()
            async with tx:
                yield SqlAlchemyTransport(self._bind)
            return
        async with self._bind.begin() as conn:
            yield SqlAlchemyTransport(conn)

    async def dispose(self) -> None:
        if isinstance(self._bind, AsyncEngine):
            await self._bind.dispose()


def async_database_url(database_url: str) -> str:
    url = make_url(database_url)
    driver = ASYNC_DRIVERS.get(url.drivername)
    if driver:
        url = url.set(drivername=driver)
    return url.render_as_string(hide_password=False)


def create_transport(database_url: Optional[str] = None, **engine_kwargs: Any) -> SqlAlchemyTransport:
    url = database_url or get_settings().DATABASE_URL
    if not url:
        raise EngineError("No database URL configured. Set FRIEDA_DATABASE_URL or DATABASE_URL.")
    engine = create_async_engine(async_database_url(url), pool_pre_ping=True, **engine_kwargs)
    logger.info("Created async engine for %s", engine.url.render_as_string(hide_password=True))
    return SqlAlchemyTransport(engine)
