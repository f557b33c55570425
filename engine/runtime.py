# engine/runtime.py
from __future__ import annotations
import dataclasses
import json
import logging
import time
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from core.errors import (
    CountOverflowError,
    DescriptorValidationError,
    ExecuteError,
    NotFoundError,
    TransportFailure,
)
from core.ports import ExecutedQuery, Transport
from engine.cast import CastOverrides, cast_value, create_cast_function
from engine.sql import Sql, bind, bt, clauses, empty, join, raw
from modelgen.meta_models import CastKind, FieldDescriptor, ModelDescriptor

logger = logging.getLogger(__name__)

# largest integer a JSON/JavaScript consumer can hold exactly
MAX_SAFE_INTEGER = 2**53 - 1

ErrorLogger = Callable[[ExecuteError], None]
PerformanceLogger = Callable[[Sql, ExecutedQuery, float], None]

WhereInput = Union[Mapping[str, Any], Sql, None]
OrderByInput = Union[Mapping[str, str], Sequence[Tuple[str, str]], Sql, None]
SelectInput = Union[Literal["all"], Sequence[str], None]


class Paging(BaseModel):
    """One-based paging: page 2 with 10 rows per page is LIMIT 10 OFFSET 10."""
    model_config = ConfigDict(frozen=True)

    page: int = Field(ge=1)
    rpp: int = Field(ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.rpp


def get_limit_offset(paging: Union[Paging, Mapping[str, int], None]) -> Sql:
    if paging is None:
        return empty
    p = paging if isinstance(paging, Paging) else Paging.model_validate(paging)
    # both are validated ints, safe to inline
    return raw(f"LIMIT {p.rpp} OFFSET {p.offset}")


def _log_execute_error(error: ExecuteError) -> None:
    logger.error(
        "Query failed: %s ; params=%r ; error=%s",
        error.query.sql, list(error.query.values), error.original_error,
    )


def schema_cast_fields(models: Sequence[ModelDescriptor]) -> Tuple[FieldDescriptor, ...]:
    """
    Fields of every model, for casting statements not tied to one model.
    A column or field name whose cast kind differs between tables is left out
    and its values pass through uncast; pass an override to cast it.
    """
    kinds: Dict[str, set] = {}
    for m in models:
        for f in m.fields:
            kinds.setdefault(f.column_name, set()).add(f.cast_kind)
            kinds.setdefault(f.field_name, set()).add(f.cast_kind)
    ambiguous = {name for name, ks in kinds.items() if len(ks) > 1}
    if ambiguous:
        logger.debug("Not casting names with conflicting kinds across tables: %s", ", ".join(sorted(ambiguous)))

    out: Dict[str, FieldDescriptor] = {}
    for m in models:
        for f in m.fields:
            if f.column_name not in ambiguous and f.field_name not in ambiguous:
                out.setdefault(f.column_name, f)
    return tuple(out.values())


def _log_performance(query: Sql, result: ExecutedQuery, round_trip_ms: float) -> None:
    logger.debug("%.1fms rows=%d affected=%d: %s", round_trip_ms, len(result.rows), result.rows_affected, query.sql)


class Database:
    """
    Raw execution over one transport plus access to per-model repos.

    Holds no mutable state. For atomic multi-statement work build one Database
    on a transaction-scoped transport.
    """

    def __init__(
        self,
        transport: Transport,
        models: Sequence[ModelDescriptor] = (),
        *,
        error_logger: Optional[ErrorLogger] = None,
        performance_logger: Optional[PerformanceLogger] = None,
    ) -> None:
        self._transport = transport
        self._models: Tuple[ModelDescriptor, ...] = tuple(models)
        self._schema_fields = schema_cast_fields(self._models)
        self._error_logger = error_logger or _log_execute_error
        self._performance_logger = performance_logger or _log_performance

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def models(self) -> Tuple[ModelDescriptor, ...]:
        return self._models

    def model(self, name: str) -> "ModelDb":
        """Repo for a model, looked up by model name, accessor name or table name."""
        return ModelDb(
            name,
            self._transport,
            self._models,
            error_logger=self._error_logger,
            performance_logger=self._performance_logger,
        )

    async def execute(
        self,
        query: Sql,
        cast: Optional[CastOverrides] = None,
        *,
        fields: Sequence[FieldDescriptor] = (),
    ) -> ExecutedQuery:
        """
        The one place statements reach the transport.

        Rows are cast by `fields`, or by every model's fields when none are
        given. Transport (and cast) failures go to the error hook with the statement
        attached; the caller only sees an opaque TransportFailure.
        """
        cast_row = create_cast_function(fields or self._schema_fields, cast)
        start = time.perf_counter()
        try:
            result = await self._transport.execute(query.sql, list(query.values))
            result = dataclasses.replace(result, rows=[cast_row(r) for r in result.rows])
        except Exception as e:
            self._error_logger(ExecuteError(e, query))
            raise TransportFailure() from None
        self._performance_logger(query, result, (time.perf_counter() - start) * 1000)
        return result

    async def execute_select(self, query: Sql, cast: Optional[CastOverrides] = None) -> List[Dict[str, Any]]:
        result = await self.execute(query, cast)
        return result.rows

    async def execute_select_first(self, query: Sql, cast: Optional[CastOverrides] = None) -> Optional[Dict[str, Any]]:
        rows = await self.execute_select(query, cast)
        return rows[0] if rows else None

    async def execute_select_first_or_throw(self, query: Sql, cast: Optional[CastOverrides] = None) -> Dict[str, Any]:
        row = await self.execute_select_first(query, cast)
        if row is None:
            raise NotFoundError("execute_select_first_or_throw failed to find a record.")
        return row


class ModelDb(Database):
    """Single-table CRUD for one model. Every value is bound, every identifier quoted."""

    def __init__(
        self,
        model_name: str,
        transport: Transport,
        models: Sequence[ModelDescriptor],
        *,
        error_logger: Optional[ErrorLogger] = None,
        performance_logger: Optional[PerformanceLogger] = None,
    ) -> None:
        super().__init__(transport, models, error_logger=error_logger, performance_logger=performance_logger)
        model = next(
            (m for m in models if model_name in (m.model_name, m.accessor_name, m.table_name)),
            None,
        )
        if model is None:
            raise DescriptorValidationError(f"Model {model_name} not found in schema.")
        self._model = model

    @property
    def model_descriptor(self) -> ModelDescriptor:
        return self._model

    @property
    def table_name(self) -> str:
        return self._model.table_name

    @property
    def fields(self) -> List[FieldDescriptor]:
        return list(self._model.fields)

    @property
    def keys(self) -> List[str]:
        return self._model.field_names

    @property
    def primary_keys(self) -> List[str]:
        return self._model.primary_key_view()

    # ---- fragments -----------------------------------------------------------

    def _field(self, name: str, purpose: str) -> FieldDescriptor:
        f = self._model.field(name)
        if f is None:
            raise DescriptorValidationError(
                f"Invalid {purpose}: the field named {name} does not exist on {self._model.model_name}."
            )
        return f

    def encode_value(self, f: FieldDescriptor, value: Any) -> Sql:
        if value is None:
            return raw("NULL")
        if f.cast_kind is CastKind.JSON:
            return bind(json.dumps(value))
        if f.cast_kind is CastKind.SET and isinstance(value, (set, frozenset)):
            return bind(",".join(sorted(str(m) for m in value)))
        return bind(value)

    def get_where(self, where: WhereInput) -> Sql:
        if where is None:
            return empty
        if isinstance(where, Sql):
            # caller-built condition, used as is
            return empty if where.is_empty() else raw("WHERE ") + where
        if not isinstance(where, Mapping):
            raise DescriptorValidationError("Invalid where: expected a mapping of field names to values or an Sql fragment.")
        conditions = []
        for name, value in where.items():
            f = self._field(name, "where")
            column = bt(self.table_name, f.column_name)
            if value is None:
                conditions.append(column + raw(" IS NULL"))
            else:
                conditions.append(column + raw(" = ") + self.encode_value(f, value))
        if not conditions:
            return empty
        return raw("WHERE ") + join(conditions, " AND ")

    def get_order_by(self, order_by: OrderByInput) -> Sql:
        if order_by is None:
            return empty
        if isinstance(order_by, Sql):
            return empty if order_by.is_empty() else raw("ORDER BY ") + order_by
        items = order_by.items() if isinstance(order_by, Mapping) else order_by
        parts = []
        for name, direction in items:
            f = self._field(name, "order by")
            d = str(direction).strip().upper()
            if d not in ("ASC", "DESC"):
                raise DescriptorValidationError(f"Invalid order by: direction {direction!r} for {name}.")
            parts.append(bt(self.table_name, f.column_name) + raw(f" {d}"))
        if not parts:
            return empty
        return raw("ORDER BY ") + join(parts)

    def get_select(self, select: SelectInput) -> Sql:
        if select is None:
            return raw("*")
        if isinstance(select, str):
            if select != "all":
                raise DescriptorValidationError(f"Invalid select: {select!r}. Use 'all' or a list of field names.")
            names = self.keys
        else:
            names = list(select)
            if not names:
                return raw("*")
        columns = []
        for name in names:
            f = self._field(name, "select")
            columns.append(bt(self.table_name, f.column_name) + raw(" AS ") + bt(f.field_name))
        return join(columns)

    # ---- reads ---------------------------------------------------------------

    async def execute(
        self,
        query: Sql,
        cast: Optional[CastOverrides] = None,
        *,
        fields: Optional[Sequence[FieldDescriptor]] = None,
    ) -> ExecutedQuery:
        return await super().execute(query, cast, fields=self._model.fields if fields is None else fields)

    async def find_many(
        self,
        where: WhereInput = None,
        order_by: OrderByInput = None,
        paging: Union[Paging, Mapping[str, int], None] = None,
        select: SelectInput = None,
    ) -> List[Dict[str, Any]]:
        query = clauses(
            raw("SELECT"),
            self.get_select(select),
            raw("FROM"),
            bt(self.table_name),
            self.get_where(where),
            self.get_order_by(order_by),
            get_limit_offset(paging),
        )
        result = await self.execute(query)
        return result.rows

    async def find_first(
        self,
        where: WhereInput = None,
        order_by: OrderByInput = None,
        select: SelectInput = None,
    ) -> Optional[Dict[str, Any]]:
        rows = await self.find_many(where=where, order_by=order_by, paging=Paging(page=1, rpp=1), select=select)
        return rows[0] if rows else None

    async def find_first_or_throw(
        self,
        where: WhereInput = None,
        order_by: OrderByInput = None,
        select: SelectInput = None,
    ) -> Dict[str, Any]:
        row = await self.find_first(where=where, order_by=order_by, select=select)
        if row is None:
            raise NotFoundError(f"find_first_or_throw failed to find a {self._model.model_name} record.")
        return row

    async def find_unique(self, where: Mapping[str, Any], select: SelectInput = None) -> Optional[Dict[str, Any]]:
        # `where` should name a primary or unique key; not checked here
        return await self.find_first(where=where, select=select)

    async def find_unique_or_throw(self, where: Mapping[str, Any], select: SelectInput = None) -> Dict[str, Any]:
        return await self.find_first_or_throw(where=where, select=select)

    async def count_bigint(self, where: WhereInput = None) -> int:
        query = clauses(raw("SELECT COUNT(*) AS"), bt("ct"), raw("FROM"), bt(self.table_name), self.get_where(where))
        result = await self.execute(query, {"ct": CastKind.BIGINT})
        return result.rows[0]["ct"] if result.rows else 0

    async def count(self, where: WhereInput = None) -> int:
        ct = await self.count_bigint(where)
        if ct > MAX_SAFE_INTEGER:
            raise CountOverflowError(f"count returned a number greater than {MAX_SAFE_INTEGER}.")
        return ct

    # ---- writes --------------------------------------------------------------

    async def create(self, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        INSERT only the keys given in `data`, leaving the rest to column defaults.
        Returns the primary key: the generated id for a single auto_increment
        key, otherwise the key values taken from `data` (None where missing).
        """
        data = dict(data or {})
        names, values = [], []
        for name, value in data.items():
            f = self._field(name, "create data")
            names.append(bt(f.column_name))
            values.append(self.encode_value(f, value))
        query = clauses(
            raw("INSERT INTO"),
            bt(self.table_name),
            raw("(") + join(names) + raw(")"),
            raw("VALUES"),
            raw("(") + join(values) + raw(")"),
        )
        executed = await self.execute(query)

        def given(f: FieldDescriptor) -> Any:
            return data.get(f.field_name, data.get(f.column_name))

        auto = self._model.auto_increment_primary_key
        if auto is not None:
            explicit = given(auto)
            if explicit is not None:
                return {auto.field_name: explicit}
            return {auto.field_name: cast_value(auto.cast_kind, executed.insert_id)}
        return {f.field_name: given(f) for f in self._model.primary_key_fields}

    def _require_where(self, where: Any, operation: str) -> None:
        # update/delete_where are the whole-table forms
        if not where:
            raise DescriptorValidationError(
                f"Invalid {operation}: where is empty; use {operation}_where to touch every {self._model.model_name} row."
            )

    async def update_where(self, data: Mapping[str, Any], where: WhereInput = None) -> ExecutedQuery:
        if not data:
            raise DescriptorValidationError(f"Invalid update data: nothing to update on {self._model.model_name}.")
        assignments = []
        for name, value in data.items():
            f = self._field(name, "update data")
            assignments.append(bt(f.column_name) + raw(" = ") + self.encode_value(f, value))
        query = clauses(raw("UPDATE"), bt(self.table_name), raw("SET"), join(assignments), self.get_where(where))
        return await self.execute(query)

    async def update(self, data: Mapping[str, Any], where: Mapping[str, Any]) -> ExecutedQuery:
        self._require_where(where, "update")
        return await self.update_where(data=data, where=where)

    async def delete_where(self, where: WhereInput = None) -> ExecutedQuery:
        query = clauses(raw("DELETE FROM"), bt(self.table_name), self.get_where(where))
        return await self.execute(query)

    async def delete(self, where: Mapping[str, Any]) -> ExecutedQuery:
        self._require_where(where, "delete")
        return await self.delete_where(where=where)
