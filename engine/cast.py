# engine/cast.py
from __future__ import annotations
import json
import logging
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from modelgen.meta_models import CastKind, FieldDescriptor

logger = logging.getLogger(__name__)

CastOverrides = Mapping[str, Union[CastKind, str]]
CastFunction = Callable[[Mapping[str, Any]], Dict[str, Any]]

# DATETIME(n) text carries n fraction digits; fromisoformat before 3.11 takes only 3 or 6
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d{1,6})\b")


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return int(value)
    if isinstance(value, Decimal):
        return int(value)
    return int(_text(value).strip(), 10)


def _to_datetime(value: Any) -> Any:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    text = _text(value).strip()
    padded = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2).ljust(6, '0')}", text)
    try:
        return datetime.fromisoformat(padded)
    except ValueError:
        # zero dates and other values MySQL lets through; hand back the text
        logger.debug("Leaving unparseable date value as text: %r", text)
        return text


def _to_json(value: Any) -> Any:
    if not isinstance(value, (str, bytes, bytearray)):
        return value
    text = _text(value)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Leaving non-JSON value as text: %r", text[:80])
        return text


def _to_set(value: Any) -> Any:
    if isinstance(value, (set, frozenset, list, tuple)):
        return set(value)
    text = _text(value)
    return {member for member in text.split(",") if member}


def _to_str(value: Any) -> str:
    # drivers decode BIGINT, TIME, BLOB... natively; string-typed fields stay text
    if isinstance(value, str):
        return value
    if isinstance(value, (set, frozenset)):
        return ",".join(sorted(_text(m) for m in value))
    return _text(value)


def cast_value(kind: Union[CastKind, str], value: Any) -> Any:
    if value is None:
        return None
    kind = CastKind(kind)
    if kind is CastKind.INT or kind is CastKind.BIGINT:
        return _to_int(value)
    if kind is CastKind.FLOAT:
        return float(value) if isinstance(value, (int, float, Decimal)) else float(_text(value))
    if kind is CastKind.BOOLEAN:
        return _to_int(value) != 0
    if kind is CastKind.DATE:
        return _to_datetime(value)
    if kind is CastKind.JSON:
        return _to_json(value)
    if kind is CastKind.SET:
        return _to_set(value)
    return _to_str(value)


def create_cast_function(
    fields: Optional[Sequence[FieldDescriptor]] = None,
    overrides: Optional[CastOverrides] = None,
) -> CastFunction:
    """
    Build a row caster for one query.

    Rows may be keyed by column name (SELECT *) or by field name (explicit
    select list); both come out keyed by field name. `overrides` maps a name to
    a different cast kind for this call only. Keys nobody knows about are
    passed through untouched.
    """
    by_key: Dict[str, Tuple[str, CastKind]] = {}
    for f in fields or ():
        by_key[f.column_name] = (f.field_name, f.cast_kind)
    for f in fields or ():
        by_key[f.field_name] = (f.field_name, f.cast_kind)
    forced = {name: CastKind(kind) for name, kind in (overrides or {}).items()}

    def cast_row(row: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in row.items():
            name, kind = by_key.get(key, (key, None))
            kind = forced.get(name, forced.get(key, kind))
            out[name] = value if kind is None else cast_value(kind, value)
        return out

    return cast_row
