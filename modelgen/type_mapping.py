# modelgen/type_mapping.py
from __future__ import annotations
import re
from typing import List, Optional, Sequence

from modelgen.annotations import (
    get_bigint_annotation,
    get_enum_annotation,
    get_json_annotation,
    get_set_annotation,
    parse_annotations,
)
from modelgen.meta_models import (
    Annotation,
    CastKind,
    ColumnMetadata,
    FieldDescriptor,
    KeyKind,
    TypeOptions,
)
from modelgen.naming import snake_case

MYSQL_TYPES = frozenset({
    "bit", "tinyint", "bool", "boolean", "smallint", "mediumint", "int", "integer", "bigint",
    "decimal", "dec", "numeric", "fixed", "float", "double", "real",
    "date", "datetime", "timestamp", "time", "year",
    "char", "varchar", "binary", "varbinary",
    "tinyblob", "blob", "mediumblob", "longblob",
    "tinytext", "text", "mediumtext", "longtext",
    "enum", "set", "json",
})

INT_TYPES = frozenset({"tinyint", "int", "integer", "smallint", "mediumint", "year"})
FLOAT_TYPES = frozenset({"float", "double", "real", "decimal", "dec", "numeric", "fixed"})
DATE_TYPES = frozenset({"date", "datetime", "timestamp"})

SEMANTIC_TYPES = {
    CastKind.INT: "int",
    CastKind.FLOAT: "float",
    CastKind.BOOLEAN: "bool",
    CastKind.BIGINT: "int",
    CastKind.DATE: "datetime",
    CastKind.STRING: "str",
}

_LEADING_WORD = re.compile(r"^\s*([A-Za-z]+)")
_SQL_LITERAL = re.compile(r"'((?:[^'\\]|\\.|'')*)'", re.S)
_AUTO_INCREMENT = re.compile(r"\bauto_increment\b", re.I)
_GENERATED_ALWAYS = re.compile(r"\b(VIRTUAL|STORED) GENERATED\b", re.I)
_DEFAULT_GENERATED = re.compile(r"\bDEFAULT_GENERATED\b", re.I)
_INVISIBLE = re.compile(r"\bINVISIBLE\b", re.I)


# ---- column type parsing -----------------------------------------------------

def mysql_base_type(declared_type: str) -> Optional[str]:
    """
    The recognised base type of a column definition, lowercased, or None.
    `tinyint(1) unsigned` -> 'tinyint', `double precision` -> 'double'.
    """
    m = _LEADING_WORD.match(declared_type or "")
    if not m:
        return None
    word = m.group(1).lower()
    return word if word in MYSQL_TYPES else None


def parenthesized_args(source: str, prefix: str) -> str:
    """Given `prefix(anything whatever) tail` returns `anything whatever`."""
    m = re.match(rf"^\s*{re.escape(prefix)}\s*\((.*)\)", source or "", re.I | re.S)
    return m.group(1) if m else ""


def string_literals(source: str) -> List[str]:
    """Unquoted values of the single-quoted literals in `source` (SQL '' and backslash escapes)."""
    values = []
    for m in _SQL_LITERAL.finditer(source or ""):
        raw = m.group(1).replace("''", "'")
        values.append(re.sub(r"\\(.)", r"\1", raw, flags=re.S))
    return values


def literal_union(declared_type: str, base: str) -> Optional[str]:
    values = string_literals(parenthesized_args(declared_type, base))
    if not values:
        return None
    return "Literal[" + ", ".join(repr(v) for v in values) + "]"


def is_tinyint_one(column: ColumnMetadata) -> bool:
    return (
        mysql_base_type(column.declared_type) == "tinyint"
        and parenthesized_args(column.declared_type, "tinyint").strip() == "1"
    )


# ---- resolution --------------------------------------------------------------

def get_cast_kind(
    column: ColumnMetadata,
    base: Optional[str],
    annotations: Sequence[Annotation],
    options: TypeOptions,
) -> CastKind:
    if base is None:
        return CastKind.STRING

    if base == "json":
        return CastKind.JSON

    if base == "bigint":
        # bigints are typed as str unless turned off globally or per column
        if options.type_bigint_as_string is False or get_bigint_annotation(annotations):
            return CastKind.BIGINT
        return CastKind.STRING

    if is_tinyint_one(column):
        if options.type_tinyint_one_as_boolean is False:
            return CastKind.INT
        return CastKind.BOOLEAN

    if base in ("bool", "boolean"):
        return CastKind.BOOLEAN

    if base in INT_TYPES:
        return CastKind.INT

    if base in FLOAT_TYPES:
        return CastKind.FLOAT

    if base in DATE_TYPES:
        return CastKind.DATE

    if base == "set":
        return CastKind.SET if get_set_annotation(annotations) else CastKind.STRING

    # enum, time, bit, char/text/blob variants...
    return CastKind.STRING


def get_semantic_type(
    column: ColumnMetadata,
    base: Optional[str],
    cast_kind: CastKind,
    annotations: Sequence[Annotation],
    options: TypeOptions,
) -> str:
    if cast_kind is CastKind.JSON:
        a = get_json_annotation(annotations)
        return a.argument.strip() if a else options.default_json_type

    if cast_kind is CastKind.SET:
        a = get_set_annotation(annotations)
        if a and a.argument and a.argument.strip():
            return f"set[{a.argument.strip()}]"
        members = literal_union(column.declared_type, "set")
        return f"set[{members}]" if members else "set[str]"

    if base == "enum":
        a = get_enum_annotation(annotations)
        if a:
            return a.argument.strip()
        return literal_union(column.declared_type, "enum") or "str"

    return SEMANTIC_TYPES.get(cast_kind, "str")


def has_default(column: ColumnMetadata) -> bool:
    # nullable with an explicit NULL default is a real default
    if isinstance(column.default_value, str):
        return True
    return column.nullable and column.default_value is None and column.default_is_explicit


def resolve_field(column: ColumnMetadata, options: Optional[TypeOptions] = None) -> FieldDescriptor:
    """
    Map one introspected column to its field descriptor.
    Pure: depends only on the column and the options passed in.
    """
    options = options or TypeOptions()
    annotations = parse_annotations(column.comment)
    base = mysql_base_type(column.declared_type)
    cast_kind = get_cast_kind(column, base, annotations, options)
    extra = column.extra_flags
    return FieldDescriptor(
        field_name=snake_case(column.name),
        column_name=column.name,
        column_type=column.declared_type,
        column_comment=column.comment,
        column_default=column.default_value,
        mysql_base_type=base,
        cast_kind=cast_kind,
        semantic_type=get_semantic_type(column, base, cast_kind, annotations, options),
        is_primary_key=column.key_kind is KeyKind.PRIMARY,
        is_auto_increment=bool(_AUTO_INCREMENT.search(extra)),
        is_unique=column.key_kind is KeyKind.UNIQUE,
        is_nullable=column.nullable,
        is_invisible=bool(_INVISIBLE.search(extra)),
        is_generated_always=bool(_GENERATED_ALWAYS.search(extra)),
        is_default_generated=bool(_DEFAULT_GENERATED.search(extra)),
        has_default=has_default(column),
    )


def explain_field_type(column: ColumnMetadata, options: Optional[TypeOptions] = None) -> str:
    """One line saying which rule or directive decided the column's type."""
    options = options or TypeOptions()
    annotations = parse_annotations(column.comment)
    base = mysql_base_type(column.declared_type)
    if base is None:
        return f"Unhandled column type {column.declared_type}. Typed and cast as str."
    if base == "json":
        if get_json_annotation(annotations):
            return "Using type from the @json type annotation."
        return f"No @json type annotation. Using default JSON type: {options.default_json_type}."
    if is_tinyint_one(column):
        return f"type_tinyint_one_as_boolean: {options.type_tinyint_one_as_boolean}"
    if base == "bigint":
        if options.type_bigint_as_string and get_bigint_annotation(annotations):
            return "Found @bigint type annotation. Overrides type_bigint_as_string: True"
        return f"type_bigint_as_string: {options.type_bigint_as_string}"
    if base == "enum":
        if get_enum_annotation(annotations):
            return "Using type from the @enum type annotation."
        return "Using the column's enum definition."
    if base == "set":
        a = get_set_annotation(annotations)
        if a and a.argument and a.argument.strip():
            return "Using type from the @set type annotation."
        if a:
            return "Using the @set type annotation."
        return "No @set type annotation. Typed and cast as str."
    return f"Default type for {base} columns."
