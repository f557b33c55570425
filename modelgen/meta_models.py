# modelgen/meta_models.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class KeyKind(str, Enum):
    NONE = "none"
    PRIMARY = "primary"
    UNIQUE = "unique"
    OTHER = "other"


_KEY_CODES = {"": KeyKind.NONE, "PRI": KeyKind.PRIMARY, "UNI": KeyKind.UNIQUE, "MUL": KeyKind.OTHER}


class CastKind(str, Enum):
    INT = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"
    BIGINT = "bigint"
    DATE = "date"
    STRING = "string"
    JSON = "json"
    SET = "set"


class AnnotationKind(str, Enum):
    BIGINT = "bigint"
    JSON = "json"
    SET = "set"
    ENUM = "enum"


@dataclass(frozen=True)
class Annotation:
    kind: AnnotationKind
    argument: Optional[str] = None
    full_annotation: str = ""


class TypeOptions(BaseModel):
    """Process-wide typing switches, read once before resolution."""
    model_config = ConfigDict(frozen=True)

    type_bigint_as_string: bool = True
    type_tinyint_one_as_boolean: bool = True
    default_json_type: str = "Any"


class ColumnMetadata(BaseModel):
    """
    One row of `SHOW FULL COLUMNS`. Accepts the raw MySQL keys (Field, Type, Null, ...)
    or the attribute names. A missing `Default` is not the same as `Default: null`.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(alias="Field")
    declared_type: str = Field(alias="Type")
    nullable: bool = Field(default=False, alias="Null")
    key_kind: KeyKind = Field(default=KeyKind.NONE, alias="Key")
    extra_flags: str = Field(default="", alias="Extra")
    default_value: Optional[str] = Field(default=None, alias="Default")
    comment: str = Field(default="", alias="Comment")
    collation: Optional[str] = Field(default=None, alias="Collation")
    privileges: Optional[str] = Field(default=None, alias="Privileges")

    @field_validator("nullable", mode="before")
    @classmethod
    def _parse_null(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper() == "YES"
        return v

    @field_validator("key_kind", mode="before")
    @classmethod
    def _parse_key(cls, v: Any) -> Any:
        if v is None:
            return KeyKind.NONE
        if isinstance(v, str):
            code = v.strip().upper()
            if code in _KEY_CODES:
                return _KEY_CODES[code]
            return v.strip().lower()
        return v

    @field_validator("extra_flags", "comment", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("default_value", mode="before")
    @classmethod
    def _default_as_text(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (bytes, bytearray)):
            return v.decode("utf-8", errors="replace")
        return str(v)

    @property
    def default_is_explicit(self) -> bool:
        return "default_value" in self.model_fields_set


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_name: str
    column_name: str
    column_type: str
    column_comment: str = ""
    column_default: Optional[str] = None
    mysql_base_type: Optional[str] = None
    cast_kind: CastKind
    semantic_type: str
    is_primary_key: bool = False
    is_auto_increment: bool = False
    is_unique: bool = False
    is_nullable: bool = False
    is_invisible: bool = False
    is_generated_always: bool = False
    is_default_generated: bool = False
    has_default: bool = False


# ---- presence views ----------------------------------------------------------

class ModelFieldPresence(str, Enum):
    PRESENT = "present"
    UNDEFINED_FOR_SELECT_ALL = "undefined_for_select_all"


class CreateFieldPresence(str, Enum):
    REQUIRED = "required"
    OPTIONAL_AUTO_INCREMENT = "optional_auto_increment"
    OPTIONAL_HAS_DEFAULT = "optional_has_default"
    OMITTED_GENERATED = "omitted_generated"


class UpdateFieldPresence(str, Enum):
    OPTIONAL = "optional"
    OMITTED_PRIMARY_KEY = "omitted_primary_key"
    OMITTED_GENERATED = "omitted_generated"


def model_field_presence(f: FieldDescriptor) -> ModelFieldPresence:
    if f.is_invisible:
        return ModelFieldPresence.UNDEFINED_FOR_SELECT_ALL
    return ModelFieldPresence.PRESENT


def create_field_presence(f: FieldDescriptor) -> CreateFieldPresence:
    if f.is_generated_always:
        return CreateFieldPresence.OMITTED_GENERATED
    if f.is_auto_increment:
        return CreateFieldPresence.OPTIONAL_AUTO_INCREMENT
    if f.has_default:
        return CreateFieldPresence.OPTIONAL_HAS_DEFAULT
    return CreateFieldPresence.REQUIRED


def update_field_presence(f: FieldDescriptor) -> UpdateFieldPresence:
    if f.is_primary_key:
        return UpdateFieldPresence.OMITTED_PRIMARY_KEY
    if f.is_generated_always:
        return UpdateFieldPresence.OMITTED_GENERATED
    return UpdateFieldPresence.OPTIONAL


class ModelDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_name: str
    table_name: str
    accessor_name: str
    fields: List[FieldDescriptor]

    def field(self, name: str) -> Optional[FieldDescriptor]:
        """Look up by field name first, then by column name."""
        for f in self.fields:
            if f.field_name == name:
                return f
        for f in self.fields:
            if f.column_name == name:
                return f
        return None

    @property
    def field_names(self) -> List[str]:
        return [f.field_name for f in self.fields]

    @property
    def primary_key_fields(self) -> List[FieldDescriptor]:
        return [f for f in self.fields if f.is_primary_key]

    @property
    def auto_increment_primary_key(self) -> Optional[FieldDescriptor]:
        pks = self.primary_key_fields
        if len(pks) == 1 and pks[0].is_auto_increment:
            return pks[0]
        return None

    def cast_map(self) -> Dict[str, CastKind]:
        return {f.field_name: f.cast_kind for f in self.fields}

    def base_view(self) -> Dict[str, ModelFieldPresence]:
        return {f.field_name: model_field_presence(f) for f in self.fields}

    def primary_key_view(self) -> List[str]:
        return [f.field_name for f in self.primary_key_fields]

    def create_view(self) -> Dict[str, CreateFieldPresence]:
        # generated columns are left out entirely
        out: Dict[str, CreateFieldPresence] = {}
        for f in self.fields:
            p = create_field_presence(f)
            if p is not CreateFieldPresence.OMITTED_GENERATED:
                out[f.field_name] = p
        return out

    def update_view(self) -> Dict[str, UpdateFieldPresence]:
        out: Dict[str, UpdateFieldPresence] = {}
        for f in self.fields:
            p = update_field_presence(f)
            if p is UpdateFieldPresence.OPTIONAL:
                out[f.field_name] = p
        return out

    def find_unique_view(self) -> List[List[str]]:
        groups: List[List[str]] = []
        pk = self.primary_key_view()
        if pk:
            groups.append(pk)
        for f in self.fields:
            if f.is_unique:
                groups.append([f.field_name])
        return groups


class FetchedTable(BaseModel):
    name: str
    columns: List[ColumnMetadata]
    indexes: List[Dict[str, Any]] = Field(default_factory=list)
    create_sql: str = ""


class FetchedSchema(BaseModel):
    database_name: str
    fetched: datetime
    tables: List[FetchedTable]
