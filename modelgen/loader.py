# modelgen/loader.py
import json
import logging
from pathlib import Path

from jsonschema import ValidationError
from jsonschema.validators import Draft7Validator
from pydantic import ValidationError as ModelValidationError

from core.errors import InvalidSchemaError
from modelgen.meta_models import FetchedSchema

logger = logging.getLogger(__name__)

SNAPSHOT_SPEC = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Fetched schema snapshot",
    "type": "object",
    "required": ["database_name", "fetched", "tables"],
    "properties": {
        "database_name": {"type": "string"},
        "fetched": {"type": "string"},
        "tables": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "columns"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "create_sql": {"type": "string"},
                    "indexes": {"type": "array", "items": {"type": "object"}},
                    "columns": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["Field", "Type"],
                            "properties": {
                                "Field": {"type": "string", "minLength": 1},
                                "Type": {"type": "string"},
                                "Null": {"type": ["string", "boolean"]},
                                "Key": {"type": ["string", "null"]},
                                "Default": {"type": ["string", "null"]},
                                "Extra": {"type": ["string", "null"]},
                                "Comment": {"type": ["string", "null"]},
                            },
                        },
                    },
                },
            },
        },
    },
}


def validate_snapshot(data: dict) -> None:
    try:
        Draft7Validator.check_schema(SNAPSHOT_SPEC)
        Draft7Validator(SNAPSHOT_SPEC).validate(data)
    except ValidationError as e:
        raise InvalidSchemaError(f"Schema snapshot validation failed: {e.message}") from e


def load_snapshot(path: str) -> FetchedSchema:
    snap_path = Path(path)
    if not snap_path.exists():
        raise InvalidSchemaError(f"Schema snapshot not found at {path}")

    try:
        data = json.loads(snap_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidSchemaError(f"Schema snapshot at {path} is not valid JSON: {e}") from e

    validate_snapshot(data)
    try:
        schema = FetchedSchema.model_validate(data)
    except ModelValidationError as e:
        raise InvalidSchemaError(f"Schema snapshot at {path} is malformed: {e}") from e

    logger.info("Loaded schema snapshot from %s with %d tables", str(snap_path), len(schema.tables))
    return schema


def dump_snapshot(schema: FetchedSchema) -> dict:
    # exclude_unset keeps "no Default" distinct from "Default: null"
    return schema.model_dump(mode="json", by_alias=True, exclude_unset=True)


def save_snapshot(schema: FetchedSchema, path: str) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(dump_snapshot(schema), indent=2), encoding="utf-8")
    logger.info("Wrote schema snapshot for %s to %s", schema.database_name, str(out))
    return out
