# core/settings.py
from __future__ import annotations
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from modelgen.meta_models import TypeOptions

load_dotenv()

ENV_DB_URL_KEYS = ("FRIEDA_DATABASE_URL", "DATABASE_URL")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    DATABASE_URL: Optional[str]
    LOG_LEVEL: str
    TYPE_BIGINT_AS_STRING: bool
    TYPE_TINYINT_ONE_AS_BOOLEAN: bool
    DEFAULT_JSON_TYPE: str
    SCHEMA_SNAPSHOT_PATH: str

    def __init__(self) -> None:
        self.DATABASE_URL = next((os.getenv(k) for k in ENV_DB_URL_KEYS if os.getenv(k)), None)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.TYPE_BIGINT_AS_STRING = _env_bool("TYPE_BIGINT_AS_STRING", True)
        self.TYPE_TINYINT_ONE_AS_BOOLEAN = _env_bool("TYPE_TINYINT_ONE_AS_BOOLEAN", True)
        self.DEFAULT_JSON_TYPE = os.getenv("DEFAULT_JSON_TYPE", "Any")
        self.SCHEMA_SNAPSHOT_PATH = os.getenv("SCHEMA_SNAPSHOT_PATH", "schema/schema.snapshot.json")

    def type_options(self) -> TypeOptions:
        return TypeOptions(
            type_bigint_as_string=self.TYPE_BIGINT_AS_STRING,
            type_tinyint_one_as_boolean=self.TYPE_TINYINT_ONE_AS_BOOLEAN,
            default_json_type=self.DEFAULT_JSON_TYPE,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
