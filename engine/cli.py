# engine/cli.py
from __future__ import annotations
import asyncio
import logging
from typing import List, Optional

import typer

from adapters.sqlalchemy_transport import create_transport
from core.errors import DescriptorValidationError, EngineError, InvalidSchemaError
from core.settings import get_settings
from engine.fetch_schema import fetch_schema
from modelgen.loader import load_snapshot, save_snapshot
from modelgen.meta_models import (
    CreateFieldPresence,
    FetchedSchema,
    FetchedTable,
    ModelFieldPresence,
    UpdateFieldPresence,
)
from modelgen.model_builder import build_model, build_models
from modelgen.naming import pascal_case
from modelgen.type_mapping import explain_field_type

app = typer.Typer(help="Schema typing and data-access engine CLI")
logger = logging.getLogger("engine.cli")


# ---------------------------
# Core utilities
# ---------------------------
def _snapshot_path(path: Optional[str]) -> str:
    return path or get_settings().SCHEMA_SNAPSHOT_PATH


def _require_snapshot(path: str) -> FetchedSchema:
    try:
        return load_snapshot(path)
    except InvalidSchemaError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)


def _select_tables(schema: FetchedSchema, model: Optional[str]) -> List[FetchedTable]:
    if not model:
        return list(schema.tables)
    wanted = model.lower()
    return [t for t in schema.tables if wanted in (t.name.lower(), pascal_case(t.name).lower())]


def _presence_notes(table: FetchedTable) -> List[str]:
    m = build_model(table, get_settings().type_options())
    notes: List[str] = []
    base, create, update = m.base_view(), m.create_view(), m.update_view()
    for f in m.fields:
        if base[f.field_name] is ModelFieldPresence.UNDEFINED_FOR_SELECT_ALL:
            notes.append(f"- {f.field_name} is missing from SELECT * rows. (Column is INVISIBLE.)")
        p = create.get(f.field_name)
        if p is None:
            notes.append(f"- {f.field_name} is omitted from create data. (Column is GENERATED.)")
        elif p is CreateFieldPresence.OPTIONAL_AUTO_INCREMENT:
            notes.append(f"- {f.field_name} is optional in create data. (Column is auto_increment.)")
        elif p is CreateFieldPresence.OPTIONAL_HAS_DEFAULT:
            notes.append(f"- {f.field_name} is optional in create data. (Column has default value.)")
        if f.field_name not in update:
            reason = "primary key" if f.is_primary_key else "GENERATED"
            notes.append(f"- {f.field_name} is omitted from update data. (Column is {reason}.)")
        if f.is_unique:
            notes.append(f"- {f.field_name} is unique. (Key: UNI)")
    return notes


# ---------------------------
# Commands
# ---------------------------
@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Overrides LOG_LEVEL")):
    level = (log_level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))


@app.command(help="Fetch the current database schema and write a snapshot file.")
def fetch(out: Optional[str] = typer.Option(None, help="Snapshot path (default SCHEMA_SNAPSHOT_PATH)")):
    path = _snapshot_path(out)
    try:
        transport = create_transport()
    except EngineError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)

    async def _run() -> FetchedSchema:
        try:
            return await fetch_schema(transport)
        finally:
            await transport.dispose()

    schema = asyncio.run(_run())
    save_snapshot(schema, path)
    typer.echo(f"✅ Fetched {len(schema.tables)} tables from {schema.database_name}. Snapshot written to {path}")


@app.command(help="Validate a schema snapshot and resolve every model in it.")
def validate(path: Optional[str] = typer.Argument(None, help="Snapshot path")):
    path = _snapshot_path(path)
    schema = _require_snapshot(path)
    try:
        models = build_models(schema, get_settings().type_options())
    except DescriptorValidationError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    typer.echo(f"✅ {path} is valid ({len(models)} models).")


@app.command(help="Explain how each column of each model is typed and cast.")
def explain(
    path: Optional[str] = typer.Argument(None, help="Snapshot path"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model or table name"),
):
    schema = _require_snapshot(_snapshot_path(path))
    tables = _select_tables(schema, model)
    if not tables:
        typer.echo(f"❌ Model {model} not found in schema.")
        raise typer.Exit(code=2)

    options = get_settings().type_options()
    for table in tables:
        m = build_model(table, options)
        typer.echo(f"Model: {m.model_name} (table: {m.table_name})")
        for column, f in zip(table.columns, m.fields):
            semantic = f.semantic_type + (" | None" if f.is_nullable else "")
            typer.echo(f"  {f.field_name}: {semantic}  [cast: {f.cast_kind.value}; column: {f.column_type}]")
            typer.echo(f"      {explain_field_type(column, options)}")
        notes = _presence_notes(table)
        if notes:
            typer.echo("  Notes:")
            for n in notes:
                typer.echo(f"  {n}")
        typer.echo("")


if __name__ == "__main__":
    app()
