# modelgen/model_builder.py
from __future__ import annotations
import logging
from typing import Dict, List, Optional

from core.errors import DescriptorValidationError
from modelgen.meta_models import FetchedSchema, FetchedTable, ModelDescriptor, TypeOptions
from modelgen.naming import pascal_case, snake_case
from modelgen.type_mapping import resolve_field

logger = logging.getLogger(__name__)


def build_model(table: FetchedTable, options: Optional[TypeOptions] = None) -> ModelDescriptor:
    """
    Resolve every column of `table`, in column order, into a ModelDescriptor.
    No I/O and no caching: calling it twice gives equal results.
    """
    options = options or TypeOptions()
    if not table.columns:
        raise DescriptorValidationError(f"Table {table.name} has no columns.")

    fields = [resolve_field(col, options) for col in table.columns]

    seen: Dict[str, str] = {}
    for f in fields:
        if f.field_name in seen:
            raise DescriptorValidationError(
                f"Columns {seen[f.field_name]!r} and {f.column_name!r} of {table.name} "
                f"both map to field name {f.field_name!r}."
            )
        seen[f.field_name] = f.column_name

    model = ModelDescriptor(
        model_name=pascal_case(table.name),
        table_name=table.name,
        accessor_name=snake_case(table.name),
        fields=fields,
    )
    if not model.primary_key_fields:
        logger.warning("Model %s has no primary key; update/delete by primary key unavailable", model.model_name)
    return model


def build_models(schema: FetchedSchema, options: Optional[TypeOptions] = None) -> List[ModelDescriptor]:
    models = [build_model(t, options) for t in schema.tables]
    names: Dict[str, str] = {}
    for m in models:
        if m.model_name in names:
            raise DescriptorValidationError(
                f"Tables {names[m.model_name]!r} and {m.table_name!r} both map to model name {m.model_name!r}."
            )
        names[m.model_name] = m.table_name
    logger.info("Built %d model descriptors for %s", len(models), schema.database_name)
    return models
