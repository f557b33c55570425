from typing import Any, List, Optional, Sequence

import pytest

from core.ports import ExecutedQuery
from modelgen.meta_models import ColumnMetadata, FetchedTable, TypeOptions
from modelgen.model_builder import build_model

_ABSENT = object()


def make_column(
    name: str,
    type_: str,
    *,
    null: str = "NO",
    key: str = "",
    default: Any = _ABSENT,
    extra: str = "",
    comment: str = "",
) -> ColumnMetadata:
    """A SHOW FULL COLUMNS row. Leave `default` out to simulate a missing Default key."""
    row = {"Field": name, "Type": type_, "Null": null, "Key": key, "Extra": extra, "Comment": comment}
    if default is not _ABSENT:
        row["Default"] = default
    return ColumnMetadata.model_validate(row)


class FakeTransport:
    """Records every statement; replies with queued results (or an empty result)."""

    def __init__(self, results: Optional[Sequence[ExecutedQuery]] = None, error: Optional[Exception] = None):
        self.calls: List[tuple] = []
        self.results = list(results or [])
        self.error = error

    async def execute(self, sql_text, params):
        self.calls.append((sql_text, list(params)))
        if self.error is not None:
            raise self.error
        if self.results:
            return self.results.pop(0)
        return ExecutedQuery()

    @property
    def last_sql(self) -> str:
        return self.calls[-1][0]

    @property
    def last_params(self) -> list:
        return self.calls[-1][1]


USER_COLUMNS = [
    dict(name="id", type_="int unsigned", key="PRI", default=None, extra="auto_increment"),
    dict(name="email", type_="varchar(255)", key="UNI", default=None),
    dict(name="display_name", type_="varchar(100)", null="YES", default=None),
    dict(name="is_active", type_="tinyint(1)", default="1"),
    dict(name="settings", type_="json", null="YES", default=None, comment="@json(dict[str, Any])"),
    dict(name="roles", type_="set('admin','editor')", default="", comment="user roles @set"),
    dict(name="createdAt", type_="datetime", default="CURRENT_TIMESTAMP", extra="DEFAULT_GENERATED"),
    dict(name="search_name", type_="varchar(200)", null="YES", default=None, extra="VIRTUAL GENERATED"),
    dict(name="secret", type_="varchar(50)", null="YES", default=None, extra="INVISIBLE"),
]


@pytest.fixture
def options():
    return TypeOptions()


@pytest.fixture
def user_table():
    return FetchedTable(name="user", columns=[make_column(**c) for c in USER_COLUMNS])


@pytest.fixture
def membership_table():
    return FetchedTable(
        name="group_membership",
        columns=[
            make_column("user_id", "int", key="PRI"),
            make_column("group_id", "int", key="PRI"),
            make_column("role", "enum('owner','member')", default="member"),
        ],
    )


@pytest.fixture
def user_model(user_table, options):
    return build_model(user_table, options)


@pytest.fixture
def membership_model(membership_table, options):
    return build_model(membership_table, options)


@pytest.fixture
def transport():
    return FakeTransport()
