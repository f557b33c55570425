import pytest
import pytest_asyncio

pytest.importorskip("aiosqlite")

from sqlalchemy.ext.asyncio import create_async_engine

from adapters.sqlalchemy_transport import SqlAlchemyTransport
from core.errors import TransportFailure
from engine.runtime import Database
from engine.sql import raw
from modelgen.meta_models import FetchedTable
from modelgen.model_builder import build_model
from tests.conftest import make_column

NOTE_DDL = (
    "CREATE TABLE `note` ("
    " `id` INTEGER PRIMARY KEY AUTOINCREMENT,"
    " `title` TEXT NOT NULL,"
    " `tags` TEXT NOT NULL DEFAULT '',"
    " `meta` TEXT NULL,"
    " `pinned` INTEGER NOT NULL DEFAULT 0"
    ")"
)


@pytest.fixture
def note_model():
    return build_model(FetchedTable(name="note", columns=[
        make_column("id", "int", key="PRI", extra="auto_increment"),
        make_column("title", "varchar(200)"),
        make_column("tags", "set('a','b','c')", default="", comment="@set"),
        make_column("meta", "json", null="YES", default=None, comment="@json(dict[str, int])"),
        make_column("pinned", "tinyint(1)", default="0"),
    ]))


@pytest_asyncio.fixture
async def transport(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}")
    t = SqlAlchemyTransport(engine)
    await t.execute(NOTE_DDL, [])
    yield t
    await t.dispose()


@pytest.mark.asyncio
async def test_crud_round_trip(transport, note_model):
    notes = Database(transport, [note_model]).model("note")

    assert await notes.create({"title": "first", "tags": {"b", "a"}, "meta": {"views": 1}}) == {"id": 1}
    assert await notes.create({"title": "second", "pinned": True}) == {"id": 2}

    assert await notes.find_unique({"id": 1}) == {
        "id": 1,
        "title": "first",
        "tags": {"a", "b"},
        "meta": {"views": 1},
        "pinned": False,
    }
    assert await notes.count() == 2
    assert await notes.count(where={"pinned": True}) == 1

    result = await notes.update({"title": "renamed", "meta": None}, where={"id": 1})
    assert result.rows_affected == 1

    rows = await notes.find_many(order_by={"id": "DESC"}, select=["id", "title", "meta"])
    assert rows == [
        {"id": 2, "title": "second", "meta": None},
        {"id": 1, "title": "renamed", "meta": None},
    ]

    assert (await notes.delete({"id": 2})).rows_affected == 1
    assert await notes.find_first(where={"id": 2}) is None
    assert await notes.count() == 1


@pytest.mark.asyncio
async def test_paging_against_a_real_database(transport, note_model):
    notes = Database(transport, [note_model]).model("note")
    for i in range(5):
        await notes.create({"title": f"n{i}"})
    page = await notes.find_many(order_by={"id": "ASC"}, paging={"page": 2, "rpp": 2}, select=["title"])
    assert page == [{"title": "n2"}, {"title": "n3"}]


@pytest.mark.asyncio
async def test_transaction_rolls_back(transport, note_model):
    with pytest.raises(RuntimeError):
        async with transport.begin() as tx:
            await Database(tx, [note_model]).model("note").create({"title": "lost"})
            raise RuntimeError("abort")

    assert await Database(transport, [note_model]).model("note").count() == 0


@pytest.mark.asyncio
async def test_driver_errors_become_transport_failures(transport, note_model):
    seen = []
    notes = Database(transport, [note_model], error_logger=seen.append).model("note")
    with pytest.raises(TransportFailure):
        await notes.create({"tags": {"a"}})  # title is NOT NULL
    assert "INSERT INTO `note`" in seen[0].query.sql


@pytest.mark.asyncio
async def test_bigint_reads_back_as_text(transport):
    await transport.execute("CREATE TABLE `acct` (`id` INTEGER PRIMARY KEY, `balance` BIGINT NOT NULL)", [])
    acct_model = build_model(FetchedTable(name="acct", columns=[
        make_column("id", "int", key="PRI"),
        make_column("balance", "bigint"),
    ]))
    balance = acct_model.field("balance")
    assert (balance.cast_kind.value, balance.semantic_type) == ("string", "str")

    db = Database(transport, [acct_model])
    accounts = db.model("acct")
    await accounts.create({"id": 1, "balance": "9007199254740993"})

    assert await accounts.find_unique({"id": 1}) == {"id": 1, "balance": "9007199254740993"}
    assert await db.execute_select_first(raw("SELECT `balance` FROM `acct`")) == {"balance": "9007199254740993"}
