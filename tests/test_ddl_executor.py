"""DDL command tests: managed/external drops, kind misuse, renames and properties."""

import asyncio
from pathlib import Path

import pytest

from ddl_catalog.core.exceptions import (
    EntryAlreadyExistsException, NoSuchDatabaseException, StorageUnavailableException
)
from ddl_catalog.models.catalog_models import (
    AlterTableRenameCommand, AlterTableSetPropertiesCommand, AlterTableUnsetPropertiesCommand,
    AlterViewRenameCommand, AlterViewSetPropertiesCommand, AlterViewUnsetPropertiesCommand,
    CatalogEntry, CatalogIdentifier, CreateTableCommand, CreateViewCommand, DropTableCommand,
    DropViewCommand, EntryKind, TableType
)


def ident(name, database="default"):
    return CatalogIdentifier(database=database, name=name)


def managed(name, **kwargs):
    return CreateTableCommand(identifier=ident(name), tableType=TableType.MANAGED, **kwargs)


def external(name, location, **kwargs):
    return CreateTableCommand(identifier=ident(name), tableType=TableType.EXTERNAL, location=location, **kwargs)


def view(name, **kwargs):
    return CreateViewCommand(identifier=ident(name), viewText="SELECT * FROM tab1", **kwargs)


def populate(directory: Path):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "part-00000.parquet").write_bytes(b"1,3")


def assert_wrong_kind(result, message):
    assert not result.success
    assert result.error.type == "WrongEntityKindException"
    assert result.error.code == 400
    assert message in result.error.message


@pytest.mark.asyncio
async def test_drop_managed_table_deletes_its_location(executor, warehouse):
    tableDir = warehouse / "tab1"
    assert not tableDir.exists()

    created = await executor.execute(managed("tab1"))
    assert created.success
    assert created.entry.location == tableDir.as_uri()
    assert created.entry.tableType == TableType.MANAGED
    assert tableDir.is_dir()

    populate(tableDir)
    dropped = await executor.execute(DropTableCommand(identifier=ident("tab1")))

    assert dropped.success
    assert not dropped.skipped
    assert not tableDir.exists()
    assert not await executor.store.exists(ident("tab1"))

    assert (await executor.execute(DropTableCommand(identifier=ident("tab1"), ifExists=True))).skipped
    assert (await executor.execute(DropViewCommand(identifier=ident("tab1"), ifExists=True))).skipped


@pytest.mark.asyncio
async def test_drop_external_table_keeps_its_location(executor, tmp_path):
    dataDir = tmp_path / "external-data"
    populate(dataDir)

    created = await executor.execute(external("tab1", str(dataDir)))
    assert created.success
    assert created.entry.location == str(dataDir)

    dropped = await executor.execute(DropTableCommand(identifier=ident("tab1")))

    assert dropped.success
    assert not await executor.store.exists(ident("tab1"))
    assert list(dataDir.iterdir())


@pytest.mark.asyncio
async def test_create_table_and_view_with_comment(executor):
    await executor.execute(managed("tab1", comment="BLABLA"))
    await executor.execute(view("view1", comment="no comment"))

    table = await executor.describe(ident("tab1"))
    viewEntry = await executor.describe(ident("view1"))
    assert table.properties.get("comment") == "BLABLA"
    assert viewEntry.properties.get("comment") == "no comment"


@pytest.mark.asyncio
async def test_drop_view_leaves_tables_alone(executor, warehouse):
    await executor.execute(managed("tab1"))
    result = await executor.execute(view("view1"))
    assert result.entry.location is None
    assert not (warehouse / "view1").exists()

    assert (await executor.execute(DropViewCommand(identifier=ident("view1")))).success

    assert (warehouse / "tab1").is_dir()
    assert await executor.store.exists(ident("tab1"))
    assert (await executor.execute(DropViewCommand(identifier=ident("view1"), ifExists=True))).skipped


@pytest.mark.asyncio
async def test_alter_view_rename(executor):
    await executor.execute(managed("tab1"))
    await executor.execute(view("view1"))
    assert await executor.store.exists(ident("view1"))
    assert not await executor.store.exists(ident("view2"))

    result = await executor.execute(AlterViewRenameCommand(identifier=ident("view1"), newIdentifier=ident("view2")))

    assert result.success
    assert result.entry.identifier == ident("view2")
    assert result.entry.kind == EntryKind.VIEW
    assert not await executor.store.exists(ident("view1"))
    assert await executor.store.exists(ident("view2"))


@pytest.mark.asyncio
async def test_alter_view_set_and_unset_properties(executor):
    await executor.execute(view("view1"))
    assert (await executor.describe(ident("view1"))).properties == {}

    setAn = AlterViewSetPropertiesCommand(identifier=ident("view1"), properties={"p": "an"})
    assert (await executor.execute(setAn)).entry.properties == {"p": "an"}
    assert (await executor.execute(setAn)).entry.properties == {"p": "an"}

    setB = AlterViewSetPropertiesCommand(identifier=ident("view1"), properties={"p": "b"})
    assert (await executor.execute(setB)).entry.properties == {"p": "b"}

    unsetP = AlterViewUnsetPropertiesCommand(identifier=ident("view1"), propertyKeys=["p"])
    assert (await executor.execute(unsetP)).entry.properties == {}

    result = await executor.execute(unsetP)
    assert not result.success
    assert result.error.type == "NoSuchPropertyException"
    assert "attempted to unset non-existent property 'p' in table '`view1`'" in result.error.message

    relaxed = AlterViewUnsetPropertiesCommand(identifier=ident("view1"), propertyKeys=["p"], ifExists=True)
    assert (await executor.execute(relaxed)).success


@pytest.mark.asyncio
async def test_alter_views_and_alter_table_misuse(executor):
    await executor.execute(managed("tab1"))
    await executor.execute(view("view1"))

    tableMisuse = "Cannot alter a table with ALTER VIEW. Please use ALTER TABLE instead"
    assert_wrong_kind(
        await executor.execute(AlterViewRenameCommand(identifier=ident("tab1"), newIdentifier=ident("view2"))),
        tableMisuse
    )
    assert_wrong_kind(
        await executor.execute(AlterViewSetPropertiesCommand(identifier=ident("tab1"), properties={"p": "an"})),
        tableMisuse
    )
    assert_wrong_kind(
        await executor.execute(AlterViewUnsetPropertiesCommand(identifier=ident("tab1"), propertyKeys=["p"])),
        tableMisuse
    )

    viewMisuse = "Cannot alter a view with ALTER TABLE. Please use ALTER VIEW instead"
    assert_wrong_kind(
        await executor.execute(AlterTableRenameCommand(identifier=ident("view1"), newIdentifier=ident("view2"))),
        viewMisuse
    )
    assert_wrong_kind(
        await executor.execute(AlterTableSetPropertiesCommand(identifier=ident("view1"), properties={"p": "an"})),
        viewMisuse
    )
    assert_wrong_kind(
        await executor.execute(AlterTableUnsetPropertiesCommand(identifier=ident("view1"), propertyKeys=["p"])),
        viewMisuse
    )

    assert await executor.store.exists(ident("tab1"))
    assert await executor.store.exists(ident("view1"))
    assert not await executor.store.exists(ident("view2"))
    assert (await executor.describe(ident("tab1"))).properties == {}
    assert (await executor.describe(ident("view1"))).properties == {}


@pytest.mark.asyncio
async def test_drop_table_using_drop_view(executor, warehouse):
    await executor.execute(managed("tab1"))

    result = await executor.execute(DropViewCommand(identifier=ident("tab1")))

    assert_wrong_kind(result, "Cannot drop a table with DROP VIEW. Please use DROP TABLE instead")
    assert await executor.store.exists(ident("tab1"))
    assert (warehouse / "tab1").is_dir()


@pytest.mark.asyncio
async def test_drop_view_using_drop_table(executor):
    await executor.execute(managed("tab1"))
    await executor.execute(view("view1"))

    result = await executor.execute(DropTableCommand(identifier=ident("view1")))
    assert_wrong_kind(result, "Cannot drop a view with DROP TABLE. Please use DROP VIEW instead")

    result = await executor.execute(DropTableCommand(identifier=ident("view1"), ifExists=True))
    assert_wrong_kind(result, "Cannot drop a view with DROP TABLE. Please use DROP VIEW instead")
    assert await executor.store.exists(ident("view1"))


@pytest.mark.asyncio
async def test_drop_missing_entries(executor):
    for command in (DropTableCommand, DropViewCommand):
        relaxed = await executor.execute(command(identifier=ident("missing"), ifExists=True))
        assert relaxed.success
        assert relaxed.skipped

        strict = await executor.execute(command(identifier=ident("missing")))
        assert not strict.success
        assert strict.error.type == "NoSuchEntryException"
        assert strict.error.code == 404


@pytest.mark.asyncio
async def test_alter_missing_entry(executor):
    result = await executor.execute(AlterViewRenameCommand(identifier=ident("missing"), newIdentifier=ident("x")))
    assert result.error.type == "NoSuchEntryException"


@pytest.mark.asyncio
async def test_rename_onto_existing_entry_fails(executor):
    await executor.execute(view("view1"))
    await executor.execute(view("view2"))

    result = await executor.execute(AlterViewRenameCommand(identifier=ident("view1"), newIdentifier=ident("view2")))

    assert result.error.type == "EntryAlreadyExistsException"
    assert await executor.store.exists(ident("view1"))


@pytest.mark.asyncio
async def test_alter_table_rename_moves_managed_location(executor, warehouse):
    await executor.execute(managed("tab1"))
    populate(warehouse / "tab1")

    result = await executor.execute(AlterTableRenameCommand(identifier=ident("tab1"), newIdentifier=ident("tab2")))

    assert result.success
    assert result.entry.location == (warehouse / "tab2").as_uri()
    assert (warehouse / "tab2" / "part-00000.parquet").exists()
    assert not (warehouse / "tab1").exists()

    recreated = await executor.execute(managed("tab1"))
    assert recreated.success
    assert recreated.entry.location == (warehouse / "tab1").as_uri()
    assert (await executor.execute(DropTableCommand(identifier=ident("tab1")))).success

    assert (warehouse / "tab2" / "part-00000.parquet").exists()
    assert (await executor.describe(ident("tab2"))).location == (warehouse / "tab2").as_uri()


@pytest.mark.asyncio
async def test_failed_table_rename_moves_location_back(executor, warehouse, monkeypatch):
    await executor.execute(managed("tab1"))
    populate(warehouse / "tab1")

    async def refuse(*args, **kwargs):
        raise EntryAlreadyExistsException(identifier=ident("tab2"))

    monkeypatch.setattr(executor.store, "rename", refuse)
    result = await executor.execute(AlterTableRenameCommand(identifier=ident("tab1"), newIdentifier=ident("tab2")))

    assert result.error.type == "EntryAlreadyExistsException"
    assert (warehouse / "tab1" / "part-00000.parquet").exists()
    assert not (warehouse / "tab2").exists()


@pytest.mark.asyncio
async def test_create_conflicts_and_if_not_exists(executor):
    await executor.execute(view("view1"))

    conflict = await executor.execute(managed("view1"))
    assert conflict.error.type == "EntryAlreadyExistsException"
    assert conflict.error.code == 409

    relaxed = await executor.execute(managed("view1", ifNotExists=True))
    assert relaxed.success
    assert relaxed.skipped
    assert relaxed.entry.kind == EntryKind.VIEW


@pytest.mark.asyncio
async def test_managed_table_rejects_location(executor, tmp_path):
    result = await executor.execute(managed("tab1", location=str(tmp_path / "elsewhere")))

    assert result.error.type == "ValidationException"
    assert not await executor.store.exists(ident("tab1"))


@pytest.mark.asyncio
async def test_external_table_requires_location(executor):
    result = await executor.execute(CreateTableCommand(identifier=ident("tab1"), tableType=TableType.EXTERNAL))

    assert result.error.type == "ValidationException"


@pytest.mark.asyncio
async def test_create_in_missing_database(executor, warehouse):
    result = await executor.execute(CreateTableCommand(identifier=ident("tab1", database="nowhere")))

    assert result.error.type == "NoSuchDatabaseException"
    assert not (warehouse / "nowhere.db").exists()


@pytest.mark.asyncio
async def test_managed_table_in_other_database(executor, warehouse):
    database = await executor.createDatabase("Sales")
    assert database.location == (warehouse / "sales.db").as_uri()

    result = await executor.execute(CreateTableCommand(identifier=ident("orders", database="sales")))

    assert result.entry.location == (warehouse / "sales.db" / "orders").as_uri()
    assert (warehouse / "sales.db" / "orders").is_dir()


@pytest.mark.asyncio
async def test_storage_failure_on_drop_keeps_entry(executor, warehouse, monkeypatch):
    await executor.execute(managed("tab1"))
    realDelete = executor.storage.delete

    async def unreachable(location):
        raise StorageUnavailableException(location=location, reason="mount is gone")

    monkeypatch.setattr(executor.storage, "delete", unreachable)
    with pytest.raises(StorageUnavailableException):
        await executor.execute(DropTableCommand(identifier=ident("tab1")))
    assert await executor.store.exists(ident("tab1"))

    monkeypatch.setattr(executor.storage, "delete", realDelete)
    assert (await executor.execute(DropTableCommand(identifier=ident("tab1")))).success
    assert not (warehouse / "tab1").exists()


@pytest.mark.asyncio
async def test_storage_failure_on_create_inserts_nothing(executor, monkeypatch):
    async def unreachable(location, exclusive=False):
        raise StorageUnavailableException(location=location)

    monkeypatch.setattr(executor.storage, "ensureExists", unreachable)
    with pytest.raises(StorageUnavailableException):
        await executor.execute(managed("tab1"))
    assert not await executor.store.exists(ident("tab1"))


@pytest.mark.asyncio
async def test_external_and_view_drops_never_touch_storage(executor, tmp_path, monkeypatch):
    deleted = []

    async def recordingDelete(location):
        deleted.append(location)

    monkeypatch.setattr(executor.storage, "delete", recordingDelete)
    await executor.execute(external("tab1", str(tmp_path / "data")))
    await executor.execute(view("view1"))
    await executor.execute(DropTableCommand(identifier=ident("tab1")))
    await executor.execute(DropViewCommand(identifier=ident("view1")))

    assert deleted == []


@pytest.mark.asyncio
async def test_qualify_uses_default_database(executor):
    assert executor.qualify("Tab1") == ident("tab1")
    assert executor.qualify("Sales.Orders") == ident("orders", database="sales")
    assert executor.qualify("orders", "sales") == ident("orders", database="sales")


@pytest.mark.asyncio
async def test_drop_table_spares_a_view_recreated_meanwhile(executor, warehouse, monkeypatch):
    await executor.execute(managed("tab1"))
    realDelete = executor.storage.delete

    async def deleteThenRecreateAsView(location):
        await realDelete(location)
        await executor.store.remove(ident("tab1"))
        assert (await executor.execute(view("tab1"))).success

    monkeypatch.setattr(executor.storage, "delete", deleteThenRecreateAsView)
    result = await executor.execute(DropTableCommand(identifier=ident("tab1")))

    assert_wrong_kind(result, "Cannot drop a view with DROP TABLE. Please use DROP VIEW instead")
    assert (await executor.describe(ident("tab1"))).kind == EntryKind.VIEW


@pytest.mark.asyncio
async def test_concurrent_managed_creates_have_one_winner(executor, warehouse):
    results = await asyncio.gather(
        executor.execute(managed("tab1", comment="first")),
        executor.execute(managed("tab1", comment="second")),
    )

    assert sorted(r.success for r in results) == [False, True]
    loser = next(r for r in results if not r.success)
    assert loser.error.type in ("EntryAlreadyExistsException", "LocationAlreadyExistsException")
    winner = next(r for r in results if r.success)
    assert (await executor.describe(ident("tab1"))).properties == winner.entry.properties
    assert (warehouse / "tab1").is_dir()


@pytest.mark.asyncio
async def test_managed_create_refuses_existing_location(executor, warehouse):
    populate(warehouse / "tab1")

    result = await executor.execute(managed("tab1"))

    assert result.error.type == "LocationAlreadyExistsException"
    assert result.error.code == 409
    assert not await executor.store.exists(ident("tab1"))
    assert (warehouse / "tab1" / "part-00000.parquet").exists()


@pytest.mark.asyncio
async def test_failed_managed_insert_removes_new_location(executor, warehouse, monkeypatch):
    async def databaseDropped(entry):
        raise NoSuchDatabaseException(database=entry.identifier.database)

    monkeypatch.setattr(executor.store, "insert", databaseDropped)
    result = await executor.execute(managed("tab1"))

    assert result.error.type == "NoSuchDatabaseException"
    assert not (warehouse / "tab1").exists()


@pytest.mark.asyncio
async def test_managed_create_losing_to_a_view_removes_new_location(executor, warehouse, monkeypatch):
    realInsert = executor.store.insert

    async def viewInsertedFirst(entry):
        await realInsert(CatalogEntry(identifier=entry.identifier, kind=EntryKind.VIEW, viewText="SELECT 1"))
        return await realInsert(entry)

    monkeypatch.setattr(executor.store, "insert", viewInsertedFirst)
    result = await executor.execute(managed("tab1", ifNotExists=True))

    assert result.success
    assert result.skipped
    assert result.entry.kind == EntryKind.VIEW
    assert not (warehouse / "tab1").exists()


@pytest.mark.asyncio
async def test_unsupported_command_fails_without_running(executor):
    class TruncateTableCommand:
        identifier = ident("tab1")

    result = await executor.execute(TruncateTableCommand())

    assert not result.success
    assert result.action == "TruncateTableCommand"
    assert result.error.type == "BadRequestException"
    assert "TruncateTableCommand" in result.error.message
