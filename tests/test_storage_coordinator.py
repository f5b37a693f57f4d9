import aiofiles.os as aios
import pytest

from ddl_catalog.core.exceptions import (
    LocationAlreadyExistsException, StorageUnavailableException, ValidationException
)
from ddl_catalog.models.catalog_models import CatalogIdentifier


def test_default_location_for_default_database(storage, warehouse):
    location = storage.defaultLocation(CatalogIdentifier(database="default", name="Tab1"))
    assert location == (warehouse / "tab1").as_uri()


def test_default_location_for_other_database(storage, warehouse):
    location = storage.defaultLocation(CatalogIdentifier(database="sales", name="orders"))
    assert location == (warehouse / "sales.db" / "orders").as_uri()


def test_resolve_path_rejects_traversal(storage):
    with pytest.raises(ValidationException):
        storage._resolvePath("../outside")


def test_resolve_path_rejects_unknown_scheme(storage):
    with pytest.raises(ValidationException):
        storage._resolvePath("s3://bucket/tab1")


@pytest.mark.asyncio
async def test_ensure_exists_is_idempotent(storage, warehouse):
    location = (warehouse / "sales.db" / "orders").as_uri()

    await storage.ensureExists(location)
    await storage.ensureExists(location)

    assert (warehouse / "sales.db" / "orders").is_dir()
    assert await storage.locationExists(location)


@pytest.mark.asyncio
async def test_delete_removes_everything_below(storage, warehouse):
    tableDir = warehouse / "tab1"
    (tableDir / "part=1").mkdir(parents=True)
    (tableDir / "part=1" / "data.parquet").write_bytes(b"x")

    await storage.delete(tableDir.as_uri())

    assert not tableDir.exists()
    assert not await storage.locationExists(tableDir.as_uri())


@pytest.mark.asyncio
async def test_delete_missing_location_is_noop(storage, warehouse):
    await storage.delete((warehouse / "never-created").as_uri())


@pytest.mark.asyncio
async def test_relative_locations_resolve_under_warehouse(storage, warehouse):
    await storage.ensureExists("relative/tab")
    assert (warehouse / "relative" / "tab").is_dir()


@pytest.mark.asyncio
async def test_filesystem_errors_become_storage_unavailable(storage, warehouse, monkeypatch):
    async def unreachable(*args, **kwargs):
        raise PermissionError("mount is gone")

    monkeypatch.setattr(aios, "makedirs", unreachable)
    with pytest.raises(StorageUnavailableException) as excInfo:
        await storage.ensureExists((warehouse / "tab1").as_uri())
    assert "mount is gone" in excInfo.value.message
    assert excInfo.value.status_code == 503


@pytest.mark.asyncio
async def test_delete_failure_becomes_storage_unavailable(storage, warehouse, monkeypatch):
    tableDir = warehouse / "tab1"
    tableDir.mkdir()

    async def unreachable(*args, **kwargs):
        raise OSError("device not ready")

    monkeypatch.setattr(storage, "_removeTree", unreachable)
    with pytest.raises(StorageUnavailableException):
        await storage.delete(tableDir.as_uri())
    assert tableDir.exists()


@pytest.mark.asyncio
async def test_exclusive_ensure_exists_refuses_existing_location(storage, warehouse):
    tableDir = warehouse / "tab1"
    tableDir.mkdir(parents=True)
    (tableDir / "data.parquet").write_bytes(b"x")

    with pytest.raises(LocationAlreadyExistsException) as excInfo:
        await storage.ensureExists(tableDir.as_uri(), exclusive=True)
    assert excInfo.value.status_code == 409
    assert (tableDir / "data.parquet").exists()


@pytest.mark.asyncio
async def test_move_carries_contents_to_new_location(storage, warehouse):
    source = warehouse / "tab1"
    (source / "part=1").mkdir(parents=True)
    (source / "part=1" / "data.parquet").write_bytes(b"x")
    destination = warehouse / "sales.db" / "orders"

    await storage.move(source.as_uri(), destination.as_uri())

    assert not source.exists()
    assert (destination / "part=1" / "data.parquet").read_bytes() == b"x"


@pytest.mark.asyncio
async def test_move_onto_existing_location_fails(storage, warehouse):
    (warehouse / "tab1").mkdir(parents=True)
    (warehouse / "tab2").mkdir()

    with pytest.raises(LocationAlreadyExistsException):
        await storage.move((warehouse / "tab1").as_uri(), (warehouse / "tab2").as_uri())
    assert (warehouse / "tab1").is_dir()
