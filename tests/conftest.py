import pytest
import pytest_asyncio

from ddl_catalog.crud.catalog_store import CatalogStore
from ddl_catalog.services.ddl_executor import DdlExecutor
from ddl_catalog.services.storage_coordinator import StorageCoordinator

IN_MEMORY_URL = "sqlite+aiosqlite://"


@pytest.fixture
def warehouse(tmp_path):
    path = tmp_path / "warehouse"
    path.mkdir()
    return path


@pytest.fixture
def storage(warehouse):
    return StorageCoordinator(str(warehouse))


@pytest_asyncio.fixture
async def store(storage):
    catalogStore = CatalogStore(
        IN_MEMORY_URL,
        defaultDatabaseLocation=storage.databaseLocation("default")
    )
    await catalogStore.initialize()
    yield catalogStore
    await catalogStore.close()


@pytest.fixture
def executor(store, storage):
    return DdlExecutor(store, storage)
