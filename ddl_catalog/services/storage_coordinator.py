import os
import shutil
from pathlib import Path
from urllib.parse import unquote, urlparse

import aiofiles.os as aios

from ddl_catalog.core.exceptions import (
    LocationAlreadyExistsException, StorageUnavailableException, ValidationException
)
from ddl_catalog.core.logging import getLogger
from ddl_catalog.models.catalog_models import CatalogIdentifier

logger = getLogger(__name__)

class StorageCoordinator:
    """Owns the on-disk lifecycle of managed table locations.

    Only the executor calls into this, and only for managed tables: external
    table locations and views never reach ``delete``.
    """

    def __init__(self, baseWarehousePath: str, defaultDatabase: str = "default"):
        self.baseWarehousePath = os.path.abspath(baseWarehousePath)
        self.defaultDatabase = defaultDatabase.lower()
        self._removeTree = aios.wrap(shutil.rmtree)

    def _resolvePath(self, relativeOrAbsolutePath: str) -> str:
        if "://" in relativeOrAbsolutePath or os.path.isabs(relativeOrAbsolutePath):
            if relativeOrAbsolutePath.startswith("file://"):
                return unquote(urlparse(relativeOrAbsolutePath).path)
            if "://" in relativeOrAbsolutePath:
                raise ValidationException(f"Unsupported location scheme: {relativeOrAbsolutePath}")
            return relativeOrAbsolutePath

        fullPath = os.path.abspath(os.path.join(self.baseWarehousePath, relativeOrAbsolutePath))
        if os.path.commonpath([fullPath, self.baseWarehousePath]) != self.baseWarehousePath:
            raise ValidationException(f"Path traversal attempt detected for relative path: {relativeOrAbsolutePath}")
        return fullPath

    def databaseLocation(self, database: str) -> str:
        database = database.lower()
        if database == self.defaultDatabase:
            return Path(self.baseWarehousePath).as_uri()
        return Path(self.baseWarehousePath, f"{database}.db").as_uri()

    def defaultLocation(self, identifier: CatalogIdentifier) -> str:
        if identifier.database == self.defaultDatabase:
            path = Path(self.baseWarehousePath, identifier.name)
        else:
            path = Path(self.baseWarehousePath, f"{identifier.database}.db", identifier.name)
        return path.as_uri()

    async def locationExists(self, location: str) -> bool:
        resolvedPath = self._resolvePath(location)
        try:
            return await aios.path.exists(resolvedPath)
        except OSError as e:
            raise StorageUnavailableException(location=location, reason=str(e))

    async def ensureExists(self, location: str, exclusive: bool = False) -> None:
        """Create ``location`` and its parents. With ``exclusive`` an existing
        location is a conflict instead of a no-op."""
        resolvedPath = self._resolvePath(location)
        try:
            await aios.makedirs(resolvedPath, exist_ok=not exclusive)
        except FileExistsError:
            raise LocationAlreadyExistsException(location=location)
        except OSError as e:
            raise StorageUnavailableException(location=location, reason=str(e))
        logger.debug("Ensured location %s", resolvedPath)

    async def delete(self, location: str) -> None:
        resolvedPath = self._resolvePath(location)
        try:
            if not await aios.path.exists(resolvedPath):
                logger.debug("Location %s already absent", resolvedPath)
                return
            if await aios.path.isdir(resolvedPath):
                await self._removeTree(resolvedPath)
            else:
                await aios.remove(resolvedPath)
        except OSError as e:
            raise StorageUnavailableException(location=location, reason=str(e))
        logger.debug("Deleted location %s", resolvedPath)

    async def move(self, source: str, destination: str) -> None:
        sourcePath = self._resolvePath(source)
        destinationPath = self._resolvePath(destination)
        try:
            if await aios.path.exists(destinationPath):
                raise LocationAlreadyExistsException(location=destination)
            if not await aios.path.exists(sourcePath):
                logger.debug("Nothing to move at %s", sourcePath)
                return
            await aios.makedirs(os.path.dirname(destinationPath), exist_ok=True)
            await aios.rename(sourcePath, destinationPath)
        except OSError as e:
            raise StorageUnavailableException(location=source, reason=str(e))
        logger.debug("Moved location %s to %s", sourcePath, destinationPath)
