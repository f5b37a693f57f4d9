import asyncio
import time
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.future import select

from ddl_catalog.core.exceptions import (
    DatabaseAlreadyExistsException, DatabaseNotEmptyException, EntryAlreadyExistsException,
    NoSuchDatabaseException, NoSuchEntryException, NoSuchPropertyException, ValidationException,
    WrongEntityKindException
)
from ddl_catalog.core.logging import getLogger
from ddl_catalog.db.models_db import Base, DatabaseModel, EntryModel
from ddl_catalog.db.session import createEngine, createSessionFactory
from ddl_catalog.models.catalog_models import (
    CatalogEntry, CatalogIdentifier, Database, EntryKind, TableType
)

logger = getLogger(__name__)

def currentTimeMs() -> int:
    return int(time.time() * 1000)

def toEntry(database: str, dbEntry: EntryModel) -> CatalogEntry:
    return CatalogEntry(
        identifier=CatalogIdentifier(database=database, name=dbEntry.name),
        kind=EntryKind(dbEntry.kind),
        tableType=TableType(dbEntry.tableType) if dbEntry.tableType else None,
        location=dbEntry.location,
        properties=dict(dbEntry.properties or {}),
        viewText=dbEntry.viewText,
        createdAtMs=dbEntry.createdAtMs,
        lastDdlTimeMs=dbEntry.lastDdlTimeMs,
    )

def toDatabase(dbDatabase: DatabaseModel) -> Database:
    return Database(
        name=dbDatabase.name,
        location=dbDatabase.location,
        properties=dict(dbDatabase.properties or {})
    )


class CatalogStore:
    """Authoritative mapping from qualified identifiers to catalog entries.

    One instance is built per application (see ``main.lifespan``) and handed to
    whoever needs it. Every mutation runs under a single store-wide lock and in
    its own transaction, so readers see either the state before a mutation or
    the state after it, never a mix. ``rename`` checks the destination and moves
    the key inside one critical section, which makes an ``insert`` racing a
    ``rename`` onto the same identifier resolve to exactly one winner.
    """

    def __init__(self, databaseUrl: str, defaultDatabase: str = "default", defaultDatabaseLocation: str = ""):
        self.defaultDatabase = defaultDatabase.lower()
        self.defaultDatabaseLocation = defaultDatabaseLocation
        self.engine: AsyncEngine = createEngine(databaseUrl)
        self.sessionFactory = createSessionFactory(self.engine)
        self.lock = asyncio.Lock()

    async def initialize(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        if await self.getDatabase(self.defaultDatabase) is None:
            try:
                await self.createDatabase(self.defaultDatabase, self.defaultDatabaseLocation)
            except DatabaseAlreadyExistsException:
                pass
        logger.info("Catalog store ready (default database '%s')", self.defaultDatabase)

    async def close(self) -> None:
        await self.engine.dispose()

    async def _getDatabaseModel(self, db: AsyncSession, name: str) -> Optional[DatabaseModel]:
        stmt = select(DatabaseModel).where(DatabaseModel.name == name.lower())
        result = await db.execute(stmt)
        return result.scalars().first()

    async def _getEntryModel(self, db: AsyncSession, identifier: CatalogIdentifier) -> Optional[EntryModel]:
        stmt = select(EntryModel).join(
            DatabaseModel, EntryModel.databaseId == DatabaseModel.id
        ).where(
            DatabaseModel.name == identifier.database,
            EntryModel.name == identifier.name
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    def _checkKind(self, dbEntry: EntryModel, expectedKind: Optional[EntryKind], kindMismatchMessage: str) -> None:
        if expectedKind is not None and dbEntry.kind != expectedKind.value:
            raise WrongEntityKindException(kindMismatchMessage)

    # databases

    async def createDatabase(self, name: str, location: str, properties: Optional[Dict[str, str]] = None) -> Database:
        name = name.lower()
        async with self.lock, self.sessionFactory() as db:
            if await self._getDatabaseModel(db, name):
                raise DatabaseAlreadyExistsException(database=name)
            dbDatabase = DatabaseModel(name=name, location=location, properties=properties or {})
            try:
                db.add(dbDatabase)
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise DatabaseAlreadyExistsException(database=name)
            return toDatabase(dbDatabase)

    async def getDatabase(self, name: str) -> Optional[Database]:
        async with self.sessionFactory() as db:
            dbDatabase = await self._getDatabaseModel(db, name)
            return toDatabase(dbDatabase) if dbDatabase else None

    async def listDatabases(self) -> List[Database]:
        async with self.sessionFactory() as db:
            result = await db.execute(select(DatabaseModel).order_by(DatabaseModel.name))
            return [toDatabase(d) for d in result.scalars().all()]

    async def dropDatabase(self, name: str) -> None:
        name = name.lower()
        if name == self.defaultDatabase:
            raise ValidationException(f"Can not drop the default database '{name}'.")
        async with self.lock, self.sessionFactory() as db:
            dbDatabase = await self._getDatabaseModel(db, name)
            if not dbDatabase:
                raise NoSuchDatabaseException(database=name)
            countStmt = select(func.count()).select_from(EntryModel).where(EntryModel.databaseId == dbDatabase.id)
            if (await db.execute(countStmt)).scalar_one() > 0:
                raise DatabaseNotEmptyException(database=name)
            await db.delete(dbDatabase)
            await db.commit()

    # entries

    async def lookup(self, identifier: CatalogIdentifier) -> Optional[CatalogEntry]:
        async with self.sessionFactory() as db:
            dbEntry = await self._getEntryModel(db, identifier)
            return toEntry(identifier.database, dbEntry) if dbEntry else None

    async def exists(self, identifier: CatalogIdentifier) -> bool:
        return await self.lookup(identifier) is not None

    async def listEntries(self, database: str, kind: Optional[EntryKind] = None) -> List[CatalogEntry]:
        async with self.sessionFactory() as db:
            dbDatabase = await self._getDatabaseModel(db, database)
            if not dbDatabase:
                raise NoSuchDatabaseException(database=database)
            stmt = select(EntryModel).where(EntryModel.databaseId == dbDatabase.id)
            if kind is not None:
                stmt = stmt.where(EntryModel.kind == kind.value)
            result = await db.execute(stmt.order_by(EntryModel.name))
            return [toEntry(dbDatabase.name, e) for e in result.scalars().all()]

    async def insert(self, entry: CatalogEntry) -> CatalogEntry:
        identifier = entry.identifier
        async with self.lock, self.sessionFactory() as db:
            dbDatabase = await self._getDatabaseModel(db, identifier.database)
            if not dbDatabase:
                raise NoSuchDatabaseException(database=identifier.database)
            if await self._getEntryModel(db, identifier):
                raise EntryAlreadyExistsException(identifier=identifier)

            dbEntry = EntryModel(
                databaseId=dbDatabase.id,
                name=identifier.name,
                kind=entry.kind.value,
                tableType=entry.tableType.value if entry.tableType else None,
                location=entry.location,
                viewText=entry.viewText,
                properties=dict(entry.properties),
                createdAtMs=entry.createdAtMs,
                lastDdlTimeMs=entry.lastDdlTimeMs,
            )
            try:
                db.add(dbEntry)
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise EntryAlreadyExistsException(identifier=identifier)
            return toEntry(identifier.database, dbEntry)

    async def remove(
        self,
        identifier: CatalogIdentifier,
        expectedKind: Optional[EntryKind] = None,
        kindMismatchMessage: str = ""
    ) -> None:
        async with self.lock, self.sessionFactory() as db:
            dbEntry = await self._getEntryModel(db, identifier)
            if not dbEntry:
                raise NoSuchEntryException(identifier=identifier)
            self._checkKind(dbEntry, expectedKind, kindMismatchMessage)
            await db.delete(dbEntry)
            await db.commit()

    async def rename(
        self,
        oldIdentifier: CatalogIdentifier,
        newIdentifier: CatalogIdentifier,
        expectedKind: Optional[EntryKind] = None,
        kindMismatchMessage: str = "",
        newLocation: Optional[str] = None
    ) -> CatalogEntry:
        """Re-key an entry. ``newLocation`` replaces the location of a managed table
        whose directory the caller has already moved."""
        async with self.lock, self.sessionFactory() as db:
            dbEntry = await self._getEntryModel(db, oldIdentifier)
            if not dbEntry:
                raise NoSuchEntryException(identifier=oldIdentifier)
            self._checkKind(dbEntry, expectedKind, kindMismatchMessage)
            if await self._getEntryModel(db, newIdentifier):
                raise EntryAlreadyExistsException(identifier=newIdentifier)

            destDatabase = await self._getDatabaseModel(db, newIdentifier.database)
            if not destDatabase:
                raise NoSuchDatabaseException(database=newIdentifier.database)

            dbEntry.name = newIdentifier.name
            dbEntry.databaseId = destDatabase.id
            if newLocation is not None:
                dbEntry.location = newLocation
            dbEntry.lastDdlTimeMs = currentTimeMs()
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise EntryAlreadyExistsException(identifier=newIdentifier)
            return toEntry(newIdentifier.database, dbEntry)

    async def mutateProperties(
        self,
        identifier: CatalogIdentifier,
        upserts: Optional[Dict[str, str]] = None,
        removals: Optional[Iterable[str]] = None,
        ifExistsForRemovals: bool = False,
        expectedKind: Optional[EntryKind] = None,
        kindMismatchMessage: str = ""
    ) -> CatalogEntry:
        async with self.lock, self.sessionFactory() as db:
            dbEntry = await self._getEntryModel(db, identifier)
            if not dbEntry:
                raise NoSuchEntryException(identifier=identifier)
            self._checkKind(dbEntry, expectedKind, kindMismatchMessage)

            newProperties = dict(dbEntry.properties or {})
            if upserts:
                newProperties.update(upserts)
            for key in removals or []:
                if key not in newProperties:
                    if ifExistsForRemovals:
                        continue
                    raise NoSuchPropertyException(
                        propertyKey=key, identifier=identifier.displayName(self.defaultDatabase)
                    )
                del newProperties[key]

            # a fresh dict, JSON columns do not track in-place changes
            dbEntry.properties = newProperties
            dbEntry.lastDdlTimeMs = currentTimeMs()
            await db.commit()
            return toEntry(identifier.database, dbEntry)
