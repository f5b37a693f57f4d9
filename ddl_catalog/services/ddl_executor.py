from typing import Dict, List, Optional, Tuple

from ddl_catalog.core.exceptions import (
    BadRequestException, BaseCatalogException, EntryAlreadyExistsException, NoSuchDatabaseException,
    NoSuchEntryException, StorageUnavailableException, ValidationException, WrongEntityKindException,
    DatabaseAlreadyExistsException, LocationAlreadyExistsException
)
from ddl_catalog.core.logging import getLogger
from ddl_catalog.crud.catalog_store import CatalogStore
from ddl_catalog.models.catalog_models import (
    AlterTableRenameCommand, AlterTableSetPropertiesCommand, AlterTableUnsetPropertiesCommand,
    AlterViewRenameCommand, AlterViewSetPropertiesCommand, AlterViewUnsetPropertiesCommand,
    CatalogEntry, CatalogIdentifier, CommandResult, CreateTableCommand, CreateViewCommand,
    Database, DdlCommand, DropTableCommand, DropViewCommand, EntryKind, TableType
)
from ddl_catalog.services.storage_coordinator import StorageCoordinator

logger = getLogger(__name__)

DROP_VIEW_WITH_DROP_TABLE = "Cannot drop a view with DROP TABLE. Please use DROP VIEW instead"
DROP_TABLE_WITH_DROP_VIEW = "Cannot drop a table with DROP VIEW. Please use DROP TABLE instead"
ALTER_TABLE_WITH_ALTER_VIEW = "Cannot alter a table with ALTER VIEW. Please use ALTER TABLE instead"
ALTER_VIEW_WITH_ALTER_TABLE = "Cannot alter a view with ALTER TABLE. Please use ALTER VIEW instead"

COMMENT_PROPERTY = "comment"

# (required kind, message when the entry turns out to be the other kind)
KIND_RULES = {
    DropTableCommand: (EntryKind.TABLE, DROP_VIEW_WITH_DROP_TABLE),
    DropViewCommand: (EntryKind.VIEW, DROP_TABLE_WITH_DROP_VIEW),
    AlterTableRenameCommand: (EntryKind.TABLE, ALTER_VIEW_WITH_ALTER_TABLE),
    AlterViewRenameCommand: (EntryKind.VIEW, ALTER_TABLE_WITH_ALTER_VIEW),
    AlterTableSetPropertiesCommand: (EntryKind.TABLE, ALTER_VIEW_WITH_ALTER_TABLE),
    AlterViewSetPropertiesCommand: (EntryKind.VIEW, ALTER_TABLE_WITH_ALTER_VIEW),
    AlterTableUnsetPropertiesCommand: (EntryKind.TABLE, ALTER_VIEW_WITH_ALTER_TABLE),
    AlterViewUnsetPropertiesCommand: (EntryKind.VIEW, ALTER_TABLE_WITH_ALTER_VIEW),
}

COMMAND_TYPES = (CreateTableCommand, CreateViewCommand) + tuple(KIND_RULES)


class DdlExecutor:
    """Runs DDL commands against a :class:`CatalogStore`.

    Every command is validated first (entity kind, existence, location rules)
    without touching anything; only then are the store and, for managed tables,
    the storage coordinator called. Expected failures come back as a failed
    :class:`CommandResult`. ``StorageUnavailableException`` is raised instead,
    and whenever it is raised the store has not been changed by the command.

    Dropping a managed table deletes its location before removing the entry.
    If the process dies between the two steps the entry outlives its data;
    running the same drop again completes it.

    A managed table always lives at the default location of its current
    identifier: creating one refuses a directory that already exists, a failed
    create removes the directory it made, and a rename moves the directory.
    The store re-checks the entity kind inside the same critical section as
    the mutation, so an entry recreated with the other kind in the meantime is
    reported as a kind mismatch instead of being changed.
    """

    def __init__(self, store: CatalogStore, storage: StorageCoordinator, defaultDatabase: str = "default"):
        self.store = store
        self.storage = storage
        self.defaultDatabase = defaultDatabase.lower()

    def qualify(self, name: str, database: Optional[str] = None) -> CatalogIdentifier:
        if database:
            return CatalogIdentifier(database=database, name=name)
        return CatalogIdentifier.parse(name, self.defaultDatabase)

    async def execute(self, command: DdlCommand) -> CommandResult:
        if not isinstance(command, COMMAND_TYPES):
            error = BadRequestException(f"Unsupported DDL command: '{type(command).__name__}'.")
            logger.warning(error.message)
            return CommandResult(action=type(command).__name__, success=False, error=error.toErrorModel())

        logger.info("Executing %s on %s", command.action, command.identifier)
        try:
            if isinstance(command, CreateTableCommand):
                entry, skipped = await self._createTable(command)
            elif isinstance(command, CreateViewCommand):
                entry, skipped = await self._createView(command)
            elif isinstance(command, (DropTableCommand, DropViewCommand)):
                entry, skipped = await self._drop(command)
            elif isinstance(command, (AlterTableRenameCommand, AlterViewRenameCommand)):
                entry, skipped = await self._rename(command), False
            elif isinstance(command, (AlterTableSetPropertiesCommand, AlterViewSetPropertiesCommand)):
                await self._requireEntry(command)
                entry = await self.store.mutateProperties(
                    command.identifier, upserts=command.properties, **self._kindCheck(command)
                )
                skipped = False
            else:
                await self._requireEntry(command)
                entry = await self.store.mutateProperties(
                    command.identifier,
                    removals=command.propertyKeys,
                    ifExistsForRemovals=command.ifExists,
                    **self._kindCheck(command)
                )
                skipped = False
        except StorageUnavailableException as e:
            logger.error("%s on %s aborted: %s", command.action, command.identifier, e.message)
            raise
        except BaseCatalogException as e:
            logger.info("%s on %s failed: %s", command.action, command.identifier, e.message)
            return CommandResult(action=command.action, success=False, error=e.toErrorModel())

        if skipped:
            logger.info("%s on %s skipped", command.action, command.identifier)
        return CommandResult(action=command.action, success=True, skipped=skipped, entry=entry)

    async def _requireEntry(self, command) -> CatalogEntry:
        entry = await self.store.lookup(command.identifier)
        if entry is None:
            raise NoSuchEntryException(identifier=command.identifier)
        self._checkKind(command, entry)
        return entry

    def _checkKind(self, command, entry: CatalogEntry) -> None:
        requiredKind, message = KIND_RULES[type(command)]
        if entry.kind != requiredKind:
            raise WrongEntityKindException(message)

    def _kindCheck(self, command) -> Dict:
        """Kind arguments for the store, which repeats the check inside its lock."""
        requiredKind, message = KIND_RULES[type(command)]
        return {"expectedKind": requiredKind, "kindMismatchMessage": message}

    def _withComment(self, properties: Dict[str, str], comment: Optional[str]) -> Dict[str, str]:
        merged = dict(properties)
        if comment is not None:
            merged[COMMENT_PROPERTY] = comment
        return merged

    async def _checkCreatable(self, identifier: CatalogIdentifier, ifNotExists: bool) -> Optional[CatalogEntry]:
        existing = await self.store.lookup(identifier)
        if existing is not None:
            if ifNotExists:
                return existing
            raise EntryAlreadyExistsException(identifier=identifier)
        if await self.store.getDatabase(identifier.database) is None:
            raise NoSuchDatabaseException(database=identifier.database)
        return None

    async def _insert(self, entry: CatalogEntry, ifNotExists: bool) -> Tuple[CatalogEntry, bool]:
        try:
            return await self.store.insert(entry), False
        except EntryAlreadyExistsException:
            # lost a race against a concurrent create of the same identifier
            if not ifNotExists:
                raise
            winner = await self.store.lookup(entry.identifier)
            return winner, True

    async def _createTable(self, command: CreateTableCommand) -> Tuple[Optional[CatalogEntry], bool]:
        identifier = command.identifier
        if command.tableType == TableType.MANAGED and command.location:
            raise ValidationException(
                f"Managed table {identifier} cannot be given a location; create it as an external table instead."
            )
        if command.tableType == TableType.EXTERNAL and not command.location:
            raise ValidationException(f"External table {identifier} requires a location.")

        existing = await self._checkCreatable(identifier, command.ifNotExists)
        if existing is not None:
            return existing, True

        if command.tableType == TableType.EXTERNAL:
            entry = CatalogEntry(
                identifier=identifier,
                kind=EntryKind.TABLE,
                tableType=TableType.EXTERNAL,
                location=command.location,
                properties=self._withComment(command.properties, command.comment),
            )
            return await self._insert(entry, command.ifNotExists)

        # a managed location is only ever owned by the create that made the directory
        location = self.storage.defaultLocation(identifier)
        try:
            await self.storage.ensureExists(location, exclusive=True)
        except LocationAlreadyExistsException:
            if command.ifNotExists:
                winner = await self.store.lookup(identifier)
                if winner is not None:
                    return winner, True
            raise

        entry = CatalogEntry(
            identifier=identifier,
            kind=EntryKind.TABLE,
            tableType=TableType.MANAGED,
            location=location,
            properties=self._withComment(command.properties, command.comment),
        )
        try:
            inserted, skipped = await self._insert(entry, command.ifNotExists)
        except BaseCatalogException:
            await self.storage.delete(location)
            raise
        if skipped:
            await self.storage.delete(location)
        return inserted, skipped

    async def _createView(self, command: CreateViewCommand) -> Tuple[Optional[CatalogEntry], bool]:
        existing = await self._checkCreatable(command.identifier, command.ifNotExists)
        if existing is not None:
            return existing, True

        entry = CatalogEntry(
            identifier=command.identifier,
            kind=EntryKind.VIEW,
            viewText=command.viewText,
            properties=self._withComment(command.properties, command.comment),
        )
        return await self._insert(entry, command.ifNotExists)

    async def _drop(self, command) -> Tuple[Optional[CatalogEntry], bool]:
        entry = await self.store.lookup(command.identifier)
        if entry is None:
            if command.ifExists:
                return None, True
            raise NoSuchEntryException(identifier=command.identifier)
        self._checkKind(command, entry)

        if entry.isManaged:
            await self.storage.delete(entry.location)
        try:
            await self.store.remove(command.identifier, **self._kindCheck(command))
        except NoSuchEntryException:
            if not command.ifExists:
                raise
            return None, True
        return entry, False

    async def _rename(self, command) -> CatalogEntry:
        """Re-key an entry. A managed table's directory follows it to the new
        default location and is moved back if the store refuses the rename."""
        entry = await self._requireEntry(command)
        newIdentifier = command.newIdentifier
        if not entry.isManaged:
            return await self.store.rename(entry.identifier, newIdentifier, **self._kindCheck(command))

        if await self.store.exists(newIdentifier):
            raise EntryAlreadyExistsException(identifier=newIdentifier)
        if await self.store.getDatabase(newIdentifier.database) is None:
            raise NoSuchDatabaseException(database=newIdentifier.database)

        newLocation = self.storage.defaultLocation(newIdentifier)
        await self.storage.move(entry.location, newLocation)
        try:
            return await self.store.rename(
                entry.identifier, newIdentifier, newLocation=newLocation, **self._kindCheck(command)
            )
        except BaseCatalogException:
            await self.storage.move(newLocation, entry.location)
            raise

    # read side and database management

    async def describe(self, identifier: CatalogIdentifier) -> CatalogEntry:
        entry = await self.store.lookup(identifier)
        if entry is None:
            raise NoSuchEntryException(identifier=identifier)
        return entry

    async def listEntries(self, database: str, kind: Optional[EntryKind] = None) -> List[CatalogEntry]:
        return await self.store.listEntries(database, kind=kind)

    async def createDatabase(
        self, name: str, properties: Optional[Dict[str, str]] = None, ifNotExists: bool = False
    ) -> Database:
        try:
            return await self.store.createDatabase(name, self.storage.databaseLocation(name), properties)
        except DatabaseAlreadyExistsException:
            if not ifNotExists:
                raise
            return await self.store.getDatabase(name)

    async def dropDatabase(self, name: str) -> None:
        await self.store.dropDatabase(name)
        logger.info("Dropped database %s", name.lower())
