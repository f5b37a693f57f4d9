from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Dict, Optional, Union, Literal, Annotated
import time

from ddl_catalog.core.exceptions import CatalogErrorModel

class CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class EntryKind(str, Enum):
    TABLE = "table"
    VIEW = "view"

class TableType(str, Enum):
    MANAGED = "managed"
    EXTERNAL = "external"

class CatalogIdentifier(CatalogModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    database: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @field_validator("database", "name")
    @classmethod
    def foldCase(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("identifier parts must not be blank")
        if "." in value:
            raise ValueError(f"identifier part '{value}' must not contain '.'")
        return value

    @classmethod
    def parse(cls, qualifiedName: str, defaultDatabase: str) -> "CatalogIdentifier":
        parts = qualifiedName.strip().split(".")
        if len(parts) == 1:
            return cls(database=defaultDatabase, name=parts[0])
        if len(parts) == 2:
            return cls(database=parts[0], name=parts[1])
        raise ValueError(f"'{qualifiedName}' is not a valid table or view name")

    def displayName(self, defaultDatabase: str) -> str:
        if self.database == defaultDatabase.lower():
            return f"`{self.name}`"
        return str(self)

    def __str__(self) -> str:
        return f"`{self.database}`.`{self.name}`"

class CatalogEntry(CatalogModel):
    identifier: CatalogIdentifier
    kind: EntryKind
    tableType: Optional[TableType] = Field(None, alias="table-type")
    location: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)
    viewText: Optional[str] = Field(None, alias="view-text")
    createdAtMs: int = Field(alias="created-at-ms", default_factory=lambda: int(time.time() * 1000))
    lastDdlTimeMs: int = Field(alias="last-ddl-time-ms", default_factory=lambda: int(time.time() * 1000))

    @model_validator(mode="after")
    def checkKindShape(self) -> "CatalogEntry":
        if self.kind == EntryKind.TABLE:
            if self.tableType is None or not self.location:
                raise ValueError("a table entry requires both a table type and a location")
            if self.viewText is not None:
                raise ValueError("a table entry cannot carry view text")
        else:
            if self.viewText is None:
                raise ValueError("a view entry requires view text")
            if self.tableType is not None or self.location is not None:
                raise ValueError("a view entry has neither a table type nor a location")
        return self

    @property
    def isManaged(self) -> bool:
        return self.kind == EntryKind.TABLE and self.tableType == TableType.MANAGED

class Database(CatalogModel):
    name: str
    location: str
    properties: Dict[str, str] = Field(default_factory=dict)

# DDL commands. Identifiers arriving here are already qualified.

class CreateTableCommand(CatalogModel):
    action: Literal["create-table"] = "create-table"
    identifier: CatalogIdentifier
    tableType: TableType = Field(TableType.MANAGED, alias="table-type")
    location: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)
    comment: Optional[str] = None
    ifNotExists: bool = Field(False, alias="if-not-exists")

class CreateViewCommand(CatalogModel):
    action: Literal["create-view"] = "create-view"
    identifier: CatalogIdentifier
    viewText: str = Field(alias="view-text")
    properties: Dict[str, str] = Field(default_factory=dict)
    comment: Optional[str] = None
    ifNotExists: bool = Field(False, alias="if-not-exists")

class DropTableCommand(CatalogModel):
    action: Literal["drop-table"] = "drop-table"
    identifier: CatalogIdentifier
    ifExists: bool = Field(False, alias="if-exists")

class DropViewCommand(CatalogModel):
    action: Literal["drop-view"] = "drop-view"
    identifier: CatalogIdentifier
    ifExists: bool = Field(False, alias="if-exists")

class AlterTableRenameCommand(CatalogModel):
    action: Literal["alter-table-rename"] = "alter-table-rename"
    identifier: CatalogIdentifier
    newIdentifier: CatalogIdentifier = Field(alias="new-identifier")

class AlterViewRenameCommand(CatalogModel):
    action: Literal["alter-view-rename"] = "alter-view-rename"
    identifier: CatalogIdentifier
    newIdentifier: CatalogIdentifier = Field(alias="new-identifier")

class AlterTableSetPropertiesCommand(CatalogModel):
    action: Literal["alter-table-set-properties"] = "alter-table-set-properties"
    identifier: CatalogIdentifier
    properties: Dict[str, str]

class AlterViewSetPropertiesCommand(CatalogModel):
    action: Literal["alter-view-set-properties"] = "alter-view-set-properties"
    identifier: CatalogIdentifier
    properties: Dict[str, str]

class AlterTableUnsetPropertiesCommand(CatalogModel):
    action: Literal["alter-table-unset-properties"] = "alter-table-unset-properties"
    identifier: CatalogIdentifier
    propertyKeys: List[str] = Field(alias="property-keys")
    ifExists: bool = Field(False, alias="if-exists")

class AlterViewUnsetPropertiesCommand(CatalogModel):
    action: Literal["alter-view-unset-properties"] = "alter-view-unset-properties"
    identifier: CatalogIdentifier
    propertyKeys: List[str] = Field(alias="property-keys")
    ifExists: bool = Field(False, alias="if-exists")

DdlCommand = Annotated[
    Union[
        CreateTableCommand, CreateViewCommand, DropTableCommand, DropViewCommand,
        AlterTableRenameCommand, AlterViewRenameCommand,
        AlterTableSetPropertiesCommand, AlterViewSetPropertiesCommand,
        AlterTableUnsetPropertiesCommand, AlterViewUnsetPropertiesCommand
    ],
    Field(discriminator="action")
]

class CommandRequest(CatalogModel):
    command: DdlCommand

class CommandResult(CatalogModel):
    action: str
    success: bool
    skipped: bool = False # an if-exists / if-not-exists relaxation turned the command into a no-op
    entry: Optional[CatalogEntry] = None
    error: Optional[CatalogErrorModel] = None

# HTTP request bodies

class CreateDatabaseRequest(CatalogModel):
    name: str
    properties: Dict[str, str] = Field(default_factory=dict)
    ifNotExists: bool = Field(False, alias="if-not-exists")

class CreateTableRequest(CatalogModel):
    name: str
    tableType: TableType = Field(TableType.MANAGED, alias="table-type")
    location: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)
    comment: Optional[str] = None
    ifNotExists: bool = Field(False, alias="if-not-exists")

class CreateViewRequest(CatalogModel):
    name: str
    viewText: str = Field(alias="view-text")
    properties: Dict[str, str] = Field(default_factory=dict)
    comment: Optional[str] = None
    ifNotExists: bool = Field(False, alias="if-not-exists")

class RenameRequest(CatalogModel):
    destination: str # "name" keeps the source database, "db.name" moves across databases

class UpdatePropertiesRequest(CatalogModel):
    updates: Dict[str, str] = Field(default_factory=dict)
    removals: List[str] = Field(default_factory=list)
    ifExists: bool = Field(False, alias="if-exists")

class CatalogConfig(CatalogModel):
    override: Optional[Dict[str, str]] = Field(None, alias="override")
    default: Optional[Dict[str, str]] = Field(None, alias="default")
