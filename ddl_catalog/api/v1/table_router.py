from fastapi import APIRouter, Depends, status, Query, Body, Path
from typing import List

from ddl_catalog.api.common import getExecutor, qualify, failureResponse, resultToResponse
from ddl_catalog.models.catalog_models import (
    CatalogEntry, CreateTableRequest, RenameRequest, UpdatePropertiesRequest, EntryKind,
    CreateTableCommand, DropTableCommand, AlterTableRenameCommand,
    AlterTableSetPropertiesCommand, AlterTableUnsetPropertiesCommand
)
from ddl_catalog.core.exceptions import ErrorResponse
from ddl_catalog.services.ddl_executor import DdlExecutor


router = APIRouter(
    prefix="/v1/databases/{database}/tables",
    tags=["Tables"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        409: {"model": ErrorResponse, "description": "Conflict"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
        503: {"model": ErrorResponse, "description": "Service Unavailable"},
    }
)


@router.get("", response_model=List[CatalogEntry])
async def listTablesEndpoint(
    database: str = Path(..., description="Database name"),
    executor: DdlExecutor = Depends(getExecutor)
):
    return await executor.listEntries(database, kind=EntryKind.TABLE)


@router.post("", response_model=CatalogEntry, status_code=status.HTTP_200_OK)
async def createTableEndpoint(
    database: str = Path(..., description="Database name"),
    request: CreateTableRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    command = CreateTableCommand(
        identifier=qualify(executor, request.name, database),
        tableType=request.tableType,
        location=request.location,
        properties=request.properties,
        comment=request.comment,
        ifNotExists=request.ifNotExists
    )
    return resultToResponse(await executor.execute(command))


@router.get("/{tableName}", response_model=CatalogEntry)
async def loadTableEndpoint(
    database: str = Path(..., description="Database name"),
    tableName: str = Path(..., description="Table name"),
    executor: DdlExecutor = Depends(getExecutor)
):
    return await executor.describe(qualify(executor, tableName, database))


@router.delete("/{tableName}", status_code=status.HTTP_204_NO_CONTENT)
async def dropTableEndpoint(
    database: str = Path(..., description="Database name"),
    tableName: str = Path(..., description="Table name"),
    ifExists: bool = Query(False, description="Succeed silently when the table does not exist"),
    executor: DdlExecutor = Depends(getExecutor)
):
    command = DropTableCommand(identifier=qualify(executor, tableName, database), ifExists=ifExists)
    return resultToResponse(await executor.execute(command), emptyOnSuccess=True)


@router.post("/{tableName}/rename", response_model=CatalogEntry)
async def renameTableEndpoint(
    database: str = Path(..., description="Database name"),
    tableName: str = Path(..., description="Table name"),
    request: RenameRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    source = qualify(executor, tableName, database)
    destinationDatabase = None if "." in request.destination else database
    destination = qualify(executor, request.destination, destinationDatabase)
    command = AlterTableRenameCommand(identifier=source, newIdentifier=destination)
    return resultToResponse(await executor.execute(command))


@router.post("/{tableName}/properties", response_model=CatalogEntry)
async def updateTablePropertiesEndpoint(
    database: str = Path(..., description="Database name"),
    tableName: str = Path(..., description="Table name"),
    request: UpdatePropertiesRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    identifier = qualify(executor, tableName, database)
    result = None
    if request.updates:
        result = await executor.execute(
            AlterTableSetPropertiesCommand(identifier=identifier, properties=request.updates)
        )
        if not result.success:
            return failureResponse(result)
    if request.removals or result is None:
        result = await executor.execute(
            AlterTableUnsetPropertiesCommand(
                identifier=identifier, propertyKeys=request.removals, ifExists=request.ifExists
            )
        )
    return resultToResponse(result)
