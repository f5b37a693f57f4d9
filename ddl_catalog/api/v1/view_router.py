from fastapi import APIRouter, Depends, status, Query, Body, Path
from typing import List

from ddl_catalog.api.common import getExecutor, qualify, failureResponse, resultToResponse
from ddl_catalog.models.catalog_models import (
    CatalogEntry, CreateViewRequest, RenameRequest, UpdatePropertiesRequest, EntryKind,
    CreateViewCommand, DropViewCommand, AlterViewRenameCommand,
    AlterViewSetPropertiesCommand, AlterViewUnsetPropertiesCommand
)
from ddl_catalog.core.exceptions import ErrorResponse
from ddl_catalog.services.ddl_executor import DdlExecutor


router = APIRouter(
    prefix="/v1/databases/{database}/views",
    tags=["Views"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        409: {"model": ErrorResponse, "description": "Conflict"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
        503: {"model": ErrorResponse, "description": "Service Unavailable"},
    }
)


@router.get("", response_model=List[CatalogEntry])
async def listViewsEndpoint(
    database: str = Path(..., description="Database name"),
    executor: DdlExecutor = Depends(getExecutor)
):
    return await executor.listEntries(database, kind=EntryKind.VIEW)


@router.post("", response_model=CatalogEntry, status_code=status.HTTP_200_OK)
async def createViewEndpoint(
    database: str = Path(..., description="Database name"),
    request: CreateViewRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    command = CreateViewCommand(
        identifier=qualify(executor, request.name, database),
        viewText=request.viewText,
        properties=request.properties,
        comment=request.comment,
        ifNotExists=request.ifNotExists
    )
    return resultToResponse(await executor.execute(command))


@router.get("/{viewName}", response_model=CatalogEntry)
async def loadViewEndpoint(
    database: str = Path(..., description="Database name"),
    viewName: str = Path(..., description="View name"),
    executor: DdlExecutor = Depends(getExecutor)
):
    return await executor.describe(qualify(executor, viewName, database))


@router.delete("/{viewName}", status_code=status.HTTP_204_NO_CONTENT)
async def dropViewEndpoint(
    database: str = Path(..., description="Database name"),
    viewName: str = Path(..., description="View name"),
    ifExists: bool = Query(False, description="Succeed silently when the view does not exist"),
    executor: DdlExecutor = Depends(getExecutor)
):
    command = DropViewCommand(identifier=qualify(executor, viewName, database), ifExists=ifExists)
    return resultToResponse(await executor.execute(command), emptyOnSuccess=True)


@router.post("/{viewName}/rename", response_model=CatalogEntry)
async def renameViewEndpoint(
    database: str = Path(..., description="Database name"),
    viewName: str = Path(..., description="View name"),
    request: RenameRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    source = qualify(executor, viewName, database)
    destinationDatabase = None if "." in request.destination else database
    destination = qualify(executor, request.destination, destinationDatabase)
    command = AlterViewRenameCommand(identifier=source, newIdentifier=destination)
    return resultToResponse(await executor.execute(command))


@router.post("/{viewName}/properties", response_model=CatalogEntry)
async def updateViewPropertiesEndpoint(
    database: str = Path(..., description="Database name"),
    viewName: str = Path(..., description="View name"),
    request: UpdatePropertiesRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    identifier = qualify(executor, viewName, database)
    result = None
    if request.updates:
        result = await executor.execute(
            AlterViewSetPropertiesCommand(identifier=identifier, properties=request.updates)
        )
        if not result.success:
            return failureResponse(result)
    if request.removals or result is None:
        result = await executor.execute(
            AlterViewUnsetPropertiesCommand(
                identifier=identifier, propertyKeys=request.removals, ifExists=request.ifExists
            )
        )
    return resultToResponse(result)
