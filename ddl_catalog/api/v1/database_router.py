from fastapi import APIRouter, Depends, status, Path
from typing import List

from ddl_catalog.api.common import getExecutor
from ddl_catalog.models.catalog_models import Database, CreateDatabaseRequest
from ddl_catalog.core.exceptions import ErrorResponse, NoSuchDatabaseException
from ddl_catalog.services.ddl_executor import DdlExecutor

router = APIRouter(
    prefix="/v1/databases",
    tags=["Databases"],
    responses={
        400: {"model": ErrorResponse}, 404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
        503: {"model": ErrorResponse, "description": "Service Unavailable"}
    }
)

@router.get("", response_model=List[Database])
async def listDatabasesEndpoint(executor: DdlExecutor = Depends(getExecutor)):
    return await executor.store.listDatabases()

@router.post("", response_model=Database, status_code=status.HTTP_200_OK)
async def createDatabaseEndpoint(
    request: CreateDatabaseRequest,
    executor: DdlExecutor = Depends(getExecutor)
):
    return await executor.createDatabase(request.name, request.properties, ifNotExists=request.ifNotExists)

@router.get("/{database}", response_model=Database)
async def loadDatabaseEndpoint(
    database: str = Path(..., description="Database name"),
    executor: DdlExecutor = Depends(getExecutor)
):
    dbDatabase = await executor.store.getDatabase(database)
    if not dbDatabase:
        raise NoSuchDatabaseException(database=database)
    return dbDatabase

@router.delete("/{database}", status_code=status.HTTP_204_NO_CONTENT)
async def dropDatabaseEndpoint(
    database: str = Path(..., description="Database name"),
    executor: DdlExecutor = Depends(getExecutor)
):
    await executor.dropDatabase(database)
    return
