from typing import Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from ddl_catalog.core.exceptions import ValidationException
from ddl_catalog.models.catalog_models import CatalogIdentifier, CommandResult
from ddl_catalog.services.ddl_executor import DdlExecutor

def getExecutor(request: Request) -> DdlExecutor:
    return request.app.state.executor

def qualify(executor: DdlExecutor, name: str, database: Optional[str] = None) -> CatalogIdentifier:
    try:
        return executor.qualify(name, database)
    except ValueError as e:
        raise ValidationException(f"Invalid identifier '{name}': {e}")

def failureResponse(result: CommandResult) -> JSONResponse:
    return JSONResponse(
        status_code=result.error.code,
        content={"error": result.error.model_dump()}
    )

def resultToResponse(result: CommandResult, emptyOnSuccess: bool = False):
    if not result.success:
        return failureResponse(result)
    if emptyOnSuccess:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return result.entry
