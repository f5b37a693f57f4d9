from fastapi import APIRouter, Depends, Body

from ddl_catalog.api.common import getExecutor
from ddl_catalog.models.catalog_models import CommandRequest, CommandResult
from ddl_catalog.core.exceptions import ErrorResponse
from ddl_catalog.services.ddl_executor import DdlExecutor

router = APIRouter(
    prefix="/v1/commands",
    tags=["Commands"],
    responses={
        503: {"model": ErrorResponse, "description": "Service Unavailable"}
    }
)

@router.post("", response_model=CommandResult)
async def executeCommandEndpoint(
    request: CommandRequest = Body(...),
    executor: DdlExecutor = Depends(getExecutor)
):
    # failures are part of the result body, so this always answers 200 unless storage is down
    return await executor.execute(request.command)
