from fastapi import APIRouter, Request
from ddl_catalog.models.catalog_models import CatalogConfig

router = APIRouter()

@router.get("/v1/config", response_model=CatalogConfig)
async def getConfig(request: Request):
    appSettings = request.app.state.settings
    defaultProperties = {
        "warehouse": appSettings.warehousePath,
        "default-database": appSettings.defaultDatabase,
        "default-table-type": "managed"
    }

    overrideProperties = {
    }

    return CatalogConfig(
        default=defaultProperties,
        override=overrideProperties
    )
