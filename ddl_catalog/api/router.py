from fastapi import APIRouter
from ddl_catalog.api.v1 import config_router, database_router, table_router, view_router, command_router

apiRouter = APIRouter()

apiRouter.include_router(config_router.router, tags=["Configuration"])
apiRouter.include_router(database_router.router)
apiRouter.include_router(table_router.router)
apiRouter.include_router(view_router.router)
apiRouter.include_router(command_router.router)
