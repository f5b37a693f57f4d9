from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from ddl_catalog.api.router import apiRouter
from ddl_catalog.core.config import Settings, settings
from ddl_catalog.core.exceptions import (
    BaseCatalogException, InternalServerErrorException, ValidationException
)
from ddl_catalog.core.logging import configureLogging, getLogger
from ddl_catalog.crud.catalog_store import CatalogStore
from ddl_catalog.services.ddl_executor import DdlExecutor
from ddl_catalog.services.storage_coordinator import StorageCoordinator

logger = getLogger(__name__)

def buildExecutor(appSettings: Settings) -> DdlExecutor:
    storage = StorageCoordinator(appSettings.warehousePath, defaultDatabase=appSettings.defaultDatabase)
    store = CatalogStore(
        appSettings.databaseUrl,
        defaultDatabase=appSettings.defaultDatabase,
        defaultDatabaseLocation=storage.databaseLocation(appSettings.defaultDatabase)
    )
    return DdlExecutor(store, storage, defaultDatabase=appSettings.defaultDatabase)

def createApp(appSettings: Settings = settings) -> FastAPI:
    configureLogging(appSettings.logLevel)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        executor = buildExecutor(appSettings)
        await executor.store.initialize()
        app.state.executor = executor
        logger.info("Catalog service started with warehouse %s", executor.storage.baseWarehousePath)
        try:
            yield
        finally:
            await executor.store.close()

    app = FastAPI(
        title="DDL Catalog",
        version="0.1.0",
        description="A metadata catalog for tables and views that executes DDL commands and manages table storage.",
        lifespan=lifespan,
    )
    app.state.settings = appSettings

    @app.exception_handler(BaseCatalogException)
    async def catalogExceptionHandler(request: Request, exc: BaseCatalogException):
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.toErrorModel().model_dump()}
        )

    @app.exception_handler(RequestValidationError)
    async def validationExceptionHandler(request: Request, exc: RequestValidationError):
        errorMessages = []
        for error in exc.errors():
            loc = []
            for item in error["loc"]:
                if isinstance(item, int): # handle list indices
                    loc.append(f"[{item}]")
                else:
                    loc.append(str(item))

            locPath = ".".join(loc).replace(".[", "[") # body.[0].field -> body[0].field
            errorMessages.append(f"Field '{locPath}': {error['msg']}")

        validationError = ValidationException(message="Validation Error: " + "; ".join(errorMessages))

        return JSONResponse(
            status_code=validationError.status_code,
            content={"error": validationError.toErrorModel().model_dump()}
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemyExceptionHandler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error while handling %s %s", request.method, request.url.path)
        serverError = InternalServerErrorException(message="A database error occurred.")
        serverError.errorType = type(exc).__name__

        return JSONResponse(
            status_code=serverError.status_code,
            content={"error": serverError.toErrorModel().model_dump()}
        )

    @app.exception_handler(Exception)
    async def genericExceptionHandler(request: Request, exc: Exception):
        logger.exception("Unhandled error while handling %s %s", request.method, request.url.path)
        serverError = InternalServerErrorException(message="An unexpected internal server error occurred.")
        serverError.errorType = type(exc).__name__

        return JSONResponse(
            status_code=serverError.status_code,
            content={"error": serverError.toErrorModel().model_dump()}
        )

    app.include_router(apiRouter)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"message": "Welcome to the DDL Catalog!"}

    return app

app = createApp()
