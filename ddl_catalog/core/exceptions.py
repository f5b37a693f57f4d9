from fastapi import HTTPException
from fastapi import status as httpStatus
from typing import List, Optional, Any
from pydantic import BaseModel

class CatalogErrorModel(BaseModel):
    message: str
    type: str
    code: int
    stack: Optional[List[str]] = None

class ErrorResponse(BaseModel):
    error: CatalogErrorModel

class BaseCatalogException(HTTPException):
    def __init__(self, statusCode: int, message: str, errorType: str, stack: Optional[List[str]] = None):
        self.errorType = errorType
        self.message = message
        self.stack = stack
        super().__init__(status_code=statusCode, detail={"error": {
            "message": message,
            "type": errorType,
            "code": statusCode,
            "stack": stack
        }})

    def toErrorModel(self) -> CatalogErrorModel:
        return CatalogErrorModel(
            message=self.message,
            type=self.errorType,
            code=self.status_code,
            stack=self.stack
        )

    def __str__(self) -> str:
        return self.message

class BadRequestException(BaseCatalogException):
    def __init__(self, message: str = "The request was malformed or contained invalid parameters.", errorType: str = "BadRequestException"):
        super().__init__(
            statusCode=httpStatus.HTTP_400_BAD_REQUEST,
            message=message,
            errorType=errorType
        )

class ValidationException(BadRequestException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            errorType="ValidationException"
        )

class WrongEntityKindException(BadRequestException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            errorType="WrongEntityKindException"
        )

class DatabaseNotEmptyException(BadRequestException):
    def __init__(self, database: str):
        super().__init__(
            message=f"Database '{database}' is not empty. Drop its tables and views first.",
            errorType="DatabaseNotEmptyException"
        )

class NotFoundException(BaseCatalogException):
    def __init__(self, resourceType: str, identifier: Any, errorType: str = "NotFoundException"):
        super().__init__(
            statusCode=httpStatus.HTTP_404_NOT_FOUND,
            message=f"{resourceType} with identifier '{identifier}' not found.",
            errorType=errorType
        )

class NoSuchDatabaseException(NotFoundException):
    def __init__(self, database: str):
        super().__init__(
            resourceType="Database",
            identifier=database,
            errorType="NoSuchDatabaseException"
        )

class NoSuchEntryException(NotFoundException):
    def __init__(self, identifier: Any):
        super().__init__(
            resourceType="Table or view",
            identifier=identifier,
            errorType="NoSuchEntryException"
        )

class NoSuchPropertyException(BaseCatalogException):
    def __init__(self, propertyKey: str, identifier: Any):
        super().__init__(
            statusCode=httpStatus.HTTP_404_NOT_FOUND,
            message=f"attempted to unset non-existent property '{propertyKey}' in table '{identifier}'",
            errorType="NoSuchPropertyException"
        )

class ConflictException(BaseCatalogException):
    def __init__(self, message: str, errorType: str = "ConflictException"):
        super().__init__(
            statusCode=httpStatus.HTTP_409_CONFLICT,
            message=message,
            errorType=errorType
        )

class DatabaseAlreadyExistsException(ConflictException):
    def __init__(self, database: str):
        super().__init__(
            message=f"Database already exists: {database}",
            errorType="DatabaseAlreadyExistsException"
        )

class EntryAlreadyExistsException(ConflictException):
    def __init__(self, identifier: Any):
        super().__init__(
            message=f"Table or view already exists: {identifier}",
            errorType="EntryAlreadyExistsException"
        )

class LocationAlreadyExistsException(ConflictException):
    def __init__(self, location: str):
        super().__init__(
            message=f"Location already exists: {location}",
            errorType="LocationAlreadyExistsException"
        )

class InternalServerErrorException(BaseCatalogException):
    def __init__(self, message: str = "An unexpected internal server error occurred."):
        super().__init__(
            statusCode=httpStatus.HTTP_500_INTERNAL_SERVER_ERROR,
            message=message,
            errorType="InternalServerErrorException"
        )

class ServiceUnavailableException(BaseCatalogException):
    def __init__(self, message: str = "The service is temporarily unavailable. Please try again later.", errorType: str = "ServiceUnavailableException"):
        super().__init__(
            statusCode=httpStatus.HTTP_503_SERVICE_UNAVAILABLE,
            message=message,
            errorType=errorType
        )

class StorageUnavailableException(ServiceUnavailableException):
    def __init__(self, location: str, reason: Optional[str] = None):
        super().__init__(
            message=f"Storage is unavailable for location '{location}'" + (f": {reason}" if reason else "."),
            errorType="StorageUnavailableException"
        )
        self.location = location
