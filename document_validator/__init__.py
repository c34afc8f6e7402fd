from .engine import SchemaEngine
from .exceptions import DocumentValidatorError, MissingSchemaError, NotInitializedError, SchemaEngineError
from .models import ErrorDetail, ValidationResult
from .validator import (
    DOCUMENT_VALIDATION_FAILURE_CODE,
    MongoSchemaDocumentValidator,
    is_document_failed_validation_error,
)

__all__ = [
    "DOCUMENT_VALIDATION_FAILURE_CODE",
    "DocumentValidatorError",
    "ErrorDetail",
    "MissingSchemaError",
    "MongoSchemaDocumentValidator",
    "NotInitializedError",
    "SchemaEngine",
    "SchemaEngineError",
    "ValidationResult",
    "is_document_failed_validation_error",
]
