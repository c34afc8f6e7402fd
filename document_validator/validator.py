import logging
from typing import Any, Dict, List, Mapping, Optional

from .bson_types import install_bson_types
from .engine import SchemaEngine, SchemaRef
from .exceptions import NotInitializedError
from .models import ValidationResult

logger = logging.getLogger(__name__)

# Server error code for a write rejected by the collection validator
DOCUMENT_VALIDATION_FAILURE_CODE = 121


def is_document_failed_validation_error(error: Any) -> bool:
    """
    True when `error` is the server's rejection of a write that failed the
    collection's schema validator (e.g. a pymongo WriteError with code 121).
    """
    return getattr(error, "code", None) == DOCUMENT_VALIDATION_FAILURE_CODE


def is_collection_with_schema(descriptor: Mapping[str, Any]) -> bool:
    """Only plain collections carrying a non-empty $jsonSchema validator are relevant."""
    if descriptor.get("type") != "collection":
        return False
    validator = (descriptor.get("options") or {}).get("validator") or {}
    return bool(validator.get("$jsonSchema"))


class MongoSchemaDocumentValidator:
    """
    Validates documents against the $jsonSchema validators of a database's
    collections without writing them.

    The database handle is only used by `initialize()`, which must be awaited
    once before `validate()` is called. The connection is owned by the caller.
    """
    def __init__(self, db, engine: Optional[SchemaEngine] = None):
        self.db = db
        self.engine = install_bson_types(engine if engine is not None else SchemaEngine())
        self._was_initialized = False

    @property
    def initialized(self) -> bool:
        return self._was_initialized

    async def initialize(self) -> None:
        """
        Load the $jsonSchema of every collection and register it with the
        engine under the collection name. Database and schema errors propagate.
        """
        descriptors = await self._list_collections()
        registered = 0
        for descriptor in descriptors:
            if not is_collection_with_schema(descriptor):
                continue
            name = descriptor["name"]
            self.engine.add_schema(descriptor["options"]["validator"]["$jsonSchema"], name)
            logger.debug(f"Registered schema for collection '{name}'")
            registered += 1

        logger.info(f"Loaded {registered} collection schemas out of {len(descriptors)} entries")
        self._was_initialized = True

    def validate(self, name_or_ref: SchemaRef, document: Any) -> ValidationResult:
        """
        Validate `document` against the schema of collection `name_or_ref`
        (or a {"$ref": ...} mapping). An invalid document yields a result with
        is_valid=False; an unknown name raises MissingSchemaError.
        """
        self._require_initialized()
        errors = self.engine.collect_errors(name_or_ref, document)
        return ValidationResult(
            is_valid=not errors,
            errors=errors or None,
            errors_text=self.engine.errors_text(errors),
        )

    def collection_names(self) -> List[str]:
        """Names of the collections whose schemas were loaded."""
        self._require_initialized()
        return self.engine.schema_keys()

    async def _list_collections(self) -> List[Dict[str, Any]]:
        # The driver runs listCollections and any getMore in the cursor's own session
        cursor = await self.db.list_collections()
        return await cursor.to_list(None)

    def _require_initialized(self) -> None:
        if not self._was_initialized:
            raise NotInitializedError("Attempt to use MongoDB schema document validator without initialization")
