class DocumentValidatorError(Exception):
    """Base class for errors raised by the document validator."""


class NotInitializedError(DocumentValidatorError, RuntimeError):
    """Raised when the validator is used before initialize() has completed."""


class SchemaEngineError(DocumentValidatorError):
    """Raised when the schema engine cannot register or look up a schema."""


class MissingSchemaError(SchemaEngineError, KeyError):
    """Raised when no schema is registered for a key or reference."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f'no schema with key or ref "{key}"')

    def __str__(self) -> str:
        return self.args[0]
