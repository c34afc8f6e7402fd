from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """
    A single violated schema constraint.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    keyword: str = Field(description="Schema keyword that failed, e.g. 'required'")
    data_path: str = Field(alias="dataPath", description="Accessor of the offending value, '' for the document root")
    schema_path: str = Field(alias="schemaPath", description="JSON pointer of the keyword inside the schema")
    params: Dict[str, Any] = Field(default_factory=dict)
    message: str


class ValidationResult(BaseModel):
    """
    Outcome of validating one document against a collection schema.
    An invalid document is a normal result, not an exception.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_valid: bool = Field(alias="isValid")
    errors: Optional[List[ErrorDetail]] = None
    errors_text: Optional[str] = Field(default=None, alias="errorsText")
