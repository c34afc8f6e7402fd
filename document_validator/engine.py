"""
Schema engine: a registry of named JSON schemas on top of `jsonschema`.

Schemas are registered under a key (the collection name) and validated by key
or through a `{"$ref": "<key>#/pointer"}` mapping. Errors are reported as
`ErrorDetail` objects with a stable message vocabulary.
"""
import itertools
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from jsonschema import Draft4Validator, validators
from jsonschema.exceptions import SchemaError, ValidationError, best_match
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT4, specification_with

from .exceptions import MissingSchemaError, SchemaEngineError
from .models import ErrorDetail

logger = logging.getLogger(__name__)

SchemaRef = Union[str, Mapping[str, Any]]

_IDENTIFIER = re.compile(r"^[a-z$_][a-z$_0-9]*$", re.IGNORECASE)

_SCHEMA_MAPS = {"properties", "patternProperties", "definitions", "dependencies"}
_NOT_SCHEMAS = {"enum", "const", "default", "examples", "description", "title"}


class KeywordError(ValidationError):
    """
    ValidationError that already carries the message params of its keyword.
    Raised by keywords whose params cannot be recovered from the schema alone.
    """
    def __init__(self, message: str, params: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.params = params or {}


def required(validator, required, instance, schema):
    # One error per missing property, so each carries its own name
    if not validator.is_type(instance, "object"):
        return
    for property in required:
        if property not in instance:
            yield KeywordError(
                f"should have required property '{property}'",
                params={"missingProperty": property},
            )


class SchemaEngine:
    """
    Holds named schemas and validates documents against them.

    `all_errors=False` stops at the first violation; `all_errors=True` reports
    every violation. `errors` holds the outcome of the most recent `validate`
    call and is shared by everyone using this instance.
    """
    def __init__(self, all_errors: bool = False, validator_class: Type = Draft4Validator):
        self.all_errors = all_errors
        self.errors: Optional[List[ErrorDetail]] = None
        self._specification = specification_with(
            validator_class.META_SCHEMA.get("$schema", ""), default=DRAFT4
        )
        self._validator_class = validators.extend(validator_class, validators={"required": required})
        self._schemas: Dict[str, Mapping[str, Any]] = {}
        self._registry = Registry()
        self._compiled: Dict[str, Any] = {}
        self._keywords: Dict[str, Callable] = {}
        self._checks: Dict[str, Callable[[Any], None]] = {}

    def add_schema(self, schema: Mapping[str, Any], key: str) -> None:
        """
        Register a schema under `key`.
        Raises SchemaError for a malformed schema and SchemaEngineError for a duplicate key.
        """
        if key in self._schemas:
            raise SchemaEngineError(f'schema with key or id "{key}" already exists')
        self._check_schema(schema)
        self._check_keywords(schema)
        self._schemas[key] = schema
        resource = Resource.from_contents(schema, default_specification=self._specification)
        self._registry = self._registry.with_resource(uri=key, resource=resource)
        self._compiled.clear()
        logger.debug(f"Added schema '{key}'")

    def remove_schema(self, key: str) -> None:
        if key not in self._schemas:
            raise MissingSchemaError(key)
        del self._schemas[key]
        self._registry = Registry().with_resources(
            (name, Resource.from_contents(schema, default_specification=self._specification))
            for name, schema in self._schemas.items()
        )
        self._compiled.clear()
        logger.debug(f"Removed schema '{key}'")

    def get_schema(self, key: str) -> Optional[Mapping[str, Any]]:
        return self._schemas.get(key)

    def schema_keys(self) -> List[str]:
        return list(self._schemas)

    def add_keyword(self, name: str, func: Callable, check: Optional[Callable[[Any], None]] = None) -> None:
        """
        Add (or replace) a schema keyword. `func` follows the jsonschema
        keyword signature `(validator, value, instance, schema)` and yields
        ValidationErrors. `check`, when given, is called by add_schema with
        every value of the keyword and raises SchemaError to reject it.
        """
        self._keywords[name] = func
        if check is not None:
            self._checks[name] = check
        self._validator_class = validators.extend(self._validator_class, validators={name: func})
        self._compiled.clear()

    def has_keyword(self, name: str) -> bool:
        return name in self._keywords

    def redefine_types(self, checkers: Mapping[str, Callable[[Any, Any], bool]]) -> None:
        """Replace the checks behind the standard `type` keyword names."""
        type_checker = self._validator_class.TYPE_CHECKER.redefine_many(checkers)
        self._validator_class = validators.extend(self._validator_class, type_checker=type_checker)
        self._compiled.clear()

    def validate(self, name_or_ref: SchemaRef, data: Any) -> bool:
        """
        Validate `data` and record the outcome in `self.errors`
        (None when the data is valid).
        """
        errors = self.collect_errors(name_or_ref, data)
        self.errors = errors or None
        return not errors

    def collect_errors(self, name_or_ref: SchemaRef, data: Any) -> List[ErrorDetail]:
        """Validate `data` without touching `self.errors`."""
        validator = self._validator_for(name_or_ref)
        found = validator.iter_errors(data)
        if not self.all_errors:
            found = itertools.islice(found, 1)
        try:
            return [self._to_detail(error) for error in found]
        except Unresolvable as e:
            raise MissingSchemaError(getattr(e, "ref", None) or self._ref_key(name_or_ref)) from e

    def errors_text(self, errors: Optional[Iterable[ErrorDetail]] = None,
                    separator: str = ", ", data_var: str = "data") -> str:
        """
        Human readable summary of `errors` (default: the last recorded errors).
        """
        if errors is None:
            errors = self.errors
        errors = list(errors or [])
        if not errors:
            return "No errors"
        return separator.join(f"{data_var}{error.data_path} {error.message}" for error in errors)

    def _validator_for(self, name_or_ref: SchemaRef):
        if isinstance(name_or_ref, str):
            if name_or_ref not in self._compiled:
                schema = self._schemas.get(name_or_ref)
                if schema is None:
                    raise MissingSchemaError(name_or_ref)
                self._compiled[name_or_ref] = self._validator_class(schema, registry=self._registry)
            return self._compiled[name_or_ref]

        if not isinstance(name_or_ref, Mapping) or "$ref" not in name_or_ref:
            raise SchemaEngineError(f"Expected a schema key or a {{'$ref': ...}} mapping, got {name_or_ref!r}")
        return self._validator_class(dict(name_or_ref), registry=self._registry)

    def _check_schema(self, schema: Any) -> None:
        # Checked with this engine's own type checks, so BSON limits such as Decimal128 pass
        meta_validator = self._validator_class(self._validator_class.META_SCHEMA)
        error = best_match(meta_validator.iter_errors(schema))
        if error is not None:
            raise SchemaError.create_from(error)

    def _check_keywords(self, schema: Any) -> None:
        if isinstance(schema, list):
            for item in schema:
                self._check_keywords(item)
            return
        if not isinstance(schema, Mapping):
            return
        for key, value in schema.items():
            if key in _NOT_SCHEMAS:
                continue
            if key in self._checks:
                self._checks[key](value)
            if key in _SCHEMA_MAPS and isinstance(value, Mapping):
                # Keys here are property names, not keywords
                for subschema in value.values():
                    self._check_keywords(subschema)
            else:
                self._check_keywords(value)

    @staticmethod
    def _ref_key(name_or_ref: SchemaRef) -> str:
        if isinstance(name_or_ref, str):
            return name_or_ref
        return str(name_or_ref["$ref"])

    def _to_detail(self, error: ValidationError) -> ErrorDetail:
        message, params = _describe(error)
        return ErrorDetail(
            keyword=str(error.validator),
            data_path=_data_path(error.absolute_path),
            schema_path="/".join(["#", *(str(part) for part in error.schema_path)]),
            params=params,
            message=message,
        )


def _data_path(path: Iterable[Union[str, int]]) -> str:
    parts = []
    for part in path:
        if isinstance(part, int):
            parts.append(f"[{part}]")
        elif _IDENTIFIER.match(part):
            parts.append(f".{part}")
        else:
            escaped = part.replace("\\", "\\\\").replace("'", "\\'")
            parts.append(f"['{escaped}']")
    return "".join(parts)


def _limit(comparison: str, exclusive_key: str):
    def describe(error: ValidationError) -> Tuple[str, Dict[str, Any]]:
        exclusive = bool(error.schema.get(exclusive_key, False))
        op = comparison if exclusive else comparison + "="
        return f"should be {op} {error.validator_value}", {
            "comparison": op,
            "limit": error.validator_value,
            "exclusive": exclusive,
        }
    return describe


def _counted(template: str):
    def describe(error: ValidationError) -> Tuple[str, Dict[str, Any]]:
        return template.format(limit=error.validator_value), {"limit": error.validator_value}
    return describe


def _type(error: ValidationError) -> Tuple[str, Dict[str, Any]]:
    types = error.validator_value
    if not isinstance(types, str):
        types = ",".join(types)
    return f"should be {types}", {"type": types}


def _additional_properties(error: ValidationError) -> Tuple[str, Dict[str, Any]]:
    properties = error.schema.get("properties", {})
    patterns = error.schema.get("patternProperties", {})
    extras = [
        name for name in error.instance
        if name not in properties and not any(re.search(pattern, name) for pattern in patterns)
    ]
    return "should NOT have additional properties", {"additionalProperty": extras[0] if extras else None}


_DESCRIBERS: Dict[str, Callable[[ValidationError], Tuple[str, Dict[str, Any]]]] = {
    "type": _type,
    "minimum": _limit(">", "exclusiveMinimum"),
    "maximum": _limit("<", "exclusiveMaximum"),
    "minLength": _counted("should NOT be shorter than {limit} characters"),
    "maxLength": _counted("should NOT be longer than {limit} characters"),
    "minItems": _counted("should NOT have fewer than {limit} items"),
    "maxItems": _counted("should NOT have more than {limit} items"),
    "minProperties": _counted("should NOT have fewer than {limit} properties"),
    "maxProperties": _counted("should NOT have more than {limit} properties"),
    "pattern": lambda error: (f'should match pattern "{error.validator_value}"', {"pattern": error.validator_value}),
    "enum": lambda error: ("should be equal to one of the allowed values", {"allowedValues": error.validator_value}),
    "multipleOf": lambda error: (f"should be multiple of {error.validator_value}", {"multipleOf": error.validator_value}),
    "uniqueItems": lambda error: ("should NOT have duplicate items", {}),
    "additionalProperties": _additional_properties,
}


def _describe(error: ValidationError) -> Tuple[str, Dict[str, Any]]:
    if isinstance(error, KeywordError):
        return error.message, error.params
    describer = _DESCRIBERS.get(error.validator)
    if describer is None:
        return error.message, {}
    return describer(error)
