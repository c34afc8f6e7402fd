"""
`bsonType` support for the schema engine.

MongoDB's `$jsonSchema` types values by BSON type alias rather than by JSON
type. The checks below decide, for a Python value, which BSON type pymongo
would encode it as.
"""
import datetime
import decimal
import re
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

from bson.binary import Binary
from bson.code import Code
from bson.datetime_ms import DatetimeMS
from bson.dbref import DBRef
from bson.decimal128 import Decimal128
from bson.int64 import Int64
from bson.max_key import MaxKey
from bson.min_key import MinKey
from bson.objectid import ObjectId
from bson.regex import Regex
from bson.timestamp import Timestamp
from jsonschema import Draft4Validator
from jsonschema.exceptions import SchemaError, ValidationError

from .engine import KeywordError, SchemaEngine

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1


def _is_plain_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, (bool, Int64))


def is_int32(value: Any) -> bool:
    return _is_plain_int(value) and INT32_MIN <= value <= INT32_MAX


def is_int64(value: Any) -> bool:
    """Int64 always encodes as long; a plain int only when it overflows int32."""
    if isinstance(value, Int64):
        return True
    return _is_plain_int(value) and not is_int32(value) and INT64_MIN <= value <= INT64_MAX


def is_number(value: Any) -> bool:
    return is_int32(value) or is_int64(value) or isinstance(value, (float, Decimal128))


def _never(value: Any) -> bool:
    # Deprecated BSON types that pymongo never encodes
    return False


BSON_TYPES: Dict[str, Callable[[Any], bool]] = {
    "double": lambda value: isinstance(value, float),
    "string": lambda value: isinstance(value, str) and not isinstance(value, Code),
    "object": lambda value: isinstance(value, (Mapping, DBRef)),
    "array": lambda value: isinstance(value, (list, tuple)),
    "binData": lambda value: isinstance(value, (bytes, Binary, uuid.UUID)),
    "undefined": _never,
    "objectId": lambda value: isinstance(value, ObjectId),
    "bool": lambda value: isinstance(value, bool),
    "date": lambda value: isinstance(value, (datetime.datetime, DatetimeMS)),
    "null": lambda value: value is None,
    "regex": lambda value: isinstance(value, (Regex, re.Pattern)),
    "dbPointer": _never,
    "javascript": lambda value: isinstance(value, Code) and value.scope is None,
    "symbol": _never,
    "javascriptWithScope": lambda value: isinstance(value, Code) and value.scope is not None,
    "int": is_int32,
    "timestamp": lambda value: isinstance(value, Timestamp),
    "long": is_int64,
    "decimal": lambda value: isinstance(value, Decimal128),
    "minKey": lambda value: isinstance(value, MinKey),
    "maxKey": lambda value: isinstance(value, MaxKey),
    "number": is_number,
}


def _aliases(value: Any) -> list:
    return [value] if isinstance(value, str) else list(value)


def check_bson_type(value: Any) -> None:
    """Reject a `bsonType` value naming an unknown alias."""
    if not isinstance(value, (str, list)) or not value:
        raise SchemaError(f"bsonType must be an alias or a non-empty list of aliases, got {value!r}")
    for alias in _aliases(value):
        if not isinstance(alias, str) or alias not in BSON_TYPES:
            raise SchemaError(f"Unknown bsonType alias {alias!r}")


def bson_type(validator, types, instance, schema):
    aliases = _aliases(types)
    if not any(BSON_TYPES[alias](instance) for alias in aliases):
        expected = ",".join(aliases)
        yield KeywordError(f"should be {expected}", params={"bsonType": expected})


def _as_decimal(value: Any) -> Optional[decimal.Decimal]:
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    elif isinstance(value, float):
        value = decimal.Decimal(repr(value))
    elif not isinstance(value, decimal.Decimal):
        value = decimal.Decimal(value)
    return None if value.is_nan() else value


def _decimal_aware(keyword: str, failed: Callable[[decimal.Decimal, decimal.Decimal, Mapping], bool], message: str):
    """
    Wrap a numeric keyword so Decimal128 values and limits are compared as
    decimals; everything else goes to the stock Draft 4 implementation.
    """
    stock = Draft4Validator.VALIDATORS[keyword]

    def check(validator, limit, instance, schema):
        if not validator.is_type(instance, "number"):
            return
        if not isinstance(instance, Decimal128) and not isinstance(limit, Decimal128):
            yield from stock(validator, limit, instance, schema)
            return
        value, bound = _as_decimal(instance), _as_decimal(limit)
        if value is None or bound is None:
            return
        if failed(value, bound, schema):
            yield ValidationError(message.format(instance=instance, limit=limit))
    return check


def _below_minimum(value, bound, schema):
    return value <= bound if schema.get("exclusiveMinimum", False) else value < bound


def _above_maximum(value, bound, schema):
    return value >= bound if schema.get("exclusiveMaximum", False) else value > bound


def _not_multiple(value, bound, schema):
    if not value.is_finite() or not bound.is_finite() or bound == 0:
        return False
    return value % bound != 0


minimum = _decimal_aware("minimum", _below_minimum, "{instance!r} is less than the minimum of {limit!r}")
maximum = _decimal_aware("maximum", _above_maximum, "{instance!r} is greater than the maximum of {limit!r}")
multiple_of = _decimal_aware("multipleOf", _not_multiple, "{instance!r} is not a multiple of {limit!r}")


def install_bson_types(engine: SchemaEngine) -> SchemaEngine:
    """
    Teach `engine` the `bsonType` keyword and make the standard `type`
    keyword accept BSON containers and numbers, Decimal128 included, with
    numeric bounds applied to decimals too. Safe to call more than once.
    """
    if engine.has_keyword("bsonType"):
        return engine

    engine.add_keyword("bsonType", bson_type, check=check_bson_type)
    engine.add_keyword("minimum", minimum)
    engine.add_keyword("maximum", maximum)
    engine.add_keyword("multipleOf", multiple_of)
    engine.redefine_types({
        "object": lambda checker, instance: isinstance(instance, Mapping),
        "array": lambda checker, instance: isinstance(instance, (list, tuple)),
        "integer": lambda checker, instance: is_int32(instance) or is_int64(instance),
        "number": lambda checker, instance: (
            is_int32(instance) or is_int64(instance) or isinstance(instance, (float, Decimal128))
        ),
    })
    return engine
