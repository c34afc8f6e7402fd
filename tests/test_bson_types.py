import datetime
import re
import unittest

from bson.binary import Binary
from bson.code import Code
from bson.decimal128 import Decimal128
from bson.int64 import Int64
from bson.max_key import MaxKey
from bson.min_key import MinKey
from bson.objectid import ObjectId
from bson.regex import Regex
from bson.son import SON
from bson.timestamp import Timestamp
from jsonschema.exceptions import SchemaError

from document_validator.bson_types import BSON_TYPES, install_bson_types
from document_validator.engine import SchemaEngine

SAMPLES = {
    "double": 1.5,
    "string": "text",
    "object": SON([("a", 1)]),
    "array": [1, 2],
    "binData": Binary(b"\x00\x01", 4),
    "objectId": ObjectId(),
    "bool": True,
    "date": datetime.datetime(2020, 1, 1, tzinfo=datetime.timezone.utc),
    "null": None,
    "regex": Regex("^a", "i"),
    "javascript": Code("function () { return 1; }"),
    "javascriptWithScope": Code("function () { return x; }", {"x": 1}),
    "int": 42,
    "timestamp": Timestamp(1600000000, 1),
    "long": Int64(42),
    "decimal": Decimal128("1.10"),
    "minKey": MinKey(),
    "maxKey": MaxKey(),
}


class TestBsonTypes(unittest.TestCase):

    def test_each_alias_matches_its_sample_only(self):
        for alias, sample in SAMPLES.items():
            with self.subTest(alias=alias):
                self.assertTrue(BSON_TYPES[alias](sample))
                others = [name for name, value in SAMPLES.items() if name != alias and BSON_TYPES[alias](value)]
                self.assertEqual(others, [])

    def test_int_ranges(self):
        self.assertTrue(BSON_TYPES["int"](2 ** 31 - 1))
        self.assertFalse(BSON_TYPES["int"](2 ** 31))
        self.assertTrue(BSON_TYPES["long"](2 ** 31))
        self.assertFalse(BSON_TYPES["long"](2 ** 63))
        self.assertFalse(BSON_TYPES["int"](False))

    def test_number_alias(self):
        for value in (1, Int64(1), 1.0, Decimal128("1")):
            self.assertTrue(BSON_TYPES["number"](value))
        for value in (True, "1", None):
            self.assertFalse(BSON_TYPES["number"](value))

    def test_deprecated_aliases_never_match(self):
        for alias in ("undefined", "dbPointer", "symbol"):
            self.assertFalse(any(BSON_TYPES[alias](value) for value in SAMPLES.values()))

    def test_python_natives(self):
        self.assertTrue(BSON_TYPES["binData"](b"raw"))
        self.assertTrue(BSON_TYPES["regex"](re.compile("^a")))
        self.assertTrue(BSON_TYPES["array"]((1, 2)))
        self.assertTrue(BSON_TYPES["object"]({"a": 1}))


class TestInstallBsonTypes(unittest.TestCase):

    def setUp(self):
        self.engine = install_bson_types(SchemaEngine(all_errors=True))

    def test_alias_list(self):
        self.engine.add_schema({"properties": {"note": {"bsonType": ["string", "null"]}}}, "notes")

        self.assertTrue(self.engine.validate("notes", {"note": None}))
        self.assertTrue(self.engine.validate("notes", {"note": "hi"}))
        self.assertFalse(self.engine.validate("notes", {"note": 3}))
        self.assertEqual(self.engine.errors[0].params, {"bsonType": "string,null"})
        self.assertEqual(self.engine.errors_text(), "data.note should be string,null")

    def test_object_id_field(self):
        self.engine.add_schema({
            "bsonType": "object",
            "required": ["company_id"],
            "properties": {"company_id": {"bsonType": "objectId"}}
        }, "documents")

        self.assertTrue(self.engine.validate("documents", {"company_id": ObjectId()}))
        self.assertFalse(self.engine.validate("documents", {"company_id": str(ObjectId())}))
        self.assertEqual(self.engine.errors[0].schema_path, "#/properties/company_id/bsonType")

    def test_type_keyword_accepts_bson_values(self):
        self.engine.add_schema({"type": "object", "properties": {"n": {"type": "integer"}}}, "plain")

        self.assertTrue(self.engine.validate("plain", SON([("n", Int64(7))])))

    def test_decimal_is_a_number(self):
        self.engine.add_schema({"properties": {"amount": {"type": "number"}}}, "ledger")

        self.assertTrue(self.engine.validate("ledger", {"amount": Decimal128("5")}))

    def test_decimal_bounds(self):
        self.engine.add_schema({
            "properties": {
                "price": {"bsonType": "decimal", "minimum": 0},
                "rate": {"bsonType": "decimal", "maximum": 1, "exclusiveMaximum": True},
                "ratio": {"type": "number", "minimum": Decimal128("0.5")}
            }
        }, "prices")

        self.assertTrue(self.engine.validate("prices", {"price": Decimal128("0"), "rate": Decimal128("0.99")}))
        self.assertFalse(self.engine.validate("prices", {"price": Decimal128("-5")}))
        self.assertEqual(self.engine.errors[0].schema_path, "#/properties/price/minimum")

        self.assertFalse(self.engine.validate("prices", {"rate": Decimal128("1")}))
        self.assertEqual(self.engine.errors_text(), "data.rate should be < 1")

        self.assertFalse(self.engine.validate("prices", {"ratio": 0.25}))
        self.assertTrue(self.engine.validate("prices", {"ratio": Decimal128("0.75")}))
        self.assertTrue(self.engine.validate("prices", {"price": Decimal128("NaN")}))

    def test_decimal_multiple_of(self):
        self.engine.add_schema({"bsonType": "decimal", "multipleOf": 0.05}, "cents")

        self.assertTrue(self.engine.validate("cents", Decimal128("1.15")))
        self.assertFalse(self.engine.validate("cents", Decimal128("1.151")))
        self.assertEqual(self.engine.errors[0].keyword, "multipleOf")

    def test_unknown_alias_rejected_on_registration(self):
        with self.assertRaises(SchemaError):
            self.engine.add_schema({"properties": {"n": {"bsonType": "integer"}}}, "bad")
        with self.assertRaises(SchemaError):
            self.engine.add_schema({"bsonType": []}, "empty")

    def test_property_named_bson_type_is_not_a_keyword(self):
        self.engine.add_schema({"properties": {"bsonType": {"bsonType": "string"}}}, "meta")

        self.assertTrue(self.engine.validate("meta", {"bsonType": "int"}))

    def test_install_is_idempotent(self):
        self.assertIs(install_bson_types(self.engine), self.engine)
        self.engine.add_schema({"bsonType": "int"}, "n")
        self.assertEqual(len(self.engine.collect_errors("n", "x")), 1)


if __name__ == "__main__":
    unittest.main()
