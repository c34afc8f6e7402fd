"""
Validate a document against a collection's $jsonSchema from the command line.

    python -m document_validator users user.json
    cat user.json | python -m document_validator --all-errors users -
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from bson import json_util
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient

from .config import MONGO_URI, MONGO_DB_NAME, SCHEMA_ALL_ERRORS, setup_logging
from .engine import SchemaEngine
from .exceptions import MissingSchemaError
from .validator import MongoSchemaDocumentValidator

logger = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="document_validator",
        description="Validate a document against the $jsonSchema validator of a MongoDB collection.",
    )
    parser.add_argument("--uri", default=MONGO_URI, help="MongoDB connection string")
    parser.add_argument("--db", default=MONGO_DB_NAME, help="Database name")
    parser.add_argument("--all-errors", action=argparse.BooleanOptionalAction, default=SCHEMA_ALL_ERRORS,
                        help="Report every violation instead of the first one (default from SCHEMA_ALL_ERRORS)")
    parser.add_argument("--list", action="store_true", help="List collections that carry a schema and exit")
    parser.add_argument("collection", nargs="?", help="Collection whose schema to validate against")
    parser.add_argument("file", nargs="?", help="Extended JSON document to validate, '-' for stdin")
    return parser


def read_document(path: str):
    if path == "-":
        return json_util.loads(sys.stdin.read())
    with open(path, "r", encoding="utf-8") as f:
        return json_util.loads(f.read())


async def run(args: argparse.Namespace) -> int:
    document = None
    if not args.list:
        try:
            document = read_document(args.file)
        except (OSError, ValueError, BSONError) as e:
            logger.error(f"Cannot read document from '{args.file}': {e}")
            return EXIT_USAGE

    client = AsyncIOMotorClient(args.uri)
    try:
        validator = MongoSchemaDocumentValidator(client[args.db], SchemaEngine(all_errors=args.all_errors))
        await validator.initialize()

        if args.list:
            for name in validator.collection_names():
                print(name)
            return EXIT_VALID

        try:
            result = validator.validate(args.collection, document)
        except MissingSchemaError as e:
            logger.error(f"Collection '{args.collection}' has no schema validator in '{args.db}': {e}")
            return EXIT_USAGE

        print(json.dumps(result.model_dump(by_alias=True), default=json_util.default, indent=2))
        return EXIT_VALID if result.is_valid else EXIT_INVALID
    finally:
        client.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.list and (args.collection is None or args.file is None):
        parser.error("collection and file are required unless --list is given")

    setup_logging()
    return asyncio.run(run(args))
