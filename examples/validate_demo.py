"""
Creates a collection with a $jsonSchema validator, checks documents against it
locally, then shows the server rejecting the same invalid document.
"""
import asyncio
import sys
import os

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import WriteError

# Add project root to sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from document_validator import MongoSchemaDocumentValidator, SchemaEngine, is_document_failed_validation_error
from document_validator.config import MONGO_URI, MONGO_DB_NAME, setup_logging


CARS_VALIDATOR = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["name", "year"],
        "properties": {
            "name": {"bsonType": "string", "description": "must be a string and is required"},
            "year": {
                "bsonType": "int",
                "minimum": 2017,
                "maximum": 3017,
                "description": "must be an integer in [ 2017, 3017 ] and is required"
            }
        }
    }
}


async def main():
    client = AsyncIOMotorClient(MONGO_URI)
    db = client[MONGO_DB_NAME]
    try:
        if "cars" not in await db.list_collection_names():
            await db.create_collection(
                "cars", validator=CARS_VALIDATOR, validationLevel="strict", validationAction="error"
            )

        validator = MongoSchemaDocumentValidator(db, SchemaEngine(all_errors=True))
        await validator.initialize()

        for document in ({"name": "Model 3", "year": 2020}, {}):
            result = validator.validate("cars", document)
            print(f"{document} -> valid={result.is_valid} ({result.errors_text})")

        try:
            await db["cars"].insert_one({})
        except WriteError as e:
            if not is_document_failed_validation_error(e):
                raise
            print("Server rejected the document as well (code 121)")
    finally:
        client.close()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
