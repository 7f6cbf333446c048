
# Example usage:
# import database
# from schemas import Car
#
# database.connect()  # DATABASE_URL / DATABASE_NAME, defaults to mongodb://localhost:27017/cars
#
# # Create cars from Pydantic models (dicts are validated against the collection's schema)
# ids = database.create_documents("cars", [Car(make="Tesla", model="S")])
#
# # Get all cars, or only the Teslas
# cars = database.get_documents("cars")
# teslas = database.get_documents("cars", {"make": "Tesla"})
#
# # Replace named fields on the first match and get the updated document back
# updated = database.find_one_and_update("cars", {"make": "Tesla"}, {"model": "X"})
#
# # Delete everything, then close the shared connection
# database.delete_documents("cars", {})
# database.disconnect()


import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from schemas import MODELS

# Load environment variables from .env file
load_dotenv()

_log = logging.getLogger(__name__)

DEFAULT_URL = "mongodb://localhost:27017"
DEFAULT_NAME = "cars"
TIMEOUT_MS = 5000

_client = None
db = None


class DatabaseNotAvailable(Exception):
    """Raised when a helper is used before connect() succeeded."""

    def __init__(self):
        super().__init__(
            "Database not available. Call connect() and check DATABASE_URL and DATABASE_NAME."
        )


def connect(url: Optional[str] = None, name: Optional[str] = None, client=None):
    """Open the shared connection and make sure unique indexes exist.

    Args:
        url: MongoDB server URL, default from DATABASE_URL
        name: database name, default from DATABASE_NAME
        client: an already-built client (e.g. mongomock) to use instead of MongoClient

    Returns:
        The connected pymongo Database

    Raises:
        pymongo.errors.PyMongoError: if the server cannot be reached. The
            error is logged and the half-open connection is closed first.
    """
    global _client, db

    url = url or os.getenv("DATABASE_URL", DEFAULT_URL)
    name = name or os.getenv("DATABASE_NAME", DEFAULT_NAME)

    if _client is not None:
        disconnect()

    try:
        _client = client if client is not None else MongoClient(
            url, serverSelectionTimeoutMS=TIMEOUT_MS, connectTimeoutMS=TIMEOUT_MS
        )
        # MongoClient connects lazily; force a round trip so failures show up here
        _client.server_info()
        db = _client[name]
        ensure_indexes()
    except PyMongoError as err:
        _log.error(f"Mongo connection error: {err}")
        disconnect()
        raise

    _log.info(f"Opened mongo: {name}")
    return db


def disconnect():
    """Close the shared connection. Safe to call when not connected."""
    global _client, db

    if _client is None:
        return
    _client.close()
    _client = None
    db = None
    _log.info("Closed mongo.")


def is_connected() -> bool:
    return db is not None


def get_db():
    if db is None:
        raise DatabaseNotAvailable()
    return db


def ensure_indexes():
    """Create a unique index for every field a schema marks as unique"""
    for collection_name, model in MODELS.items():
        for field in model.unique_fields:
            get_db()[collection_name].create_index(field, unique=True)
            _log.debug(f"Unique index on {collection_name}.{field}")


def _has_timestamps(collection_name: str) -> bool:
    model = MODELS.get(collection_name)
    # Unregistered collections get timestamps on every document
    return model is None or "updated_at" in model.model_fields


def _to_dict(collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Validate against the collection's schema and dump for insert"""
    model = MODELS.get(collection_name)
    if isinstance(data, BaseModel):
        if model is not None and not isinstance(data, model):
            raise TypeError(f"{type(data).__name__} does not belong in '{collection_name}'")
        if hasattr(data, "to_document"):
            return data.to_document()
        return data.model_dump(exclude_none=True)
    if model is not None:
        return model.model_validate(data).to_document()
    return dict(data)


def _stamp(collection_name: str, data_dict: dict, creating: bool):
    if not _has_timestamps(collection_name):
        return
    now = datetime.now(timezone.utc)
    if creating and not data_dict.get("created_at"):
        data_dict["created_at"] = now
    data_dict["updated_at"] = now


def as_object_id(doc_id: Union[str, ObjectId]) -> ObjectId:
    """Convert a string id, raising ValueError when it is not a valid ObjectId"""
    if isinstance(doc_id, ObjectId):
        return doc_id
    if not ObjectId.is_valid(doc_id):
        raise ValueError(f"Invalid document ID: {doc_id!r}")
    return ObjectId(doc_id)


# Helper functions for common database operations
def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document

    Args:
        collection_name: Name of the MongoDB collection
        data: Pydantic model instance or dict. Dicts are validated against the
            collection's schema when it has one.

    Returns:
        str: The inserted document's ID
    """
    data_dict = _to_dict(collection_name, data)
    _stamp(collection_name, data_dict, creating=True)

    result = get_db()[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def create_documents(collection_name: str, items: List[Union[BaseModel, dict]]) -> List[str]:
    """Insert several documents in one call, in order. Returns their IDs."""
    docs = []
    for item in items:
        data_dict = _to_dict(collection_name, item)
        _stamp(collection_name, data_dict, creating=True)
        docs.append(data_dict)
    if not docs:
        return []

    result = get_db()[collection_name].insert_many(docs)
    return [str(i) for i in result.inserted_ids]


def get_documents(collection_name: str, filter_dict: dict = None, limit: int = None):
    """Get documents from collection"""
    cursor = get_db()[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)

    return list(cursor)


def count_documents(collection_name: str, filter_dict: dict = None) -> int:
    """Count matching documents, ignoring any limit"""
    return get_db()[collection_name].count_documents(filter_dict or {})


def get_document(collection_name: str, doc_id: Union[str, ObjectId]) -> Optional[dict]:
    """Get one document by its ID, or None"""
    return get_db()[collection_name].find_one({"_id": as_object_id(doc_id)})


def _update_dict(collection_name: str, update_data: Union[BaseModel, dict]) -> dict:
    if isinstance(update_data, BaseModel):
        update_dict = update_data.model_dump(exclude_unset=True, exclude={"id"})
    else:
        update_dict = dict(update_data)
    update_dict.pop("_id", None)
    _stamp(collection_name, update_dict, creating=False)
    return update_dict


def update_document(collection_name: str, filter_dict: dict, update_data: Union[BaseModel, dict]):
    """Update a document

    Args:
        collection_name: Name of the MongoDB collection
        filter_dict: MongoDB filter to find the document to update
        update_data: Pydantic model instance or dict with fields to update

    Returns:
        bool: True if document was modified, False otherwise
    """
    update_dict = _update_dict(collection_name, update_data)

    result = get_db()[collection_name].update_one(filter_dict, {"$set": update_dict})
    return result.modified_count > 0


def find_one_and_update(collection_name: str, filter_dict: dict, update_data: Union[BaseModel, dict],
                        return_new: bool = True) -> Optional[dict]:
    """Replace the named fields on the first match.

    Returns:
        The document after the update (or before it, if return_new is False),
        or None when nothing matched.
    """
    update_dict = _update_dict(collection_name, update_data)
    after = ReturnDocument.AFTER if return_new else ReturnDocument.BEFORE

    return get_db()[collection_name].find_one_and_update(
        filter_dict, {"$set": update_dict}, return_document=after
    )


def delete_document(collection_name: str, filter_dict: dict):
    """Delete a document"""
    result = get_db()[collection_name].delete_one(filter_dict)
    return result.deleted_count > 0


def delete_documents(collection_name: str, filter_dict: dict = None) -> int:
    """Delete every matching document (all of them for an empty filter)"""
    result = get_db()[collection_name].delete_many(filter_dict or {})
    return result.deleted_count
