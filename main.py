import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Type

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import TypeAdapter, ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

import database
from schemas import MODELS, Document

_log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not database.is_connected():
        try:
            database.connect()
        except PyMongoError:
            # Keep serving; database endpoints answer 503 until restarted
            pass
    yield
    database.disconnect()


app = FastAPI(title="Cars API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def serialize_doc(doc: dict) -> dict:
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def get_model(collection_name: str) -> Type[Document]:
    model = MODELS.get(collection_name)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Collection '{collection_name}' not found")
    return model


def validation_detail(err: ValidationError):
    return [{"loc": list(e["loc"]), "msg": e["msg"]} for e in err.errors()]


def require_db():
    if not database.is_connected():
        raise HTTPException(status_code=503, detail="Database not connected")


def object_id(doc_id: str):
    try:
        return database.as_object_id(doc_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid document ID format")


def coerce_filter(model: Type[Document], params: Dict[str, str]) -> Dict[str, Any]:
    """Turn query string values into the field's type (?year=2014 -> 2014)"""
    filter_dict = {}
    for key, value in params.items():
        if key == "id":
            filter_dict["_id"] = object_id(value)
            continue
        field = model.model_fields.get(key)
        if field is None:
            filter_dict[key] = value
            continue
        try:
            filter_dict[key] = TypeAdapter(field.annotation).validate_python(value)
        except ValidationError:
            raise HTTPException(status_code=400, detail=f"Invalid value for '{key}': {value!r}")
    return filter_dict


@app.get("/")
def read_root():
    return {"message": "Cars API running"}


@app.get("/test")
def test_database():
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "Default",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }

    if database.is_connected():
        db = database.get_db()
        response["database_name"] = db.name
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    return response


@app.get("/api/schemas")
def get_all_schemas():
    """JSON Schema, field names and required fields of every model"""
    schemas_dict = {}
    for collection_name, model in MODELS.items():
        json_schema = model.model_json_schema()
        schemas_dict[collection_name] = {
            "model": model.__name__,
            "json_schema": json_schema,
            "fields": list(model.model_fields.keys()),
            "required_fields": json_schema.get("required", []),
            "unique_fields": list(model.unique_fields),
        }
    return {"ok": True, "schemas": schemas_dict}


@app.get("/api/{collection_name}")
def list_documents(collection_name: str, request: Request, limit: int = 100):
    """
    List documents. Any other query parameter is an equality filter,
    e.g. /api/cars?make=Tesla
    """
    model = get_model(collection_name)
    require_db()

    params = {k: v for k, v in request.query_params.items() if k != "limit"}
    filter_dict = coerce_filter(model, params)
    documents = database.get_documents(collection_name, filter_dict, limit=min(limit, 1000))
    return {
        "ok": True,
        "collection": collection_name,
        "documents": [serialize_doc(d) for d in documents],
        "count": len(documents),
        "total": database.count_documents(collection_name, filter_dict),
    }


@app.post("/api/{collection_name}", status_code=201)
def create_document(collection_name: str, document: Dict[str, Any]):
    """Create a document (validated against the collection's schema)"""
    model = get_model(collection_name)
    require_db()

    try:
        item = model.model_validate(document)
        doc_id = database.create_document(collection_name, item)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=validation_detail(e))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"Duplicate value for {', '.join(model.unique_fields)}")

    return {"ok": True, "id": doc_id, "document": serialize_doc(database.get_document(collection_name, doc_id))}


@app.get("/api/{collection_name}/{doc_id}")
def get_document(collection_name: str, doc_id: str):
    get_model(collection_name)
    require_db()

    doc = database.get_document(collection_name, object_id(doc_id))
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return serialize_doc(doc)


@app.patch("/api/{collection_name}/{doc_id}")
def update_document(collection_name: str, doc_id: str, updates: Dict[str, Any]):
    """Replace the named fields and return the updated document"""
    model = get_model(collection_name)
    require_db()

    obj_id = object_id(doc_id)
    existing = database.get_document(collection_name, obj_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Document not found")

    updates.pop("id", None)
    updates.pop("_id", None)
    unknown = set(updates) - set(model.model_fields)
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown fields: {', '.join(sorted(unknown))}")
    if not updates:
        return serialize_doc(existing)

    try:
        # Validate the merged result, then write only the named fields
        merged = model.from_document({**existing, **updates})
        clean = merged.model_dump(include=set(updates), exclude_unset=True)
        updated = database.find_one_and_update(collection_name, {"_id": obj_id}, clean)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=validation_detail(e))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"Duplicate value for {', '.join(model.unique_fields)}")

    if updated is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return serialize_doc(updated)


@app.delete("/api/{collection_name}/{doc_id}")
def delete_document(collection_name: str, doc_id: str):
    get_model(collection_name)
    require_db()

    if not database.delete_document(collection_name, {"_id": object_id(doc_id)}):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"ok": True, "message": f"Document {doc_id} deleted from {collection_name}"}


@app.delete("/api/{collection_name}")
def delete_all_documents(collection_name: str):
    get_model(collection_name)
    require_db()

    deleted = database.delete_documents(collection_name, {})
    _log.info(f"Deleted {deleted} documents from {collection_name}")
    return {"ok": True, "deleted": deleted}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
