"""
Document store access.

Documents go in and come out as plain dicts with a string `id` in place of
Mongo's `_id`. `MongoDocumentStore` talks to MongoDB through pymongo;
`InMemoryDocumentStore` keeps the same contract in process for development
and tests.
"""

import copy
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Union

from bson.errors import InvalidId
from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import DESCENDING, MongoClient, ReturnDocument

from config import Settings

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

SORT_NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


class DocumentStore(Protocol):
    """Interface the services use for persistence."""

    def insert(self, collection: str, data: Union[BaseModel, dict]) -> Document:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    def find(self, collection: str, filter: Optional[dict] = None) -> List[Document]:
        ...

    def find_one(self, collection: str, filter: dict) -> Optional[Document]:
        ...

    def update(self, collection: str, doc_id: str, fields: dict) -> Optional[Document]:
        ...

    def delete(self, collection: str, doc_id: str) -> bool:
        ...

    def delete_many(self, collection: str, filter: dict) -> int:
        ...

    def ping(self) -> None:
        ...

    def ensure_indexes(self) -> None:
        ...

    def list_collection_names(self) -> List[str]:
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(doc_id: str) -> Optional[ObjectId]:
    if not isinstance(doc_id, str):
        return None
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def to_public(doc: Optional[dict]) -> Optional[Document]:
    if not doc:
        return doc
    doc = {**doc}
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def _new_document(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    return doc


class MongoDocumentStore:
    """pymongo-backed store."""

    def __init__(self, url: str, database_name: str, **client_kwargs):
        client_kwargs.setdefault("serverSelectionTimeoutMS", 5000)
        client_kwargs.setdefault("tz_aware", True)
        self.client = MongoClient(url, **client_kwargs)
        self.db = self.client[database_name]

    def insert(self, collection: str, data: Union[BaseModel, dict]) -> Document:
        doc = _new_document(data)
        result = self.db[collection].insert_one(doc)
        doc["_id"] = result.inserted_id
        return to_public(doc)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return to_public(self.db[collection].find_one({"_id": oid}))

    def find(self, collection: str, filter: Optional[dict] = None) -> List[Document]:
        cursor = self.db[collection].find(filter or {}).sort(SORT_NEWEST_FIRST)
        return [to_public(doc) for doc in cursor]

    def find_one(self, collection: str, filter: dict) -> Optional[Document]:
        return to_public(self.db[collection].find_one(filter))

    def update(self, collection: str, doc_id: str, fields: dict) -> Optional[Document]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        update = {**fields, "updated_at": utcnow()}
        doc = self.db[collection].find_one_and_update(
            {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
        )
        return to_public(doc)

    def delete(self, collection: str, doc_id: str) -> bool:
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        return self.db[collection].delete_one({"_id": oid}).deleted_count == 1

    def delete_many(self, collection: str, filter: dict) -> int:
        return self.db[collection].delete_many(filter).deleted_count

    def ping(self) -> None:
        self.client.admin.command("ping")

    def ensure_indexes(self) -> None:
        users = self.db["user"]
        users.create_index("username", unique=True)
        users.create_index("email", unique=True)
        self.db["comment"].create_index("post_id")

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()


def _matches(doc: dict, filter: dict) -> bool:
    for key, expected in filter.items():
        if key == "$or":
            if not any(_matches(doc, clause) for clause in expected):
                return False
        elif doc.get(key) != expected:
            return False
    return True


class InMemoryDocumentStore:
    """Dict-backed store for development and tests.

    Supports the equality and `$or` filters the services issue.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[ObjectId, dict]] = defaultdict(dict)

    def insert(self, collection: str, data: Union[BaseModel, dict]) -> Document:
        doc = _new_document(data)
        doc["_id"] = ObjectId()
        self.collections[collection][doc["_id"]] = doc
        return to_public(copy.deepcopy(doc))

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        oid = to_object_id(doc_id)
        doc = self.collections[collection].get(oid) if oid else None
        return to_public(copy.deepcopy(doc))

    def find(self, collection: str, filter: Optional[dict] = None) -> List[Document]:
        docs = [
            doc for doc in self.collections[collection].values()
            if _matches(doc, filter or {})
        ]
        docs.sort(key=lambda d: (d["created_at"], d["_id"]), reverse=True)
        return [to_public(copy.deepcopy(doc)) for doc in docs]

    def find_one(self, collection: str, filter: dict) -> Optional[Document]:
        for doc in self.collections[collection].values():
            if _matches(doc, filter):
                return to_public(copy.deepcopy(doc))
        return None

    def update(self, collection: str, doc_id: str, fields: dict) -> Optional[Document]:
        oid = to_object_id(doc_id)
        doc = self.collections[collection].get(oid) if oid else None
        if doc is None:
            return None
        doc.update(copy.deepcopy(fields))
        doc["updated_at"] = utcnow()
        return to_public(copy.deepcopy(doc))

    def delete(self, collection: str, doc_id: str) -> bool:
        oid = to_object_id(doc_id)
        return self.collections[collection].pop(oid, None) is not None

    def delete_many(self, collection: str, filter: dict) -> int:
        docs = self.collections[collection]
        doomed = [oid for oid, doc in docs.items() if _matches(doc, filter)]
        for oid in doomed:
            del docs[oid]
        return len(doomed)

    def ping(self) -> None:
        return None

    def ensure_indexes(self) -> None:
        return None

    def list_collection_names(self) -> List[str]:
        return [name for name, docs in self.collections.items() if docs]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


def create_store(settings: Settings) -> DocumentStore:
    if settings.use_in_memory_store:
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()
    return MongoDocumentStore(settings.database_url, settings.database_name)
