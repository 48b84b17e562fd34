# File location: nssf/core_network/db.py
# MongoDB Persistence Layer for the NSSF
# Provides motor collections, or in-memory collections with the same interface when MongoDB is disabled

import logging
import threading
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.results import DeleteResult, UpdateResult

from config import settings

logger = logging.getLogger(__name__)


class InMemoryCursor:
    """Result of InMemoryCollection.find, awaited through to_list like a motor cursor"""

    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = documents

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        if length is None:
            return list(self._documents)
        return self._documents[:length]


class InMemoryCollection:
    """In-memory collection that mimics the subset of the motor collection interface the NSSF uses"""

    def __init__(self, name: str):
        self.name = name
        self._data: Dict[str, Dict[str, Any]] = {}
        self._counter = 0
        self._lock = threading.Lock()

    async def find_one(self, filter_dict: Dict) -> Optional[Dict]:
        """Find a single document matching the filter"""
        with self._lock:
            for doc in self._data.values():
                if self._matches_filter(doc, filter_dict):
                    return deepcopy(doc)
        return None

    def find(self, filter_dict: Dict = None) -> InMemoryCursor:
        """Find all documents matching the filter, in insertion order"""
        with self._lock:
            docs = [deepcopy(doc) for doc in self._data.values()
                    if self._matches_filter(doc, filter_dict or {})]
        return InMemoryCursor(docs)

    async def insert_one(self, document: Dict) -> str:
        """Insert a single document"""
        with self._lock:
            return self._insert(document)

    def _insert(self, document: Dict) -> str:
        self._counter += 1
        doc_id = document.get("_id") or str(self._counter)
        stored = deepcopy(document)
        stored["_id"] = doc_id
        stored["created_at"] = datetime.now(timezone.utc).isoformat()
        self._data[doc_id] = stored
        return doc_id

    async def find_one_and_update(
        self,
        filter_dict: Dict,
        update: Dict,
        return_document: bool = ReturnDocument.BEFORE,
    ) -> Optional[Dict]:
        """Match and update under one lock acquisition, so conditional updates are atomic"""
        with self._lock:
            for doc in self._data.values():
                if self._matches_filter(doc, filter_dict):
                    before = deepcopy(doc)
                    self._apply_update(doc, update)
                    doc["updated_at"] = datetime.now(timezone.utc).isoformat()
                    return deepcopy(doc) if return_document == ReturnDocument.AFTER else before
        return None

    async def replace_one(self, filter_dict: Dict, replacement: Dict, upsert: bool = False) -> UpdateResult:
        """Replace the first matching document, inserting it when upsert is set and nothing matches"""
        with self._lock:
            for doc_id, doc in self._data.items():
                if self._matches_filter(doc, filter_dict):
                    stored = deepcopy(replacement)
                    stored["_id"] = doc_id
                    stored["created_at"] = doc.get("created_at")
                    stored["updated_at"] = datetime.now(timezone.utc).isoformat()
                    self._data[doc_id] = stored
                    return UpdateResult({"n": 1, "nModified": 1}, True)
            if not upsert:
                return UpdateResult({"n": 0, "nModified": 0}, True)
            doc_id = self._insert(replacement)
        return UpdateResult({"n": 1, "nModified": 0, "upserted": doc_id}, True)

    async def delete_one(self, filter_dict: Dict) -> DeleteResult:
        """Delete a single document"""
        with self._lock:
            for doc_id, doc in list(self._data.items()):
                if self._matches_filter(doc, filter_dict):
                    del self._data[doc_id]
                    return DeleteResult({"n": 1}, True)
        return DeleteResult({"n": 0}, True)

    @staticmethod
    def _apply_update(doc: Dict, update: Dict):
        for key, value in update.get("$set", {}).items():
            doc[key] = value
        for key, value in update.get("$inc", {}).items():
            doc[key] = (doc.get(key) or 0) + value

    @staticmethod
    def _resolve(doc: Dict, key: str) -> Any:
        """Resolve a dotted key like "plmnId.mcc"; missing paths resolve to None"""
        current = doc
        for part in key.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return None
        return current

    def _matches_filter(self, doc: Dict, filter_dict: Dict) -> bool:
        """Check if document matches filter"""
        for key, value in filter_dict.items():
            if key == "$or":
                if not any(self._matches_filter(doc, branch) for branch in value):
                    return False
            elif key == "$expr":
                if not self._evaluate_expr(doc, value):
                    return False
            elif isinstance(value, dict) and any(k.startswith("$") for k in value):
                if not self._matches_operators(self._resolve(doc, key), value):
                    return False
            elif self._resolve(doc, key) != value:
                return False
        return True

    @staticmethod
    def _matches_operators(current: Any, operators: Dict) -> bool:
        for op, operand in operators.items():
            if current is None:
                return False
            elif op == "$gt" and not current > operand:
                return False
            elif op == "$gte" and not current >= operand:
                return False
            elif op == "$lt" and not current < operand:
                return False
            elif op == "$lte" and not current <= operand:
                return False
        return True

    def _evaluate_expr(self, doc: Dict, expr: Dict) -> bool:
        # Only the field-to-field comparisons used by the admission counters
        (op, (left, right)), = expr.items()
        left_value = self._resolve(doc, left[1:]) if isinstance(left, str) and left.startswith("$") else left
        right_value = self._resolve(doc, right[1:]) if isinstance(right, str) and right.startswith("$") else right
        if left_value is None or right_value is None:
            return False
        if op == "$lt":
            return left_value < right_value
        if op == "$lte":
            return left_value <= right_value
        raise ValueError(f"Unsupported $expr operator: {op}")


class Database:
    """Unified database interface supporting MongoDB with in-memory storage when MongoDB is disabled"""

    def __init__(
        self,
        uri: str = settings.MONGODB_URI,
        database: str = settings.MONGODB_DATABASE,
        enabled: bool = settings.MONGODB_ENABLED,
        timeout_ms: int = settings.MONGODB_TIMEOUT_MS,
    ):
        self.uri = uri
        self.database = database
        self.enabled = enabled
        self.timeout_ms = timeout_ms
        self._client = None
        self._db = None
        self._collections: Dict[str, Any] = {}
        self._is_connected = False

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> bool:
        """Establish database connection"""
        if self._is_connected:
            return True

        if not self.enabled:
            logger.info("Using in-memory storage (MongoDB disabled)")
            return False

        self._client = AsyncIOMotorClient(
            self.uri,
            serverSelectionTimeoutMS=self.timeout_ms,
            connectTimeoutMS=self.timeout_ms,
            socketTimeoutMS=self.timeout_ms,
        )
        # Test connection
        await self._client.admin.command('ping')
        self._db = self._client[self.database]
        self._collections.clear()
        self._is_connected = True
        logger.info(f"Connected to MongoDB: {self.database}")
        return True

    def get_collection(self, name: str):
        """Get or create a collection"""
        if name not in self._collections:
            if self._is_connected and self._db is not None:
                self._collections[name] = self._db[name]
            else:
                self._collections[name] = InMemoryCollection(name)
        return self._collections[name]

    async def close(self):
        """Close database connection"""
        if self._client:
            self._client.close()
            self._is_connected = False
            logger.info("Database connection closed")


# Collection name constants for the NSSF
class Collections:
    SUBSCRIPTIONS = "subscriptions"
    SLICES = "slices"
    POLICIES = "policies"
    NSAGS = "nsags"
    NSSRGS = "nssrgs"
    SNSSAI_MAPPINGS = "snssai-mappings"
    NSI = "nsi"
    AMF_SETS = "amf_sets"
    AMF_SERVICE_SETS = "amf_service_sets"
    AMF_INSTANCES = "amf_instances"
    NSSAI_AVAILABILITY = "nssai_availability"
    NSSAI_AVAILABILITY_SUBSCRIPTIONS = "nssai_availability_subscriptions"
