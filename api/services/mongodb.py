# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with organization-scoped, all-or-nothing batch operations.
"""

import os
import logging
from datetime import datetime
from typing import List, Dict, Optional, Any
from pymongo import MongoClient, ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
    PyMongoError
)
from bson import ObjectId
from bson.errors import InvalidId

from domain.exceptions import PartialWriteFailure

logger = logging.getLogger(__name__)


class MongoDBService:
    """MongoDB service with organization scoping and atomic batch writes."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 use_transactions: bool = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/clinic_scheduling_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'clinic_scheduling_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Multi-document transactions need a replica set; standalone servers
        # fall back to compensating cleanup.
        if use_transactions is None:
            use_transactions = os.getenv('MONGODB_USE_TRANSACTIONS', 'false').lower() == 'true'
        self.use_transactions = use_transactions

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'transactions': self.use_transactions
            }
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def _validate_object_id(self, doc_id: str) -> ObjectId:
        """Validate and convert string ID to ObjectId."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise ValueError(f"Invalid ObjectId format: {doc_id}")

    def _build_org_query(self, org_id: str, filters: Dict = None) -> Dict:
        """Build organization-scoped query with optional filters."""
        query = {"organizationId": org_id}

        if filters:
            query.update(filters)

        return query

    def _add_timestamps(self, document: Dict, user_id: str, is_update: bool = False) -> Dict:
        """Add creation and update timestamps to document."""
        now = datetime.utcnow()

        if not is_update:
            document["createdAt"] = now
            document["createdBy"] = user_id

        document["updatedAt"] = now
        document["updatedBy"] = user_id

        return document

    @staticmethod
    def _to_public(document: Dict) -> Dict:
        """Replace the ObjectId primary key with a string id."""
        if "_id" in document:
            document["id"] = str(document["_id"])
            del document["_id"]
        return document

    # Single document operations

    def create(self, collection: str, document: Dict, user_id: str) -> str:
        """Create a new document."""
        try:
            document = self._add_timestamps(dict(document), user_id)

            if "_id" not in document:
                document["_id"] = ObjectId()

            collection_obj = self.get_collection(collection)
            result = collection_obj.insert_one(document)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.error(f"Duplicate key error in {collection}: {e}")
            raise ValueError("Document with this identifier already exists")
        except PyMongoError as e:
            logger.error(f"Failed to create document in {collection}: {e}")
            raise

    def find_by_org(self, collection: str, org_id: str, filters: Dict = None) -> List[Dict]:
        """Find documents by organization, ordered by occurrence date then insertion."""
        try:
            query = self._build_org_query(org_id, filters)
            collection_obj = self.get_collection(collection)

            cursor = collection_obj.find(query).sort([("occurrenceDate", ASCENDING), ("_id", ASCENDING)])
            documents = [self._to_public(doc) for doc in cursor]

            logger.debug(f"Found {len(documents)} documents in {collection} for org {org_id}")
            return documents

        except PyMongoError as e:
            logger.error(f"Failed to find documents in {collection}: {e}")
            raise

    def list_by_subject(self, collection: str, org_id: str, subject_id: str) -> List[Dict]:
        """List every occurrence of one patient."""
        return self.find_by_org(collection, org_id, {"subjectId": subject_id})

    def find_one_by_org(self, collection: str, org_id: str, doc_id: str) -> Optional[Dict]:
        """Find a single document by organization and ID."""
        try:
            object_id = self._validate_object_id(doc_id)
        except ValueError as e:
            logger.error(f"Invalid document ID {doc_id}: {e}")
            return None

        try:
            query = self._build_org_query(org_id, {"_id": object_id})
            document = self.get_collection(collection).find_one(query)

            if document:
                logger.debug(f"Found document {doc_id} in {collection}")
                return self._to_public(document)

            logger.debug(f"Document {doc_id} not found in {collection} for org {org_id}")
            return None

        except PyMongoError as e:
            logger.error(f"Failed to find document {doc_id} in {collection}: {e}")
            raise

    def update_by_org(self, collection: str, org_id: str, doc_id: str,
                      updates: Dict, user_id: str) -> bool:
        """Update a document by organization and ID."""
        try:
            object_id = self._validate_object_id(doc_id)
        except ValueError as e:
            logger.error(f"Invalid document ID {doc_id}: {e}")
            return False

        try:
            query = self._build_org_query(org_id, {"_id": object_id})
            updates = self._add_timestamps(dict(updates), user_id, is_update=True)

            result = self.get_collection(collection).update_one(query, {"$set": updates})

            if result.matched_count > 0:
                logger.info(f"Updated document {doc_id} in {collection}")
                return True

            logger.warning(f"No document updated for {doc_id} in {collection}")
            return False

        except PyMongoError as e:
            logger.error(f"Failed to update document {doc_id} in {collection}: {e}")
            raise

    def delete_by_org(self, collection: str, org_id: str, doc_id: str) -> bool:
        """Delete a single document. Occurrence deletes never cascade."""
        try:
            object_id = self._validate_object_id(doc_id)
        except ValueError as e:
            logger.error(f"Invalid document ID {doc_id}: {e}")
            return False

        try:
            query = self._build_org_query(org_id, {"_id": object_id})
            result = self.get_collection(collection).delete_one(query)

            if result.deleted_count > 0:
                logger.info(f"Deleted document {doc_id} in {collection}")
                return True

            logger.warning(f"No document deleted for {doc_id} in {collection}")
            return False

        except PyMongoError as e:
            logger.error(f"Failed to delete document {doc_id} in {collection}: {e}")
            raise

    # Batch operations (all-or-nothing)

    def create_many(self, collection: str, documents: List[Dict], user_id: str) -> List[str]:
        """
        Insert a batch of documents so that either all of them or none persist.

        Args:
            collection: Collection name
            documents: Documents to insert, organization scoped by the caller
            user_id: Acting user for audit stamps

        Returns:
            List of inserted document IDs, in input order

        Raises:
            PartialWriteFailure: If the batch failed; no document of it remains
        """
        if not documents:
            return []

        prepared = []
        for document in documents:
            document = self._add_timestamps(dict(document), user_id)
            document.setdefault("_id", ObjectId())
            prepared.append(document)
        object_ids = [document["_id"] for document in prepared]

        collection_obj = self.get_collection(collection)
        try:
            if self.use_transactions:
                with self.client.start_session() as session:
                    with session.start_transaction():
                        collection_obj.insert_many(prepared, ordered=True, session=session)
            else:
                collection_obj.insert_many(prepared, ordered=True)

        except PyMongoError as e:
            logger.error(
                f"Batch insert failed in {collection}",
                extra={"collection": collection, "batch_size": len(prepared), "error": str(e)}
            )
            cleanup_errors = []
            if not self.use_transactions:
                cleanup_errors = self._remove_inserted(collection_obj, object_ids)
            raise PartialWriteFailure(f"create_many:{collection}", e, cleanup_errors)

        logger.info(f"Created {len(prepared)} documents in {collection}")
        return [str(object_id) for object_id in object_ids]

    def update_many(self, collection: str, org_id: str, changes: Dict[str, Dict],
                    user_id: str) -> int:
        """
        Apply per-document field changes so that either all of them or none persist.

        Args:
            collection: Collection name
            org_id: Organization scope
            changes: Mapping of document ID to the fields to set
            user_id: Acting user for audit stamps

        Returns:
            Number of documents updated

        Raises:
            PartialWriteFailure: If any document is missing or a write failed;
                already-applied changes are reverted
        """
        if not changes:
            return 0

        try:
            targets = {self._validate_object_id(doc_id): fields for doc_id, fields in changes.items()}
        except ValueError as e:
            raise PartialWriteFailure(f"update_many:{collection}", e)

        collection_obj = self.get_collection(collection)

        if self.use_transactions:
            try:
                with self.client.start_session() as session:
                    with session.start_transaction():
                        for object_id, fields in targets.items():
                            self._apply_update(collection_obj, org_id, object_id, fields, user_id, session)
            except (PyMongoError, LookupError) as e:
                logger.error(f"Batch update failed in {collection}: {e}")
                raise PartialWriteFailure(f"update_many:{collection}", e)

            logger.info(f"Updated {len(targets)} documents in {collection}")
            return len(targets)

        snapshots: Dict[ObjectId, Dict] = {}
        applied = []
        try:
            snapshots = self._snapshot(collection_obj, org_id, targets)
            missing = [str(object_id) for object_id in targets if object_id not in snapshots]
            if missing:
                raise LookupError(f"Documents not found: {', '.join(missing)}")

            for object_id, fields in targets.items():
                self._apply_update(collection_obj, org_id, object_id, fields, user_id)
                applied.append(object_id)

        except (PyMongoError, LookupError) as e:
            logger.error(
                f"Batch update failed in {collection}",
                extra={"collection": collection, "applied": len(applied), "error": str(e)}
            )
            cleanup_errors = self._restore(collection_obj, org_id, applied, snapshots)
            raise PartialWriteFailure(f"update_many:{collection}", e, cleanup_errors)

        logger.info(f"Updated {len(applied)} documents in {collection}")
        return len(applied)

    def _apply_update(self, collection_obj: Collection, org_id: str, object_id: ObjectId,
                      fields: Dict, user_id: str, session=None) -> None:
        query = self._build_org_query(org_id, {"_id": object_id})
        updates = self._add_timestamps(dict(fields), user_id, is_update=True)
        result = collection_obj.update_one(query, {"$set": updates}, session=session)
        if result.matched_count == 0:
            raise LookupError(f"Document not found: {object_id}")

    def _snapshot(self, collection_obj: Collection, org_id: str,
                  targets: Dict[ObjectId, Dict]) -> Dict[ObjectId, Dict]:
        """Capture the current values of every field about to change."""
        fields = {"updatedAt", "updatedBy"}
        for changed in targets.values():
            fields.update(changed.keys())

        query = self._build_org_query(org_id, {"_id": {"$in": list(targets)}})
        projection = {name: 1 for name in fields}
        return {doc["_id"]: doc for doc in collection_obj.find(query, projection)}

    def _restore(self, collection_obj: Collection, org_id: str, applied: List[ObjectId],
                 snapshots: Dict[ObjectId, Dict]) -> List[str]:
        """Revert already-applied updates. Returns the errors met while reverting."""
        errors = []
        for object_id in applied:
            previous = {key: value for key, value in snapshots[object_id].items() if key != "_id"}
            try:
                collection_obj.update_one(
                    self._build_org_query(org_id, {"_id": object_id}),
                    {"$set": previous}
                )
            except PyMongoError as e:
                errors.append(f"{object_id}: {e}")

        if applied:
            logger.warning(f"Reverted {len(applied) - len(errors)} of {len(applied)} partial updates")
        return errors

    def _remove_inserted(self, collection_obj: Collection, object_ids: List[ObjectId]) -> List[str]:
        """Delete whatever part of a failed batch insert reached the database."""
        try:
            result = collection_obj.delete_many({"_id": {"$in": object_ids}})
            logger.warning(f"Removed {result.deleted_count} documents left by a failed batch insert")
            return []
        except PyMongoError as e:
            logger.error(f"Compensating cleanup failed: {e}")
            return [str(e)]

    # Index Management

    def create_indexes(self, occurrence_collections: List[str] = None,
                       medication_collection: str = "medications",
                       unlock_collection: str = "financial_unlock_requests") -> None:
        """Create the listing indexes for occurrence and unlock request collections."""
        occurrence_collections = occurrence_collections or ["treatments", "medications", "payments"]
        try:
            logger.info("Creating MongoDB indexes...")

            for name in occurrence_collections:
                occurrences = self.get_collection(name)
                occurrences.create_index([("organizationId", ASCENDING), ("subjectId", ASCENDING),
                                          ("occurrenceDate", ASCENDING)])
                occurrences.create_index([("organizationId", ASCENDING), ("status", ASCENDING),
                                          ("occurrenceDate", ASCENDING)])

            # Medication series are keyed by patient and medication name
            medications = self.get_collection(medication_collection)
            medications.create_index([("organizationId", ASCENDING), ("subjectId", ASCENDING),
                                      ("medicationName", ASCENDING), ("occurrenceDate", ASCENDING)])

            unlock_requests = self.get_collection(unlock_collection)
            unlock_requests.create_index([("organizationId", ASCENDING), ("requestedBy", ASCENDING),
                                          ("status", ASCENDING)])

            logger.info("MongoDB indexes created successfully")

        except PyMongoError as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service(use_transactions: bool = None) -> MongoDBService:
    """
    Get singleton MongoDB service instance.

    Args:
        use_transactions: Batch write mode to apply; None keeps the
            environment setting (or the mode already in use)
    """
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService(use_transactions=use_transactions)
    elif use_transactions is not None:
        _mongodb_service.use_transactions = use_transactions
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
