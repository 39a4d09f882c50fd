# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Shared fixtures for end-to-end scheduling workflows.

InMemoryStorage honours the MongoDBService contract used by the occurrence
service, including the all-or-nothing batch behaviour, so workflows can run
without a database.
"""

import copy
import pytest
from datetime import date, datetime
from typing import Dict, List, Optional
from bson import ObjectId

from config import SchedulingConfig
from domain.exceptions import PartialWriteFailure
from models.entities import UserContext
from services.clock import FixedClock
from services.occurrences import OccurrenceService


class InMemoryStorage:
    """Dictionary-backed stand-in for MongoDBService."""

    def __init__(self):
        self.collections: Dict[str, Dict[ObjectId, Dict]] = {}
        self.fail_after: Optional[int] = None
        self._writes = 0

    def _rows(self, collection: str) -> Dict[ObjectId, Dict]:
        return self.collections.setdefault(collection, {})

    def _write(self):
        if self.fail_after is not None and self._writes >= self.fail_after:
            raise ConnectionError("storage unavailable")
        self._writes += 1

    @staticmethod
    def _public(document: Dict) -> Dict:
        public = copy.deepcopy(document)
        public["id"] = str(public.pop("_id"))
        return public

    def _stamp(self, document: Dict, user_id: str, is_update: bool = False) -> Dict:
        now = datetime.utcnow()
        if not is_update:
            document["createdAt"] = now
            document["createdBy"] = user_id
        document["updatedAt"] = now
        document["updatedBy"] = user_id
        return document

    def create(self, collection: str, document: Dict, user_id: str) -> str:
        document = self._stamp(dict(document), user_id)
        document.setdefault("_id", ObjectId())
        self._write()
        self._rows(collection)[document["_id"]] = document
        return str(document["_id"])

    def create_many(self, collection: str, documents: List[Dict], user_id: str) -> List[str]:
        rows = self._rows(collection)
        inserted = []
        try:
            for document in documents:
                document = self._stamp(dict(document), user_id)
                document.setdefault("_id", ObjectId())
                self._write()
                rows[document["_id"]] = document
                inserted.append(document["_id"])
        except ConnectionError as e:
            for object_id in inserted:
                rows.pop(object_id, None)
            raise PartialWriteFailure(f"create_many:{collection}", e)
        return [str(object_id) for object_id in inserted]

    def update_many(self, collection: str, org_id: str, changes: Dict[str, Dict], user_id: str) -> int:
        rows = self._rows(collection)
        snapshots = {}
        try:
            for doc_id, fields in changes.items():
                row = rows.get(ObjectId(doc_id))
                if row is None or row["organizationId"] != org_id:
                    raise LookupError(f"Document not found: {doc_id}")
                self._write()
                snapshots[row["_id"]] = copy.deepcopy(row)
                row.update(self._stamp(dict(fields), user_id, is_update=True))
        except (ConnectionError, LookupError) as e:
            for object_id, previous in snapshots.items():
                rows[object_id] = previous
            raise PartialWriteFailure(f"update_many:{collection}", e)
        return len(changes)

    def find_by_org(self, collection: str, org_id: str, filters: Dict = None) -> List[Dict]:
        filters = filters or {}
        matches = [
            row for row in self._rows(collection).values()
            if row["organizationId"] == org_id
            and all(row.get(key) == value for key, value in filters.items())
        ]
        matches.sort(key=lambda row: (row.get("occurrenceDate", ""), row["_id"]))
        return [self._public(row) for row in matches]

    def list_by_subject(self, collection: str, org_id: str, subject_id: str) -> List[Dict]:
        return self.find_by_org(collection, org_id, {"subjectId": subject_id})

    def find_one_by_org(self, collection: str, org_id: str, doc_id: str) -> Optional[Dict]:
        if not ObjectId.is_valid(doc_id):
            return None
        row = self._rows(collection).get(ObjectId(doc_id))
        if row is None or row["organizationId"] != org_id:
            return None
        return self._public(row)

    def update_by_org(self, collection: str, org_id: str, doc_id: str, updates: Dict, user_id: str) -> bool:
        if self.find_one_by_org(collection, org_id, doc_id) is None:
            return False
        self._write()
        self._rows(collection)[ObjectId(doc_id)].update(self._stamp(dict(updates), user_id, is_update=True))
        return True

    def delete_by_org(self, collection: str, org_id: str, doc_id: str) -> bool:
        if self.find_one_by_org(collection, org_id, doc_id) is None:
            return False
        del self._rows(collection)[ObjectId(doc_id)]
        return True

    def count(self, collection: str) -> int:
        return len(self._rows(collection))


@pytest.fixture
def storage():
    """Empty in-memory storage."""
    return InMemoryStorage()


@pytest.fixture
def clock():
    """Clock frozen on 2025-01-02, one day after the first scenario date."""
    return FixedClock(date(2025, 1, 2))


@pytest.fixture
def staff():
    """Reception staff without financial privileges."""
    return UserContext(user_id=str(ObjectId()), org_id="clinic-1", email="reception@clinic.test")


@pytest.fixture
def finance():
    """Financial approver of the same clinic."""
    return UserContext(
        user_id=str(ObjectId()),
        org_id="clinic-1",
        email="finance@clinic.test",
        permissions=["financial:approve"]
    )


@pytest.fixture
def service(storage, clock):
    """Occurrence service over the in-memory storage."""
    return OccurrenceService(storage, clock, SchedulingConfig(environment='test'))
