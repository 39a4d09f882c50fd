# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and validation.
"""

from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from bson import ObjectId

# Audit stamps are written by the storage service, not by the entity
STORAGE_MANAGED_FIELDS = {"id", "created_at", "updated_at", "created_by", "updated_by"}


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def to_camel(name: str) -> str:
    """Convert a snake_case field name to the camelCase document key."""
    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


def to_snake(name: str) -> str:
    """Convert a camelCase document key to the snake_case field name."""
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


class BaseEntity(BaseModel):
    """Base entity with common fields for all domain objects."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Validate assignment
        validate_assignment=True,
        # Arbitrary types allowed
        arbitrary_types_allowed=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    organization_id: str = Field(..., description="Organization scope identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")
    created_by: str = Field(..., description="User ID who created this entity")
    updated_by: str = Field(..., description="User ID who last updated this entity")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    def update_timestamp(self, updated_by: str) -> None:
        """Update the timestamp and updated_by fields."""
        self.updated_at = datetime.utcnow()
        self.updated_by = updated_by

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a MongoDB document (camelCase keys, ISO dates)."""
        document = self.model_dump(mode="json", exclude=STORAGE_MANAGED_FIELDS)
        document = {to_camel(key): value for key, value in document.items()}
        document["_id"] = ObjectId(self.id)
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build an entity from a stored document with camelCase keys."""
        data = {to_snake(key): value for key, value in document.items() if key != "_id"}
        if "_id" in document and "id" not in data:
            data["id"] = str(document["_id"])
        return cls.model_validate(data)
