"""
Database Schemas

Pydantic models for the MongoDB collections used by the demo.
This file serves as the single source of truth for the data structure:
each model names its collection and the fields that must be unique.

    Car  -> "cars"
    User -> "users"
"""

from datetime import datetime
from typing import ClassVar, Dict, Optional, Tuple, Type

from pydantic import BaseModel, EmailStr, Field


class Document(BaseModel):
    """Base for top-level documents. Embedded records use plain BaseModel."""

    collection: ClassVar[str] = ""
    unique_fields: ClassVar[Tuple[str, ...]] = ()

    id: Optional[str] = Field(None, description="String form of the MongoDB _id")

    @classmethod
    def from_document(cls, doc: dict):
        """Build a model from a raw MongoDB document"""
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_document(self) -> dict:
        """Dump to a dict ready for insert (no id, unset optionals omitted)"""
        return self.model_dump(exclude={"id"}, exclude_none=True)


class Owner(BaseModel):
    image: Optional[str] = Field(None, description="URL of the owner's picture")
    country: Optional[str] = Field(None, description="Owner's country")
    contact_name: Optional[str] = Field(None, description="Who to contact about the car")
    contact_number: Optional[str] = Field(None, description="Phone number of the contact")


class Car(Document):
    collection: ClassVar[str] = "cars"

    make: str = Field(..., description="Manufacturer, e.g. Tesla")
    model: str = Field(..., description="Model name, e.g. S")
    year: Optional[int] = Field(None, description="Model year")
    color: Optional[str] = Field(None, description="Paint color")
    owner: Optional[Owner] = Field(None, description="Embedded owner details")

    def describe(self) -> str:
        parts = [self.make, self.model]
        if self.year is not None:
            parts.insert(0, str(self.year))
        text = " ".join(parts)
        if self.color:
            text += f" ({self.color})"
        return text


class Meta(BaseModel):
    age: Optional[int] = Field(None, ge=0, description="Age in years")
    website: Optional[str] = Field(None, description="Personal website")
    address: Optional[str] = Field(None, description="Street address")
    country: Optional[str] = Field(None, description="Country")


class User(Document):
    collection: ClassVar[str] = "users"
    unique_fields: ClassVar[Tuple[str, ...]] = ("email",)

    first_name: Optional[str] = Field(None, description="Given name")
    last_name: Optional[str] = Field(None, description="Family name")
    email: EmailStr = Field(..., description="Email address (unique)")
    meta: Optional[Meta] = Field(None, description="Embedded profile details")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Collection name -> model
MODELS: Dict[str, Type[Document]] = {m.collection: m for m in (Car, User)}
