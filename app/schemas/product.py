# app/schemas/product.py
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel

from app.models.product import Category, Gender


class ProductDraft(SQLModel):
    """
    Raw create payload, as read from the multipart form.

    Every field is optional here on purpose: required fields and enum
    membership are checked by ProductService so that a missing field is
    reported as InvalidInput (400) rather than a schema error.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    gender: str | None = None
    category: str | None = None
    fragrance: str | None = None
    size: str | None = None
    price: float | None = None
    stock: int | None = None


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.

    Only fields present in `model_fields_set` are applied; an omitted field
    keeps its stored value. Passing a field explicitly with None means
    "clear it", which is only allowed for description and fragrance.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    gender: str | None = None
    category: str | None = None
    fragrance: str | None = None
    size: str | None = None
    price: float | None = None
    stock: int | None = None


class ProductRead(BaseModel):
    """
    Product representation for clients (camelCase keys).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: uuid.UUID
    title: str
    description: str | None = None
    gender: Gender
    category: Category
    fragrance: str | None = None
    size: str
    price: float
    stock: int
    image_urls: list[str]
    created_at: datetime


class ProductPage(BaseModel):
    """
    One page of products plus totals for the whole filtered set.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    data: list[ProductRead]
    total_count: int
    total_pages: int
    page: int


class ProductMessage(BaseModel):
    message: str
    product: ProductRead


class MessageResponse(BaseModel):
    message: str
