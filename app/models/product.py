# app/models/product.py
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Gender(str, Enum):
    MEN = "MEN"
    WOMEN = "WOMEN"
    UNISEX = "UNISEX"


class Category(str, Enum):
    TSHIRT = "TSHIRT"
    SHIRT = "SHIRT"
    SHORT = "SHORT"
    DENIM = "DENIM"
    OFFICEWEAR = "OFFICEWEAR"


class Product(SQLModel, table=True):
    """
    Catalog product.

    Invariants kept by ProductService (not by the database):
      - image_urls is non-empty right after creation
      - id and created_at never change after insert
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    title: str = Field(description="Display name of the product")

    description: str | None = Field(default=None)

    gender: Gender = Field(index=True)

    category: Category = Field(index=True)

    fragrance: str | None = Field(
        default=None,
        description="Optional fragrance note",
    )

    size: str

    price: float

    stock: int = Field(default=0, description="Units in stock")

    image_urls: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Public URLs in the image store, in upload completion order",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
