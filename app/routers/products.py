# app/routers/products.py
import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.core.storage_utils import ImageStore, get_image_store
from app.database import get_session
from app.models.user import User
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    MessageResponse,
    ProductDraft,
    ProductMessage,
    ProductPage,
    ProductRead,
    ProductUpdate,
)
from app.services.product_service import ImageUpload, ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()


def get_product_service(
    image_store: ImageStore = Depends(get_image_store),
) -> ProductService:
    return ProductService(repo, image_store)


def _read_images(files: list[UploadFile] | None) -> list[ImageUpload]:
    """
    Read uploaded files into (content_type, bytes) pairs.

    Browsers send an empty part when no file is picked; those are skipped.
    """
    images: list[ImageUpload] = []
    for f in files or []:
        if not f.filename:
            continue
        images.append((f.content_type or "", f.file.read()))
    return images


def _present(**fields) -> dict:
    """Form fields that were actually sent (FastAPI maps '' to None)."""
    return {name: value for name, value in fields.items() if value is not None}


# -------- Public endpoints --------


@router.get("", response_model=ProductPage)
def list_products(
    gender: str | None = None,
    category: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    List products, newest first.

    - Public endpoint.
    - Optional equality filters on gender and category.
    - page (default 1) and limit (default 10) fall back to defaults
      when missing or not positive integers.
    """
    result = service.list_products(
        session, gender=gender, category=category, page=page, limit=limit
    )
    return ProductPage(
        data=[ProductRead.model_validate(p) for p in result["data"]],
        total_count=result["total_count"],
        total_pages=result["total_pages"],
        page=result["page"],
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Get a single product by id.

    - Public endpoint.
    """
    return ProductRead.model_validate(service.get_product(session, product_id))


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductMessage,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    title: str | None = Form(None),
    description: str | None = Form(None),
    gender: str | None = Form(None),
    category: str | None = Form(None),
    fragrance: str | None = Form(None),
    size: str | None = Form(None),
    price: float | None = Form(None),
    stock: int | None = Form(None),
    images: list[UploadFile] | None = File(None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
):
    """
    Create a new product (admin only).

    Multipart form: product fields plus one or more `images` files
    (JPEG, PNG, WEBP).
    """
    draft = ProductDraft(
        title=title,
        description=description,
        gender=gender,
        category=category,
        fragrance=fragrance,
        size=size,
        price=price,
        stock=stock,
    )
    product = service.create_product(session, current_user, draft, _read_images(images))
    return ProductMessage(
        message="Product created successfully",
        product=ProductRead.model_validate(product),
    )


@router.patch(
    "/{product_id}",
    response_model=ProductMessage,
)
def update_product(
    product_id: uuid.UUID,
    title: str | None = Form(None),
    description: str | None = Form(None),
    gender: str | None = Form(None),
    category: str | None = Form(None),
    fragrance: str | None = Form(None),
    size: str | None = Form(None),
    price: float | None = Form(None),
    stock: int | None = Form(None),
    images: list[UploadFile] | None = File(None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
):
    """
    Update an existing product (admin only).

    - Only the form fields sent are changed.
    - Sending `images` replaces the whole image list.
    """
    patch = ProductUpdate(
        **_present(
            title=title,
            description=description,
            gender=gender,
            category=category,
            fragrance=fragrance,
            size=size,
            price=price,
            stock=stock,
        )
    )
    product = service.update_product(
        session, current_user, product_id, patch, _read_images(images)
    )
    return ProductMessage(
        message="Product updated successfully",
        product=ProductRead.model_validate(product),
    )


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
):
    """
    Delete a product and its images (admin only).

    - Image deletes are best-effort; the product is removed regardless.
    """
    service.delete_product(session, current_user, product_id)
    return MessageResponse(message="Product deleted")
