# app/services/product_service.py
import logging
import math
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Any, Iterable, TypeVar

from sqlmodel import Session

from app.core.auth import ensure_admin
from app.core.config import get_settings
from app.core.exceptions import ImageUploadError, InvalidInput, NotFound, UpstreamError
from app.core.storage_utils import ImageStore, object_id_from_url
from app.models.product import Category, Gender, Product
from app.models.user import User
from app.repositories.product_repo import ProductRepository
from app.schemas.product import ProductDraft, ProductUpdate

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

# (content_type, file_bytes), as read from the multipart request
ImageUpload = tuple[str, bytes]


# --- Image config ---

ALLOWED_IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

REQUIRED_FIELDS = ("title", "gender", "category", "size", "price")

# Fields that may be explicitly cleared (set to None) by an update.
CLEARABLE_FIELDS = {"description", "fragrance"}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _require_finite_price(price: float) -> None:
    if not math.isfinite(price):
        raise InvalidInput("Invalid price value", details={"field": "price"})


class ProductService:
    """
    Business logic for the product catalog.

    Responsibilities:
      - admin check on every mutation (single predicate: ensure_admin)
      - required-field, enum and image validation, before any side effect
      - image upload/delete orchestration with the image store
      - pagination math for the public listing

    Upload-then-persist is two separate steps with no rollback: if the
    database write (or a sibling upload) fails, images that already reached
    the store stay there. They are logged and, for upload failures, carried
    on ImageUploadError.uploaded_urls for out-of-band cleanup.
    """

    def __init__(
        self,
        repo: ProductRepository,
        image_store: ImageStore,
        upload_concurrency: int | None = None,
        max_image_bytes: int | None = None,
        default_limit: int | None = None,
        max_limit: int | None = None,
    ):
        settings = get_settings()
        self.repo = repo
        self.image_store = image_store
        self.upload_concurrency = upload_concurrency or settings.IMAGE_UPLOAD_CONCURRENCY
        self.max_image_bytes = max_image_bytes or settings.MAX_IMAGE_BYTES
        self.default_limit = default_limit or settings.DEFAULT_PAGE_LIMIT
        self.max_limit = max_limit or settings.MAX_PAGE_LIMIT

    # ----- Helpers -----

    @staticmethod
    def _parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
        try:
            return enum_cls(_clean(value))
        except ValueError:
            raise InvalidInput(
                f"Invalid {field} value",
                details={"field": field, "allowed": [m.value for m in enum_cls]},
            )

    def _validate_images(self, images: list[ImageUpload]) -> None:
        for content_type, file_bytes in images:
            if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
                raise InvalidInput("Unsupported image type. Allowed: JPEG, PNG, WEBP.")
            if not file_bytes:
                raise InvalidInput("Empty image file")
            if len(file_bytes) > self.max_image_bytes:
                raise InvalidInput(
                    f"Image too large (max {self.max_image_bytes} bytes)."
                )

    def _upload_images(self, images: list[ImageUpload], operation: str) -> list[str]:
        """
        Upload every image concurrently; URLs come back in completion order.

        If any upload fails the whole batch fails with ImageUploadError once
        all in-flight uploads have settled. Successful siblings are not
        deleted.
        """
        uploaded: list[str] = []
        failure: Exception | None = None
        workers = max(1, min(len(images), self.upload_concurrency))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self.image_store.upload, file_bytes, content_type)
                for content_type, file_bytes in images
            ]
            for future in as_completed(futures):
                try:
                    uploaded.append(future.result())
                except Exception as exc:
                    if failure is None:
                        failure = exc

        if failure is not None:
            logger.error(
                "%s: image upload failed (%d of %d uploaded, left orphaned: %s)",
                operation,
                len(uploaded),
                len(images),
                uploaded,
            )
            raise ImageUploadError("Image upload failed", uploaded_urls=uploaded) from failure

        return uploaded

    @staticmethod
    def _coerce_positive_int(raw: Any, default: int) -> int:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            return default
        return value if value >= 1 else default

    # ----- Queries -----

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found", details={"id": str(product_id)})
        return product

    def list_products(
        self,
        session: Session,
        gender: str | None = None,
        category: str | None = None,
        page: Any = None,
        limit: Any = None,
    ) -> dict[str, Any]:
        """
        Public, filtered, paginated listing (newest first).

        page/limit that are missing, non-numeric or < 1 fall back to
        1 and the default limit; limit is capped at max_limit. A filter value
        outside its enum matches nothing and yields an empty page.
        """
        page = self._coerce_positive_int(page, 1)
        limit = min(self._coerce_positive_int(limit, self.default_limit), self.max_limit)

        filters: dict[str, Any] = {}
        for field, enum_cls, raw in (
            ("gender", Gender, gender),
            ("category", Category, category),
        ):
            if _is_blank(raw):
                continue
            try:
                filters[field] = enum_cls(_clean(raw))
            except ValueError:
                # No stored record can match a value outside the enum.
                return {"data": [], "total_count": 0, "total_pages": 0, "page": page}

        skip = (page - 1) * limit

        products = self.repo.find_filtered(session, filters, skip=skip, limit=limit)
        total = self.repo.count(session, filters)

        return {
            "data": products,
            "total_count": total,
            "total_pages": math.ceil(total / limit),
            "page": page,
        }

    # ----- Mutations -----

    def create_product(
        self,
        session: Session,
        caller: User | None,
        draft: ProductDraft,
        images: Iterable[ImageUpload],
    ) -> Product:
        """
        Validate, upload every image, then insert the product.

        Nothing is persisted unless all uploads succeed.
        """
        ensure_admin(caller)

        missing = [name for name in REQUIRED_FIELDS if _is_blank(getattr(draft, name))]
        if missing:
            raise InvalidInput("Missing required fields", details={"fields": missing})

        gender = self._parse_enum(Gender, draft.gender, "gender")
        category = self._parse_enum(Category, draft.category, "category")
        _require_finite_price(draft.price)

        images = list(images)
        if not images:
            raise InvalidInput("At least one image is required")
        self._validate_images(images)

        image_urls = self._upload_images(images, "create_product")

        product = Product(
            title=draft.title.strip(),
            description=draft.description,
            gender=gender,
            category=category,
            fragrance=draft.fragrance,
            size=draft.size.strip(),
            price=draft.price,
            stock=draft.stock if draft.stock is not None else 0,
            image_urls=image_urls,
        )
        try:
            product = self.repo.insert(session, product)
        except UpstreamError:
            logger.error("create_product: insert failed, images left orphaned: %s", image_urls)
            raise

        logger.info("create_product: created %s with %d image(s)", product.id, len(image_urls))
        return product

    def update_product(
        self,
        session: Session,
        caller: User | None,
        product_id: uuid.UUID,
        patch: ProductUpdate,
        images: Iterable[ImageUpload] | None = None,
    ) -> Product:
        """
        Partial update of a product.

        - Only fields set on `patch` are written.
        - New images replace image_urls wholesale; the old images are left
          in the store.
        """
        ensure_admin(caller)

        values: dict[str, Any] = {}
        for field, value in patch.model_dump(exclude_unset=True).items():
            if field in CLEARABLE_FIELDS:
                values[field] = value
                continue
            if _is_blank(value):
                raise InvalidInput(f"{field} cannot be empty", details={"field": field})
            if field == "gender":
                values[field] = self._parse_enum(Gender, value, "gender")
            elif field == "category":
                values[field] = self._parse_enum(Category, value, "category")
            elif field == "price":
                _require_finite_price(value)
                values[field] = value
            else:
                values[field] = _clean(value)

        images = list(images or [])
        self._validate_images(images)

        product = self.get_product(session, product_id)

        if images:
            previous_urls = list(product.image_urls)
            values["image_urls"] = self._upload_images(images, "update_product")
            logger.info(
                "update_product: %s images replaced, previous left in store: %s",
                product_id,
                previous_urls,
            )

        try:
            updated = self.repo.update_by_id(session, product_id, values)
        except UpstreamError:
            if images:
                logger.error(
                    "update_product: update of %s failed, new images left orphaned: %s",
                    product_id,
                    values["image_urls"],
                )
            raise
        if updated is None:
            if images:
                logger.error(
                    "update_product: %s vanished, new images left orphaned: %s",
                    product_id,
                    values["image_urls"],
                )
            raise NotFound("Product not found", details={"id": str(product_id)})

        logger.info("update_product: updated %s (%s)", product_id, ", ".join(sorted(values)))
        return updated

    def delete_product(
        self,
        session: Session,
        caller: User | None,
        product_id: uuid.UUID,
    ) -> None:
        """
        Delete a product, trying to remove each of its images first.

        Image deletes are best-effort: a failure is logged and the next
        image (and finally the product row) is still processed.
        """
        ensure_admin(caller)

        product = self.get_product(session, product_id)

        for url in product.image_urls:
            object_id = object_id_from_url(url)
            if not object_id:
                logger.warning("delete_product: %s has unusable image url %r", product_id, url)
                continue
            try:
                self.image_store.destroy(object_id)
            except UpstreamError as exc:
                logger.warning(
                    "delete_product: failed to delete image %s of %s: %s",
                    object_id,
                    product_id,
                    exc.__cause__ or exc,
                )

        if not self.repo.delete_by_id(session, product_id):
            raise NotFound("Product not found", details={"id": str(product_id)})

        logger.info("delete_product: deleted %s", product_id)
