# app/core/exceptions.py
"""
Catalog error taxonomy.

Services raise these instead of HTTPException so they can be used (and
tested) without a request. `app.main` maps each one to its status code.
"""

from typing import Any


class CatalogError(Exception):
    """Base class for every error the catalog service raises on purpose."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class Forbidden(CatalogError):
    """Caller is anonymous or not an administrator."""

    status_code = 403


class InvalidInput(CatalogError):
    """Missing/malformed field, invalid enum value, or bad image payload."""

    status_code = 400


class NotFound(CatalogError):
    """The product id does not resolve to an existing record."""

    status_code = 404


class UpstreamError(CatalogError):
    """Image store or database failure. The message is never sent to clients."""

    status_code = 500


class ImageUploadError(UpstreamError):
    """
    An upload batch failed part-way.

    `uploaded_urls` lists the images that did reach the store before the
    failure. They are not rolled back and have to be reconciled out of band.
    """

    def __init__(self, message: str, uploaded_urls: list[str] | None = None) -> None:
        super().__init__(message, details={"uploaded_urls": list(uploaded_urls or [])})
        self.uploaded_urls = list(uploaded_urls or [])
