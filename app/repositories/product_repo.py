# app/repositories/product_repo.py
import uuid
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.exceptions import UpstreamError
from app.models.product import Product


class ProductRepository:
    """
    Data access layer for Product.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - Driver errors surface as UpstreamError; the session is rolled back.
    """

    @staticmethod
    def _where(stmt, filters: dict[str, Any]):
        for field, value in filters.items():
            stmt = stmt.where(getattr(Product, field) == value)
        return stmt

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        try:
            return session.get(Product, product_id)
        except SQLAlchemyError as exc:
            raise UpstreamError("Database read failed") from exc

    def insert(self, session: Session, product: Product) -> Product:
        try:
            session.add(product)
            session.commit()
            session.refresh(product)
        except SQLAlchemyError as exc:
            session.rollback()
            raise UpstreamError("Database write failed") from exc
        return product

    def find_filtered(
        self,
        session: Session,
        filters: dict[str, Any],
        skip: int = 0,
        limit: int = 10,
    ) -> list[Product]:
        """
        Products matching every equality filter, newest first.
        """
        stmt = (
            self._where(select(Product), filters)
            .order_by(Product.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        try:
            return list(session.exec(stmt).all())
        except SQLAlchemyError as exc:
            raise UpstreamError("Database read failed") from exc

    def count(self, session: Session, filters: dict[str, Any]) -> int:
        stmt = self._where(select(func.count()).select_from(Product), filters)
        try:
            return session.exec(stmt).one()
        except SQLAlchemyError as exc:
            raise UpstreamError("Database read failed") from exc

    def update_by_id(
        self,
        session: Session,
        product_id: uuid.UUID,
        values: dict[str, Any],
    ) -> Product | None:
        """
        Write only the given columns. Returns None if the row is gone.
        """
        try:
            product = session.get(Product, product_id)
            if product is None:
                return None
            for field, value in values.items():
                setattr(product, field, value)
            session.add(product)
            session.commit()
            session.refresh(product)
        except SQLAlchemyError as exc:
            session.rollback()
            raise UpstreamError("Database write failed") from exc
        return product

    def delete_by_id(self, session: Session, product_id: uuid.UUID) -> bool:
        try:
            product = session.get(Product, product_id)
            if product is None:
                return False
            session.delete(product)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise UpstreamError("Database write failed") from exc
        return True
