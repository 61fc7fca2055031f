"""
Base CRUD repository shared by the user and product repositories.

Repositories flush but never commit; the transaction boundary belongs to
the ``get_db`` dependency.  Integrity errors raised by the database are
classified here into ``DuplicateKeyError`` / ``ConstraintViolation`` so
callers never see a raw SQLAlchemy exception.

Usage:
    class ProductRepository(BaseRepository[Product]):
        search_fields = ("name",)

        def __init__(self) -> None:
            super().__init__(Product)
"""
import logging
import re
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.database import Base
from shop_admin.repositories.errors import (
    ConstraintViolation,
    DuplicateKeyError,
    RecordNotFound,
    RepositoryError,
)

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)

# SQLite and PostgreSQL phrase the same violations differently.
_UNIQUE_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)=\(.*?\) already exists"),
)
_NOT_NULL_PATTERNS = (
    re.compile(r"NOT NULL constraint failed: \w+\.(\w+)"),
    re.compile(r'null value in column "(\w+)"'),
)
_CHECK_PATTERNS = (
    re.compile(r"CHECK constraint failed: (\w+)"),
    re.compile(r'violates check constraint "(\w+)"'),
)


def _first_match(patterns, message: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so *term* matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository.

    Subclasses set ``search_fields`` (text columns matched by ``find_all``)
    and ``check_messages`` (CHECK constraint name -> (field, message)).
    """

    search_fields: tuple[str, ...] = ()
    check_messages: dict[str, tuple[str, str]] = {}

    def __init__(self, model: type[ModelType]) -> None:
        self.model: type[ModelType] = model

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, db: AsyncSession, record_id: int) -> ModelType | None:
        return await db.get(self.model, record_id)

    async def find_one(self, db: AsyncSession, **filters: Any) -> ModelType | None:
        query: Select = select(self.model)
        for column_name, value in filters.items():
            query = query.where(getattr(self.model, column_name) == value)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def find_all(self, db: AsyncSession, search: str | None = None) -> Sequence[ModelType]:
        """
        Return all records newest first, optionally narrowed to those whose
        ``search_fields`` contain *search* (case-insensitive substring).
        """
        query: Select = select(self.model)
        if search:
            pattern = f"%{escape_like(search)}%"
            query = query.where(
                or_(
                    *(
                        getattr(self.model, name).ilike(pattern, escape="\\")
                        for name in self.search_fields
                    )
                )
            )
        query = query.order_by(self.model.created_at.desc(), self.model.id.desc())
        result = await db.execute(query)
        return result.scalars().all()

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, db: AsyncSession, values: dict[str, Any]) -> ModelType:
        record = self.model(**values)
        db.add(record)
        await self._flush(db)
        # Pick up server-side defaults (created_at).
        await db.refresh(record)
        return record

    async def update_by_id(
        self, db: AsyncSession, record_id: int, values: dict[str, Any]
    ) -> ModelType:
        record = await self.find_by_id(db, record_id)
        if record is None:
            raise RecordNotFound(f"{self.model.__name__} with ID: {record_id} not found.")
        for field, value in values.items():
            setattr(record, field, value)
        await self._flush(db)
        await db.refresh(record)
        return record

    async def delete_by_id(self, db: AsyncSession, record_id: int) -> None:
        record = await self.find_by_id(db, record_id)
        if record is None:
            raise RecordNotFound(f"{self.model.__name__} with ID: {record_id} not found.")
        await db.delete(record)
        await self._flush(db)

    # ------------------------------------------------------------------
    # Error classification
    # ------------------------------------------------------------------

    async def _flush(self, db: AsyncSession) -> None:
        try:
            await db.flush()
        except IntegrityError as exc:
            raise self._classify(exc) from exc
        except SQLAlchemyError as exc:
            logger.error("Unexpected %s write failure: %s", self.model.__name__, exc)
            raise RepositoryError(str(exc)) from exc

    def _classify(self, exc: IntegrityError) -> RepositoryError:
        message = str(exc.orig)

        field = _first_match(_UNIQUE_PATTERNS, message)
        if field is None:
            # Constraint names: <table>_<column>_key, or ix_<table>_<column>
            # for unique indexes.
            match = re.search(rf'"(?:ix_)?{self.model.__tablename__}_(\w+?)(?:_key)?"', message)
            field = match.group(1) if match else None
        if field is not None:
            return DuplicateKeyError(field)

        field = _first_match(_NOT_NULL_PATTERNS, message)
        if field is not None:
            return ConstraintViolation(field, f"{field.capitalize()} is required.")

        constraint = _first_match(_CHECK_PATTERNS, message)
        if constraint is not None:
            field, text = self.check_messages.get(
                constraint, (constraint, f"Constraint {constraint} violated.")
            )
            return ConstraintViolation(field, text)

        logger.error("Unclassified integrity error on %s: %s", self.model.__name__, message)
        return RepositoryError(message)
