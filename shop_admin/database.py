"""
Async engine, session factory and the request-scoped session dependency.

``get_db`` owns the transaction: repositories and services only flush, and
the session is committed once the endpoint returns or rolled back if it
raises.  Tests replace ``get_db`` with a session bound to SQLite.
"""
import logging

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shop_admin.config import settings
from shop_admin.middleware import install_query_counter

logger = logging.getLogger(__name__)

# Named constraints keep Alembic autogenerate diffs stable.  CHECK constraints
# are named explicitly in models.py (ck_users_role, ck_products_*).
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "%(table_name)s_%(column_0_name)s_key",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            logger.debug("Rolling back session after %s", type(exc).__name__)
            await session.rollback()
            raise
