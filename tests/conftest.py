"""
Test infrastructure for the shop admin API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- The cache and blob store are injected dependencies; each test gets an
  in-memory cache and a blob store rooted in its own tmp_path, so cache
  behaviour and on-disk cleanup can both be asserted directly.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from shop_admin.database import Base, get_db
from shop_admin.dependencies import get_blob_store, get_cache
from shop_admin.main import app
from shop_admin.middleware import install_query_counter
from shop_admin.security import create_access_token
from shop_admin.services.product_service import ProductService
from shop_admin.services.user_service import UserService
from shop_admin.storage import StoredFile
from shop_admin.uploads import PendingUploads
from tests.fakes import MemoryCache, RecordingBlobStore

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def blobs(tmp_path) -> RecordingBlobStore:
    store = RecordingBlobStore(tmp_path / "uploads")
    store.ensure_dirs()
    return store


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly.
    """
    async with async_session_test() as session:
        yield session


@pytest.fixture
def user_service(cache, blobs) -> UserService:
    return UserService(cache, blobs)


@pytest.fixture
def product_service(cache, blobs) -> ProductService:
    return ProductService(cache, blobs)


@pytest.fixture
def stage_upload(blobs):
    """
    Return a factory that writes a file the way the upload receiver would
    and hands back a ``PendingUploads`` holding it.
    """

    def _stage(kind: str, *files: tuple[str, str]) -> PendingUploads:
        pending = PendingUploads()
        for field, filename in files:
            path = blobs.path_for(kind, filename)
            path.write_bytes(b"\x89PNG fake image")
            pending.add(StoredFile(field=field, filename=filename, path=path))
        return pending

    return _stage


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token(1, 'admin')}"}


@pytest_asyncio.fixture
async def async_client(cache, blobs) -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport,
    with the cache and blob store replaced by the per-test fakes.
    """
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_blob_store] = lambda: blobs
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_cache, None)
    app.dependency_overrides.pop(get_blob_store, None)
