import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from jj_api.database import build_sessionmaker  # noqa: E402
from jj_api.models import Base  # noqa: E402
from jj_api.repositories import DocumentStore, RelationalStore  # noqa: E402
from jj_api.storage import MediaStorage  # noqa: E402


@pytest.fixture
def document_store(tmp_path):
    return DocumentStore(tmp_path / "store")


@pytest.fixture
def media_storage(tmp_path):
    return MediaStorage(tmp_path / "store")


@pytest_asyncio.fixture
async def relational_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'journal.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield RelationalStore(build_sessionmaker(engine))
    finally:
        await engine.dispose()
