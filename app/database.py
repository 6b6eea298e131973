"""
Async engine and session factory for the research crawler.

The orchestrator opens one session per unit of work (an organization crawl,
one document, a stats query) from AsyncSessionLocal and closes it when the
work is done, so crawls running side by side never share a session.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.config import DATABASE_URL, DB_CONNECT_TIMEOUT, DB_MAX_OVERFLOW, DB_POOL_SIZE

# Connection timeout (seconds) so a crawl run doesn't hang waiting for DB
_connect_args = {"timeout": DB_CONNECT_TIMEOUT} if "asyncpg" in (DATABASE_URL or "") else {}
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    connect_args=_connect_args,
    pool_size=DB_POOL_SIZE,
    max_overflow=DB_MAX_OVERFLOW,
    pool_pre_ping=True,
    pool_recycle=300,
)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()
