from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, scoped_session, sessionmaker

from nestledger.config import env


def get_database_url():
  """Get database URL with SSL configuration if needed."""
  database_url = env.DATABASE_URL

  if (
    (env.is_staging() or env.is_production())
    and database_url
    and database_url.startswith("postgresql")
    and "sslmode" not in database_url
  ):
    database_url += "&sslmode=require" if "?" in database_url else "?sslmode=require"

  return database_url


def get_engine_options(database_url: str) -> dict:
  """Pool settings for server databases; SQLite manages its own pool."""
  if database_url.startswith("sqlite"):
    return {"echo": env.DATABASE_ECHO}

  return {
    "pool_size": env.DATABASE_POOL_SIZE,
    "max_overflow": env.DATABASE_MAX_OVERFLOW,
    "pool_timeout": env.DATABASE_POOL_TIMEOUT,
    "pool_recycle": env.DATABASE_POOL_RECYCLE,
    "pool_pre_ping": True,
    "echo": env.DATABASE_ECHO,
  }


_database_url = get_database_url()
engine = create_engine(_database_url, **get_engine_options(_database_url))
SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
session = scoped_session(SessionFactory)


class Base(DeclarativeBase):
  """Base class for all models."""

  pass


def get_db_session():
  """Get database session for FastAPI dependency injection."""
  db = session()
  try:
    yield db
  finally:
    session.remove()


def get_celery_db_session():
  """Get a database session for Celery tasks."""
  return session()
