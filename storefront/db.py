import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")


def normalize_database_url(raw: str) -> str:
    # Parse with SQLAlchemy's own URL grammar so a malformed URL fails here,
    # not at first query. sqlite:/// paths have no netloc and must survive as-is.
    return make_url(raw).render_as_string(hide_password=False)


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL") or "sqlite:///./storefront.db")


def engine_options(url: str) -> dict:
    if url.startswith("postgres"):
        return {"connect_args": {"options": "-c timezone=utc"}, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # Sessions are handed across request threads; writers wait on the file lock.
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {}


engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
