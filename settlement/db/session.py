"""
Engine and session factory
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from settlement.core.config import settings
from settlement.db.base import Base
import settlement.models  # noqa: F401  (register tables on Base.metadata)

IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    # SQLite connections are shared with the escalation thread
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
)

# Local SQLite databases are created on first use; other backends go through Alembic
if IS_SQLITE:
    Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
