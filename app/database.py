from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from app.config import DATABASE_URL
import os

SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

engine_kwargs = {"echo": SQL_ECHO, "future": True, "pool_pre_ping": True}
if DATABASE_URL.startswith("sqlite"):
    # In-memory SQLite (tests/local runs) must share one connection across threads
    engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)

# creating the SQLAlchemy engine
engine = create_engine(DATABASE_URL, **engine_kwargs)

# creating a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

# Base class for ORM models
Base = declarative_base()

# Dependency to get the database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
