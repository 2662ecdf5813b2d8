# models/user.py

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(120), nullable=False)

    # Unique login/contact address
    email = Column(String(255), nullable=False, unique=True, index=True)

    # USER | ADMIN | PROJECT_MANAGER
    role = Column(String(32), nullable=False, default="USER")

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
