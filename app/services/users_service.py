# app/services/users_service.py

import logging
import math
from typing import Optional, Tuple

from sqlalchemy import String, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.user import User
from app.schemas.user import Pagination, UserCreate, UserPage, UserRead
from app.services.cache_keys import list_cache_key, list_cache_pattern
from app.services.cache_service import CacheService

logger = logging.getLogger(__name__)

USERS_RESOURCE = "users"


class DuplicateEmailError(Exception):
    """Raised when the unique email index rejects an insert."""


def _search_filter(search: str):
    # Literal substring match; % and _ in the search text are escaped.
    term = search.lower()
    return or_(
        func.lower(User.name, type_=String).contains(term, autoescape=True),
        func.lower(User.email, type_=String).contains(term, autoescape=True),
    )


def query_users_page(db: Session, page: int, limit: int, search: str = "") -> UserPage:
    """Read one page of users from the database, newest first."""
    count_stmt = select(func.count()).select_from(User)
    rows_stmt = select(User)
    if search:
        count_stmt = count_stmt.where(_search_filter(search))
        rows_stmt = rows_stmt.where(_search_filter(search))

    total = db.scalar(count_stmt) or 0
    rows = db.scalars(
        rows_stmt.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return UserPage(
        data=[UserRead.model_validate(u) for u in rows],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit) if limit else 0,
        ),
    )


async def list_users(
    db: Session,
    cache: CacheService,
    page: int,
    limit: int,
    search: str = "",
    ttl_seconds: Optional[int] = None,
) -> Tuple[UserPage, bool]:
    """
    Cache-aside read of a users page. Returns (page, hit).

    Cache hit: one key lookup.
    Cache miss: count + page query, then the page is cached for ttl_seconds
    (the cache service default when None).
    """
    key = list_cache_key(USERS_RESOURCE, page, limit, search)
    cached = await cache.get(key, model=UserPage)
    if cached is not None:
        logger.debug("cache hit: %s", key)
        return cached, True

    logger.debug("cache miss: %s", key)
    result = query_users_page(db, page, limit, search)
    await cache.set(key, result, ttl_seconds=ttl_seconds)
    return result, False


async def invalidate_user_lists(cache: CacheService) -> int:
    """Drop every cached users page; any write may change any page or total."""
    return await cache.delete_pattern(list_cache_pattern(USERS_RESOURCE))


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalar(select(User).where(func.lower(User.email) == email.lower()))


async def create_user(db: Session, cache: CacheService, data: UserCreate) -> User:
    user = User(name=data.name, email=str(data.email), role=data.role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as ex:
        # A concurrent create with the same email won the race past the pre-check.
        db.rollback()
        raise DuplicateEmailError(data.email) from ex
    db.refresh(user)

    # Invalidate after commit; a miss racing the write may re-cache the old page until its TTL.
    await invalidate_user_lists(cache)
    return user


async def update_user_role(db: Session, cache: CacheService, user_id: int, role: str) -> Optional[User]:
    user = db.get(User, user_id)
    if user is None:
        return None
    user.role = role
    db.commit()
    db.refresh(user)

    await invalidate_user_lists(cache)
    return user
