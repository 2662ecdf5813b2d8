# app/routers/users.py

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.config import LIST_PAGE_LIMIT_DEFAULT, LIST_PAGE_LIMIT_MAX
from app.database import get_db
from app.schemas.user import UserCreate, UserPage, UserRead, UserRoleUpdate
from app.services.cache_factory import get_cache_service
from app.services.cache_service import CacheService
from app.services import users_service


router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserPage)
async def list_users(
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(LIST_PAGE_LIMIT_DEFAULT, ge=1, le=LIST_PAGE_LIMIT_MAX),
    search: str = Query("", max_length=100),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    GET /users?page=&limit=&search=
    Paginated users, newest first. Search is case-insensitive over name and email.

    Served cache-aside: the page is looked up under
    users:list:page=<p>:limit=<l>:search=<s> and loaded from the DB on miss.
    X-Cache reports HIT or MISS.
    """
    result, hit = await users_service.list_users(db, cache, page, limit, search.strip().lower())
    response.headers["X-Cache"] = "HIT" if hit else "MISS"
    return result


@router.post("", status_code=201, response_model=UserRead)
async def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    POST /users
    Status codes:
      - 201: created; every cached users page is invalidated
      - 409: email already registered
      - 422: invalid body
    """
    if users_service.find_user_by_email(db, str(body.email)) is not None:
        raise HTTPException(status_code=409, detail="Email already exists")

    try:
        user = await users_service.create_user(db, cache, body)
    except users_service.DuplicateEmailError:
        raise HTTPException(status_code=409, detail="Email already exists")
    return UserRead.model_validate(user)


@router.patch("/{user_id}/role", response_model=UserRead)
async def update_user_role(
    user_id: int,
    body: UserRoleUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    user = await users_service.update_user_role(db, cache, user_id, body.role)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserRead.model_validate(user)
