"""FastAPI application exposing CRUD endpoints over the in-memory user store."""

from typing import List, Optional

import logging
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from prometheus_client import Counter

from pydantic import BaseModel

from .auth import get_store, verify_credentials
from .config import Settings, settings
from .store import User, UserNotFound, UserStore, seed_store

logger = logging.getLogger(__name__)

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)


def _endpoint_label(request: Request) -> str:
    """Route template of the matched endpoint, or the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=_endpoint_label(request),
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=_endpoint_label(request),
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


class UserPayload(BaseModel):
    """Request body for creating or replacing a user.

    An ``id`` sent by the client is accepted and ignored; the store decides.
    """

    id: Optional[int] = None
    username: str
    password: str


class UserResponse(BaseModel):
    """Serialized user record."""

    id: int
    username: str
    password: str


class DeleteResponse(BaseModel):
    id: int
    deleted: bool = True


class LoginResponse(BaseModel):
    message: str


def serialize(user: User) -> UserResponse:
    return UserResponse(id=user.id, username=user.username, password=user.password)


def parse_positive_int(raw: Optional[str], default: int) -> int:
    """Parse a query value, falling back to ``default`` when unusable."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


users_router = APIRouter(prefix="/api", dependencies=[Depends(verify_credentials)])


def build_public_router(limiter: Limiter, rate_limit: str) -> APIRouter:
    """Routes that need no credentials, rate limited by ``limiter``."""
    router = APIRouter()

    @router.post("/login", response_model=LoginResponse)
    @limiter.limit(rate_limit)
    def login(request: Request):
        """Placeholder login endpoint; credentials are checked per request on /api."""
        return LoginResponse(message="Login successful!")

    return router


@users_router.post(
    "/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED
)
def create_user(payload: UserPayload, store: UserStore = Depends(get_store)):
    """Create a user and return the stored record."""

    return serialize(store.create(payload.username, payload.password))


@users_router.get("/users/paginated", response_model=List[UserResponse])
def list_users(
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    store: UserStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
):
    """Return one page of users in ascending id order."""

    page_num = parse_positive_int(page, 1)
    size = min(
        parse_positive_int(page_size, app_settings.default_page_size),
        app_settings.max_page_size,
    )
    return [serialize(u) for u in store.list(page_num, size)]


@users_router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, store: UserStore = Depends(get_store)):
    user = store.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize(user)


@users_router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int, payload: UserPayload, store: UserStore = Depends(get_store)
):
    """Replace the user stored under ``user_id``."""

    replacement = User(id=user_id, username=payload.username, password=payload.password)
    try:
        updated = store.update(user_id, replacement)
    except UserNotFound as exc:
        logger.warning("update failed: %s", exc)
        raise HTTPException(status_code=404, detail="User not found") from exc
    return serialize(updated)


@users_router.delete("/users/{user_id}", response_model=DeleteResponse)
def delete_user(user_id: int, store: UserStore = Depends(get_store)):
    try:
        store.delete(user_id)
    except UserNotFound as exc:
        logger.warning("delete failed: %s", exc)
        raise HTTPException(status_code=404, detail="User not found") from exc
    return DeleteResponse(id=user_id)


def create_app(
    store: Optional[UserStore] = None, app_settings: Optional[Settings] = None
) -> FastAPI:
    """Build an application around ``store``.

    When no store is given a new one is created and, if configured, seeded
    with the demo users.
    """
    app_settings = app_settings or settings
    if store is None:
        store = UserStore()
        if app_settings.seed_demo_users:
            seed_store(store, app_settings.seed_users)

    app = FastAPI(title=app_settings.api_title)
    app.state.store = store
    app.state.settings = app_settings
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.middleware("http")(log_requests)
    app.include_router(build_public_router(limiter, app_settings.login_rate_limit))
    app.include_router(users_router)
    return app


app = create_app()
