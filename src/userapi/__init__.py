"""In-memory user store served over HTTP with basic authentication."""

from .api import app, create_app
from .store import User, UserNotFound, UserStore

__all__ = ["app", "create_app", "User", "UserNotFound", "UserStore"]
