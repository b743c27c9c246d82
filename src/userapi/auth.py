"""FastAPI dependencies enforcing basic authentication against the user store."""

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .store import UserStore

logger = logging.getLogger(__name__)

security = HTTPBasic()


def get_store(request: Request) -> UserStore:
    return request.app.state.store


def verify_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
    store: UserStore = Depends(get_store),
) -> str:
    """Reject the request unless the basic-auth pair matches a stored user."""
    if not store.validate_credentials(credentials.username, credentials.password):
        logger.warning("rejected credentials for username=%s", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username
