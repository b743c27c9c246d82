"""Concurrency-safe in-memory repository of user records."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from prometheus_client import Counter

from .locks import ReadWriteLock


logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10

# Prometheus counter to track store mutations by operation and outcome
STORE_OPERATION_COUNTER = Counter(
    "user_store_operations_total",
    "Total user store mutations",
    ["operation", "outcome"],
)


@dataclass(frozen=True)
class User:
    """A single user record."""

    id: int
    username: str
    password: str


class UserNotFound(KeyError):
    """Raised when a mutation targets an id that is not in the store."""

    def __init__(self, user_id: int):
        super().__init__(user_id)
        self.user_id = user_id

    def __str__(self) -> str:
        return f"user with ID {self.user_id} not found"


class UserStore:
    """Own the id -> user mapping and the id counter behind one lock.

    Reads (``get_by_id``, ``list``, ``validate_credentials``) take the lock in
    shared mode; ``create``, ``update`` and ``delete`` take it exclusively.
    Ids come from a counter that only ever grows, so a deleted id is never
    handed out again.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._users: Dict[int, User] = {}
        self._next_id = 1

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._users)

    def create(self, username: str, password: str) -> User:
        """Insert a new user under a freshly allocated id and return it."""

        with self._lock.write():
            user = User(id=self._next_id, username=username, password=password)
            self._users[user.id] = user
            self._next_id += 1
        STORE_OPERATION_COUNTER.labels(operation="create", outcome="ok").inc()
        logger.info("created user id=%s username=%s", user.id, username)
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._lock.read():
            return self._users.get(user_id)

    def list(self, page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE) -> List[User]:
        """Return one page of users ordered by ascending id.

        Non-positive ``page`` or ``page_size`` fall back to the defaults. A
        page past the end of the collection is empty.
        """
        if page <= 0:
            page = DEFAULT_PAGE
        if page_size <= 0:
            page_size = DEFAULT_PAGE_SIZE
        start = (page - 1) * page_size
        with self._lock.read():
            # ids are inserted in increasing order and never re-inserted, so
            # dict order is ascending id order
            users = list(self._users.values())
        return users[start:start + page_size]

    def update(self, user_id: int, user: User) -> User:
        """Replace the record stored under ``user_id``.

        The stored id is always ``user_id``; the id carried by ``user`` is
        ignored. Raises :class:`UserNotFound` when no such record exists.
        """
        with self._lock.write():
            if user_id not in self._users:
                updated = None
            else:
                updated = User(id=user_id, username=user.username, password=user.password)
                self._users[user_id] = updated
        if updated is None:
            STORE_OPERATION_COUNTER.labels(operation="update", outcome="not_found").inc()
            raise UserNotFound(user_id)
        STORE_OPERATION_COUNTER.labels(operation="update", outcome="ok").inc()
        logger.info("updated user id=%s", user_id)
        return updated

    def delete(self, user_id: int) -> None:
        """Remove the record stored under ``user_id`` or raise :class:`UserNotFound`."""

        with self._lock.write():
            removed = self._users.pop(user_id, None)
        if removed is None:
            STORE_OPERATION_COUNTER.labels(operation="delete", outcome="not_found").inc()
            raise UserNotFound(user_id)
        STORE_OPERATION_COUNTER.labels(operation="delete", outcome="ok").inc()
        logger.info("deleted user id=%s", user_id)

    def validate_credentials(self, username: str, password: str) -> bool:
        with self._lock.read():
            return any(
                u.username == username and u.password == password
                for u in self._users.values()
            )


def seed_store(store: UserStore, users: Iterable[Tuple[str, str]]) -> List[User]:
    """Create each ``(username, password)`` pair in order."""

    created = [store.create(username, password) for username, password in users]
    logger.info("seeded %s users", len(created))
    return created
