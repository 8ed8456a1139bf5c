"""
Session Store for browsing state.

Each caller-supplied session id owns one BrowserSession that tracks:
- pages: Cache of fetched plain-text documents, keyed by the exact URL string
- current_url / current_content: The most recently opened page

Sessions are created lazily on first reference and live until they are
explicitly removed (session/terminate, the DELETE endpoint) or the process
exits. There is no persistence and no expiry.

Concurrency:
------------
One coarse read/write lock guards the whole mapping. Readers (snapshots) may
proceed concurrently with each other; writers (create/update/remove) are
exclusive with everyone. Critical sections never await, so the store is safe
to use from both threads and coroutines.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import pydantic
import structlog

logger = structlog.stdlib.get_logger(component=__name__)


class BrowserSession(pydantic.BaseModel):
    """
    Browsing state of a single session.

    Attributes:
        current_url: URL of the most recently opened page
        current_content: Plain text of the most recently opened page
        pages: Dict mapping URLs (exactly as supplied) to fetched plain text

    `current_url` and `current_content` are either both set or both unset, and
    always mirror the last page recorded with `open_page`.
    """
    current_url: Optional[str] = None
    current_content: Optional[str] = None
    pages: dict[str, str] = pydantic.Field(default_factory=dict)

    @property
    def has_open_page(self) -> bool:
        return self.current_url is not None and self.current_content is not None

    def get_page_by_url(self, url: str) -> str | None:
        return self.pages.get(url)

    def open_page(self, url: str, content: str) -> None:
        """Caches the page and makes it the current one."""
        self.pages[url] = content
        self.current_url = url
        self.current_content = content


class ReadWriteLock:
    """
    Many concurrent readers or one exclusive writer.

    Writers waiting for the lock block new readers, so a steady stream of
    snapshots cannot starve an update.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SessionStore:
    """
    Process-lifetime mapping from session id to BrowserSession.

    The store is constructed explicitly by the application and injected into
    the dispatcher and the tool executor.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, BrowserSession] = {}
        self._lock = ReadWriteLock()

    def get_or_create(self, session_id: str) -> BrowserSession:
        """
        Returns the live session for `session_id`, creating an empty one on
        first reference.
        """
        with self._lock.write():
            session = self._sessions.get(session_id)
            if session is None:
                session = BrowserSession()
                self._sessions[session_id] = session
                logger.info("Created browser session", session_id=session_id)
            return session

    def snapshot(self, session_id: str) -> BrowserSession | None:
        """Returns a deep copy of the session, or None if it does not exist."""
        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return session.model_copy(deep=True)

    def get_page(self, session_id: str, url: str) -> str | None:
        """Returns the cached text of `url` in the session, without copying the session."""
        with self._lock.read():
            session = self._sessions.get(session_id)
            return session.get_page_by_url(url) if session is not None else None

    def current_page(self, session_id: str) -> tuple[str, str] | None:
        """Returns `(url, content)` of the session's current page, if one is open."""
        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is None or not session.has_open_page:
                return None
            return session.current_url, session.current_content

    def record_page(self, session_id: str, url: str, content: str) -> None:
        """
        Stores `content` under `url` and makes it the session's current page,
        creating the session if needed. Last write wins.
        """
        with self._lock.write():
            session = self._sessions.get(session_id)
            if session is None:
                session = BrowserSession()
                self._sessions[session_id] = session
                logger.info("Created browser session", session_id=session_id)
            session.open_page(url, content)

    def remove(self, session_id: str) -> bool:
        """
        Drops the session. Removing an unknown id is not an error.

        Returns:
            True if a session was removed
        """
        with self._lock.write():
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("Removed browser session", session_id=session_id)
        return removed

    def clear(self) -> None:
        with self._lock.write():
            self._sessions.clear()

    def __contains__(self, session_id: object) -> bool:
        with self._lock.read():
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sessions)
