"""
In-memory session registry for Web Connector polling conversations.

A session lives from authenticate() to closeConnection(). Sessions are not
persisted: after a restart the Web Connector simply authenticates again.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from collectors.timesheets.mapping import PendingRecord
from common.logging import get_logger

logger = get_logger(__name__)

SESSION_TIMEOUT_MINUTES = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    AUTHENTICATED = 'authenticated'
    FETCHING = 'fetching'
    STREAMING = 'streaming'
    DRAINED = 'drained'
    CLOSED = 'closed'


class SessionStateError(RuntimeError):
    """Raised on a transition the session state machine does not allow."""


@dataclass
class QBWCSession:
    """Poll state for one authenticated Web Connector conversation."""
    ticket: str
    created_at: datetime
    last_seen: datetime
    authenticated: bool = True
    pending_records: List[PendingRecord] = field(default_factory=list)
    cursor: int = 0
    last_error: str = ''
    state: SessionState = SessionState.AUTHENTICATED
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def needs_fetch(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    @property
    def progress(self) -> int:
        total = len(self.pending_records)
        if total == 0:
            return 0
        return (100 * self.cursor) // total

    def begin_fetch(self) -> None:
        if self.state != SessionState.AUTHENTICATED:
            raise SessionStateError(f"Cannot fetch records in state {self.state.value}")
        self.state = SessionState.FETCHING

    def load_records(self, records: List[PendingRecord]) -> None:
        """Fix the session worklist; it is never re-queried afterwards"""
        if self.state != SessionState.FETCHING:
            raise SessionStateError(f"Cannot load records in state {self.state.value}")
        self.pending_records = list(records)
        self.cursor = 0
        self._settle()

    def fail_fetch(self, error: str) -> None:
        """Return to AUTHENTICATED with nothing fetched"""
        if self.state != SessionState.FETCHING:
            raise SessionStateError(f"Cannot fail a fetch in state {self.state.value}")
        self.last_error = error
        self.state = SessionState.AUTHENTICATED

    def current_record(self) -> Optional[PendingRecord]:
        if self.state != SessionState.STREAMING:
            return None
        return self.pending_records[self.cursor]

    def advance(self) -> int:
        """Move past the current record and return the new progress"""
        if self.state != SessionState.STREAMING:
            raise SessionStateError(f"No outstanding record in state {self.state.value}")
        self.cursor += 1
        self._settle()
        return self.progress

    def close(self) -> None:
        self.state = SessionState.CLOSED

    def _settle(self) -> None:
        if self.cursor < len(self.pending_records):
            self.state = SessionState.STREAMING
        else:
            self.state = SessionState.DRAINED


class SessionRegistry:
    """
    Maps opaque tickets to live sessions.

    The registry lock only guards the ticket table; each session carries its
    own lock for cursor and worklist changes.
    """

    def __init__(self, idle_timeout: Optional[timedelta] = None,
                 clock: Callable[[], datetime] = utcnow,
                 ticket_factory: Callable[[], str] = lambda: str(uuid.uuid4())):
        self.idle_timeout = idle_timeout or timedelta(minutes=SESSION_TIMEOUT_MINUTES)
        self.clock = clock
        self.ticket_factory = ticket_factory
        self._sessions: Dict[str, QBWCSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, ticket: str) -> bool:
        return self.get(ticket) is not None

    def create(self) -> str:
        """Open a new session and return its ticket"""
        now = self.clock()
        with self._lock:
            ticket = self.ticket_factory()
            while not ticket or ticket in self._sessions:
                ticket = self.ticket_factory()
            self._sessions[ticket] = QBWCSession(ticket=ticket, created_at=now, last_seen=now)
        logger.info(f"Created QBWC session {ticket}")
        return ticket

    def get(self, ticket: str) -> Optional[QBWCSession]:
        """Look up a live session; expired sessions count as missing"""
        if not ticket:
            return None
        with self._lock:
            session = self._sessions.get(ticket)
        if session is None or self._expired(session, self.clock()):
            return None
        return session

    def touch(self, session: QBWCSession) -> None:
        session.last_seen = self.clock()

    def destroy(self, ticket: str) -> None:
        with self._lock:
            session = self._sessions.pop(ticket, None)
        if session is not None:
            # waits for any call still running on this ticket
            with session.lock:
                session.close()
            logger.info(f"Closed QBWC session {ticket}")

    def sweep(self) -> int:
        """Drop sessions whose agent went away without closing; returns how many"""
        now = self.clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if self._expired(s, now)]
            sessions = [self._sessions.pop(ticket) for ticket in expired]
        for session in sessions:
            with session.lock:
                session.close()
        if expired:
            logger.info(f"Expired {len(expired)} idle QBWC sessions")
        return len(expired)

    def _expired(self, session: QBWCSession, now: datetime) -> bool:
        return now - session.last_seen > self.idle_timeout
