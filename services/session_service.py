# Call session store
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from config import Config
from utils.logger import logger

AMBIGUOUS_INPUT = 'ambiguous_input'
ESCAPE = 'escape'
SLOT_UNAVAILABLE = 'slot_unavailable'


@dataclass(frozen=True)
class Turn:
    stage_before: str
    stage_after: str
    input: Optional[str]
    extraction_kind: Optional[str] = None
    extraction_value: Any = None
    confidence: Optional[float] = None
    at: datetime = field(default_factory=datetime.now)


@dataclass
class CallSession:
    call_id: str
    caller_contact: Optional[str]
    stage: str
    collected: Dict[str, Any] = field(default_factory=dict)
    quote: Any = None
    attempts: Dict[str, int] = field(
        default_factory=lambda: {AMBIGUOUS_INPUT: 0, ESCAPE: 0, SLOT_UNAVAILABLE: 0})
    history: List[Turn] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    last_activity_at: datetime = field(default_factory=datetime.now)
    closed: bool = False

    def record(self, turn: Turn):
        self.history.append(turn)

    def set_quote(self, quote):
        if self.quote is not None:
            raise ValueError(f"Call {self.call_id} already has a quote; clear it before re-quoting")
        self.quote = quote

    def clear_quote(self):
        self.quote = None

    def bump(self, counter):
        self.attempts[counter] = self.attempts.get(counter, 0) + 1
        return self.attempts[counter]

    def stages_visited(self):
        if not self.history:
            return [self.stage]
        return [self.history[0].stage_before] + [t.stage_after for t in self.history]


class SessionStore:
    """Sessions keyed by call id; one per live call"""

    def __init__(self, idle_minutes=None):
        self.idle = timedelta(minutes=idle_minutes or Config.SESSION_IDLE_MINUTES)
        self._sessions: Dict[str, CallSession] = {}
        self._lock = threading.Lock()

    def create(self, call_id, caller_contact, stage, now=None):
        now = now or datetime.now()
        session = CallSession(call_id=call_id, caller_contact=caller_contact, stage=stage,
                              started_at=now, last_activity_at=now)
        with self._lock:
            if call_id in self._sessions:
                logger.warning(f"Replacing existing session for call {call_id}")
            self._sessions[call_id] = session
        return session

    def get(self, call_id):
        with self._lock:
            return self._sessions.get(call_id)

    def touch(self, call_id, now=None):
        with self._lock:
            session = self._sessions.get(call_id)
            if session:
                session.last_activity_at = now or datetime.now()
            return session

    def close(self, call_id):
        with self._lock:
            session = self._sessions.pop(call_id, None)
        if session:
            session.closed = True
        return session

    def expire_idle(self, now=None):
        """Drop sessions idle longer than the timeout; returns the dropped sessions"""
        now = now or datetime.now()
        with self._lock:
            expired = [s for s in self._sessions.values() if now - s.last_activity_at > self.idle]
            for session in expired:
                del self._sessions[session.call_id]
                session.closed = True
        for session in expired:
            logger.info(f"Expired idle session {session.call_id} at stage {session.stage}")
        return expired

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, call_id):
        with self._lock:
            return call_id in self._sessions
