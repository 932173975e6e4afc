from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from .config import get_settings
from .schemas import CounterData, KeystrokeIn, SessionState, Statistics
from .statistics import TempStatistics

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """Operation not allowed in the session's current state."""


class SessionFinalizedError(SessionStateError):
    """The session was already finalized."""


class SessionActiveError(SessionStateError):
    """The session has not been finalized yet."""


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class _SessionData:
    """Internal structure holding one session."""

    __slots__ = (
        "session_id",
        "text_length",
        "interval_seconds",
        "temp",
        "statistics",
        "last_updated",
    )

    def __init__(self, session_id: str, text_length: int, interval_seconds: float):
        self.session_id = session_id
        self.text_length = text_length
        self.interval_seconds = interval_seconds
        self.temp: Optional[TempStatistics] = TempStatistics()
        self.statistics: Optional[Statistics] = None
        self.last_updated: datetime = _now_utc()

    def to_state(self) -> SessionState:
        """Convert to SessionState Pydantic model."""
        if self.statistics is not None:
            counters = self.statistics.counters
            measurements = self.statistics.measurements
            inputs_count = len(self.statistics.input_history)
        else:
            counters = self.temp.counters
            measurements = self.temp.measurements
            inputs_count = len(self.temp.input_history)
        return SessionState(
            session_id=self.session_id,
            text_length=self.text_length,
            measurement_interval_seconds=self.interval_seconds,
            finalized=self.statistics is not None,
            inputs_count=inputs_count,
            counters=CounterData.model_validate(counters.model_dump()),
            measurements=list(measurements),
            last_updated=self.last_updated,
        )


class InMemorySessionStore:
    """Thread-safe in-memory store of typing sessions.

    Live sessions own a TempStatistics; finalizing a session consumes it and
    keeps the resulting Statistics.
    """

    def __init__(self, default_interval_seconds: Optional[float] = None) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, _SessionData] = {}
        self._default_interval = default_interval_seconds

    def _interval(self, override: Optional[float]) -> float:
        if override is not None:
            return override
        if self._default_interval is not None:
            return self._default_interval
        return get_settings().measurement_interval_seconds

    def _get(self, session_id: str) -> _SessionData:
        if session_id not in self._sessions:
            raise KeyError("session not found")
        return self._sessions[session_id]

    # PUBLIC_INTERFACE
    def create_session(
        self,
        session_id: Optional[str] = None,
        text_length: int = 0,
        measurement_interval_seconds: Optional[float] = None,
    ) -> str:
        """Create a new session or get an existing one.

        Args:
            session_id: Optional explicit session id; if None, a new uuid4 is generated.
            text_length: Length of the target text.
            measurement_interval_seconds: Optional sampling interval; defaults to the settings value.

        Returns:
            The session id.
        """
        with self._lock:
            sid = session_id or str(uuid4())
            if sid not in self._sessions:
                interval = self._interval(measurement_interval_seconds)
                self._sessions[sid] = _SessionData(sid, text_length, interval)
                logger.info("session %s created (text_length=%d, interval=%.3fs)", sid, text_length, interval)
            return sid

    # PUBLIC_INTERFACE
    def record_inputs(self, session_id: str, inputs: List[KeystrokeIn]) -> SessionState:
        """Feed keystrokes to a live session, in order.

        Raises:
            KeyError: If the session does not exist.
            SessionFinalizedError: If the session was already finalized.
            ValueError: If inputs is empty.
        """
        if not inputs:
            raise ValueError("inputs must be non-empty")

        with self._lock:
            sess = self._get(session_id)
            if sess.temp is None:
                logger.warning("rejected %d inputs for finalized session %s", len(inputs), session_id)
                raise SessionFinalizedError("session already finalized")

            # All elapsed times are converted before the first update.
            batch = [(k.char, k.result, k.input_len, k.elapsed) for k in inputs]
            for char, result, input_len, elapsed in batch:
                sess.temp.update(char, result, input_len, elapsed, sess.interval_seconds)
            sess.last_updated = _now_utc()
            return sess.to_state()

    # PUBLIC_INTERFACE
    def finalize_session(self, session_id: str, duration: timedelta, current_position: int) -> Statistics:
        """End a session and return its Statistics.

        Raises:
            KeyError: If the session does not exist.
            SessionFinalizedError: If the session was already finalized.
        """
        with self._lock:
            sess = self._get(session_id)
            if sess.temp is None:
                logger.warning("rejected finalize for finalized session %s", session_id)
                raise SessionFinalizedError("session already finalized")

            temp, sess.temp = sess.temp, None
            sess.statistics = temp.finalize(duration, sess.text_length, current_position)
            sess.last_updated = _now_utc()
            logger.info("session %s finalized", session_id)
            return sess.statistics.model_copy(deep=True)

    # PUBLIC_INTERFACE
    def get_session_state(self, session_id: str) -> SessionState:
        """Get the live view of a session.

        Raises:
            KeyError if session not found.
        """
        with self._lock:
            return self._get(session_id).to_state()

    # PUBLIC_INTERFACE
    def get_statistics(self, session_id: str) -> Statistics:
        """Get the Statistics of a finalized session.

        Raises:
            KeyError if session not found.
            SessionActiveError if the session is still live.
        """
        with self._lock:
            sess = self._get(session_id)
            if sess.statistics is None:
                raise SessionActiveError("session not finalized")
            return sess.statistics.model_copy(deep=True)

    # PUBLIC_INTERFACE
    def list_sessions(self) -> List[SessionState]:
        """List states of all sessions."""
        with self._lock:
            return [s.to_state() for s in self._sessions.values()]

    # PUBLIC_INTERFACE
    def clear_session(self, session_id: str) -> None:
        """Delete a session.

        Raises:
            KeyError if session not found.
        """
        with self._lock:
            self._get(session_id)
            del self._sessions[session_id]
            logger.info("session %s deleted", session_id)


# Singleton store instance for app-wide usage
store = InMemorySessionStore()


def get_store() -> InMemorySessionStore:
    return store
