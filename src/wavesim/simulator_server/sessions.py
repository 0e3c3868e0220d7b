"""Thread-safe in-memory storage for running simulations."""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime

from .workflow.interpreter import WorkflowInterpreter


@dataclass
class SimulationSession:
    """One simulation driven through the MCP tools."""

    session_id: str
    interpreter: WorkflowInterpreter
    created_at: datetime = field(default_factory=datetime.now)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)


class SessionManager:
    """Stores simulation sessions with LRU eviction."""

    def __init__(self, max_capacity: int = 50):
        """Initialize the session manager.

        Args:
            max_capacity: Maximum number of sessions kept in memory
        """
        self.max_capacity = max_capacity
        self._sessions: OrderedDict[str, SimulationSession] = OrderedDict()
        self._lock = threading.RLock()

    def create(self, interpreter: WorkflowInterpreter) -> SimulationSession:
        """Store ``interpreter`` under a new session id, evicting the oldest if full."""
        session = SimulationSession(session_id=f"sim_{uuid.uuid4().hex[:8]}", interpreter=interpreter)
        with self._lock:
            if len(self._sessions) >= self.max_capacity:
                oldest_id = next(iter(self._sessions))
                del self._sessions[oldest_id]
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> SimulationSession | None:
        """Get a session by id, marking it most recently used."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
            return session

    def remove(self, session_id: str) -> SimulationSession | None:
        """Remove and return a session."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear(self) -> int:
        """Remove all sessions, returning how many were removed."""
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
            return count


# Global singleton instance
_session_manager: SessionManager | None = None
_manager_lock = threading.Lock()


def get_session_manager() -> SessionManager:
    """Get the global session manager instance."""
    global _session_manager

    if _session_manager is None:
        with _manager_lock:
            if _session_manager is None:
                from .config import get_config
                config = get_config()
                _session_manager = SessionManager(max_capacity=config.max_sessions)

    return _session_manager


def reset_session_manager() -> None:
    """Reset the global session manager (for testing)."""
    global _session_manager
    with _manager_lock:
        _session_manager = None
