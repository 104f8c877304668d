from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

from ..core.errors import CaptureError, SessionError
from .calls import DrawingCall, make_call

logger = logging.getLogger(__name__)


class CallCapturePort(Protocol):
    """Where intercepted drawing calls are logged, keyed by session id."""

    def record(self, call: DrawingCall) -> None: ...

    def get_calls(self, session_id: str) -> List[DrawingCall]: ...

    def drain(self, session_id: str) -> List[DrawingCall]: ...

    def clear(self, session_id: str) -> None: ...


class CallStore:
    """In-memory call log with clear-after-read semantics."""

    def __init__(self) -> None:
        self._calls: Dict[str, List[DrawingCall]] = {}
        self._lock = threading.Lock()

    def record(self, call: DrawingCall) -> None:
        if not call.session_id:
            raise SessionError("cannot record a call without a session id")
        with self._lock:
            self._calls.setdefault(call.session_id, []).append(call)

    def get_calls(self, session_id: str) -> List[DrawingCall]:
        with self._lock:
            return list(self._calls.get(session_id, ()))

    def drain(self, session_id: str) -> List[DrawingCall]:
        with self._lock:
            return self._calls.pop(session_id, [])

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._calls.pop(session_id, None)

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._calls)


_DEFAULT_STORE = CallStore()


def default_store() -> CallStore:
    return _DEFAULT_STORE


class SessionState(str, Enum):
    OPEN = "open"
    ACCUMULATING = "accumulating"
    PROCESSING = "processing"
    CLEARED = "cleared"


class Session:
    """One capture session: open -> accumulating -> processing -> cleared."""

    def __init__(
        self,
        store: Optional[CallCapturePort] = None,
        session_id: Optional[str] = None,
        max_calls: Optional[int] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.store: CallCapturePort = store or _DEFAULT_STORE
        self.state = SessionState.OPEN
        self.max_calls = max_calls
        self._seq = 0

    def record(self, function: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> DrawingCall:
        if self.state not in (SessionState.OPEN, SessionState.ACCUMULATING):
            raise SessionError(f"session {self.id} is {self.state.value}; no further calls can be recorded")
        if self.max_calls is not None and self._seq >= self.max_calls:
            raise CaptureError(f"more than {self.max_calls} drawing calls in one session")
        self._seq += 1
        call = make_call(function, args, kwargs, session_id=self.id, seq=self._seq)
        self.store.record(call)
        self.state = SessionState.ACCUMULATING
        return call

    @property
    def calls(self) -> List[DrawingCall]:
        return self.store.get_calls(self.id)

    def take(self) -> List[DrawingCall]:
        """Move to processing and hand over the captured calls, emptying the store."""

        if self.state is SessionState.CLEARED:
            raise SessionError(f"session {self.id} was already processed")
        self.state = SessionState.PROCESSING
        return self.store.drain(self.id)

    def clear(self) -> None:
        self.store.clear(self.id)
        self.state = SessionState.CLEARED


_ACTIVE_SESSION: ContextVar[Optional[Session]] = ContextVar("plotaccess_session", default=None)


def current_session() -> Optional[Session]:
    return _ACTIVE_SESSION.get()


@contextmanager
def capture(
    store: Optional[CallCapturePort] = None,
    session_id: Optional[str] = None,
    max_calls: Optional[int] = None,
) -> Iterator[Session]:
    """Record drawing calls made inside the block into a fresh session.

    If the block raises, the calls recorded so far are discarded.
    """

    session = Session(store=store, session_id=session_id, max_calls=max_calls)
    token = _ACTIVE_SESSION.set(session)
    logger.debug("capture session %s opened", session.id)
    try:
        yield session
    except BaseException:
        session.clear()
        raise
    finally:
        _ACTIVE_SESSION.reset(token)
