"""In-process session memory.

Sessions live only as long as the process. The store is shared by every
request; its map is guarded by a thread lock, while each session carries its
own asyncio lock so that turns for one learner are processed one at a time.
Idle sessions can be bounded by age (``ttl_seconds``) and by count
(``max_sessions``, least recently used first); with neither set the store
grows without limit.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple


logger = logging.getLogger(__name__)

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    role: str
    content: str


@dataclass
class Session:
    session_id: str
    history: List[Turn] = field(default_factory=list)
    questions_asked: int = 0
    # normalized question -> text shown to the learner
    asked: Dict[str, str] = field(default_factory=dict)
    concluded: bool = False
    last_used: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def append(self, role: str, content: str) -> None:
        self.history.append(Turn(role=role, content=content))

    def record_question(self, key: str, text: str) -> None:
        self.questions_asked += 1
        self.asked.setdefault(key, text)


class SessionStore:
    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds or None
        self.max_sessions = max_sessions or None
        self._clock = clock
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._guard:
            return session_id in self._sessions

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        with self._guard:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: Optional[str] = None) -> Tuple[str, Session]:
        """Return the session for ``session_id``, creating a fresh one under a
        newly generated identifier when the id is absent or unknown."""
        with self._guard:
            now = self._clock()
            self._evict_expired(now)

            session = self._sessions.get(session_id) if session_id else None
            if session is None:
                new_id = self._new_id()
                session = Session(session_id=new_id)
                self._sessions[new_id] = session
                logger.debug("Created session %s (requested=%s)", new_id, session_id)

            session.last_used = now
            self._sessions.move_to_end(session.session_id)
            self._evict_overflow(keep=session.session_id)
            return session.session_id, session

    def reset(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        with self._guard:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug("Reset session %s", session_id)

    def _new_id(self) -> str:
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in self._sessions:
                return candidate

    def _evict_expired(self, now: float) -> None:
        if self.ttl_seconds is None:
            return
        expired = [
            sid
            for sid, session in self._sessions.items()
            if now - session.last_used > self.ttl_seconds and not session.lock.locked()
        ]
        for sid in expired:
            del self._sessions[sid]
            logger.debug("Evicted idle session %s", sid)

    def _evict_overflow(self, keep: str) -> None:
        if self.max_sessions is None:
            return
        for sid in list(self._sessions.keys()):
            if len(self._sessions) <= self.max_sessions:
                break
            if sid == keep or self._sessions[sid].lock.locked():
                continue
            del self._sessions[sid]
            logger.debug("Evicted least recently used session %s", sid)
