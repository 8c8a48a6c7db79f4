"""
Redis Session Store - JSON documents in Redis

Features:
- One JSON document per session and per candidate
- Optimistic WATCH/MULTI transactions for atomic per-session updates
- Index sets for listing and export
- Any Redis failure surfaces as StoreUnavailable
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

import redis
from redis.exceptions import RedisError, WatchError

from ...config import settings
from ..exceptions import NotFound, StoreUnavailable
from ..models import Candidate, DetectionLogEntry, Session, Violation
from ..scoring import IntegrityScorer
from .base import SessionStore, apply_changes

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """
    Redis-backed session store.

    Usage:
        store = RedisSessionStore("redis://localhost:6379/0")
        store.create_session(session)
        snapshot = store.get_session(session.id)
    """

    def __init__(
        self,
        redis_url: str = None,
        prefix: str = None,
        client: Any = None,
        max_retries: int = 10,
        scorer: Optional[IntegrityScorer] = None
    ):
        """
        Args:
            redis_url: Redis connection URL
            prefix: Key prefix shared by every key this store writes
            client: Pre-built Redis client (skips URL connection)
            max_retries: Attempts before a contended update gives up
            scorer: Scoring policy applied on every write
        """
        super().__init__(scorer)
        self.redis_url = redis_url or settings.REDIS_URL
        self.prefix = prefix or settings.REDIS_KEY_PREFIX
        self.max_retries = max_retries
        self._client = client

    @property
    def client(self) -> Any:
        """Lazy load Redis client"""
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
            logger.info(f"[STORE] Using Redis: {self.redis_url}")
        return self._client

    # ========================================================================
    # Keys
    # ========================================================================

    def _session_key(self, session_id: str) -> str:
        return f"{self.prefix}session:{session_id}"

    def _candidate_key(self, candidate_id: str) -> str:
        return f"{self.prefix}candidate:{candidate_id}"

    @property
    def _session_index(self) -> str:
        return f"{self.prefix}sessions"

    @property
    def _candidate_index(self) -> str:
        return f"{self.prefix}candidates"

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except RedisError as e:
            logger.error(f"[STORE] Redis {operation} failed: {e}")
            raise StoreUnavailable(f"Redis {operation} failed: {e}", cause=e) from e

    # ========================================================================
    # Candidates
    # ========================================================================

    def create_candidate(self, candidate: Candidate) -> Candidate:
        with self._guard("create candidate"):
            created = self.client.set(
                self._candidate_key(candidate.id),
                json.dumps(candidate.to_dict()),
                nx=True
            )
            if not created:
                raise ValueError(f"Candidate already exists: {candidate.id}")
            self.client.sadd(self._candidate_index, candidate.id)
        logger.info(f"[STORE] Created candidate: {candidate.id[:8]}...")
        return candidate

    def get_candidate(self, candidate_id: str) -> Candidate:
        with self._guard("get candidate"):
            raw = self.client.get(self._candidate_key(candidate_id))
        if raw is None:
            raise NotFound("candidate", candidate_id)
        return Candidate.from_dict(json.loads(raw))

    def list_candidates(self) -> List[Candidate]:
        with self._guard("list candidates"):
            ids = sorted(self.client.smembers(self._candidate_index))
            values = self.client.mget([self._candidate_key(i) for i in ids]) if ids else []
        return [Candidate.from_dict(json.loads(v)) for v in values if v is not None]

    # ========================================================================
    # Sessions
    # ========================================================================

    def create_session(self, session: Session) -> Session:
        session = session.copy()
        session.integrity_score = self.scorer.compute(session.violations)
        with self._guard("create session"):
            created = self.client.set(
                self._session_key(session.id),
                json.dumps(session.to_dict()),
                nx=True
            )
            if not created:
                raise ValueError(f"Session already exists: {session.id}")
            self.client.sadd(self._session_index, session.id)
        logger.info(f"[STORE] Created session: {session.id[:8]}...")
        return session.copy()

    def get_session(self, session_id: str) -> Session:
        with self._guard("get session"):
            raw = self.client.get(self._session_key(session_id))
        if raw is None:
            raise NotFound("session", session_id)
        return Session.from_dict(json.loads(raw))

    def list_sessions(self, candidate_id: Optional[str] = None) -> List[Session]:
        with self._guard("list sessions"):
            ids = sorted(self.client.smembers(self._session_index))
            values = self.client.mget([self._session_key(i) for i in ids]) if ids else []
        sessions = [Session.from_dict(json.loads(v)) for v in values if v is not None]
        if candidate_id is not None:
            sessions = [s for s in sessions if s.candidate_id == candidate_id]
        return sessions

    def apply_update(
        self,
        session_id: str,
        violations: Iterable[Violation] = (),
        logs: Iterable[DetectionLogEntry] = (),
        fields: Optional[Dict[str, Any]] = None
    ) -> Session:
        key = self._session_key(session_id)
        violations = list(violations)
        logs = list(logs)

        with self._guard("update session"):
            for attempt in range(1, self.max_retries + 1):
                with self.client.pipeline() as pipe:
                    try:
                        pipe.watch(key)
                        raw = pipe.get(key)
                        if raw is None:
                            raise NotFound("session", session_id)

                        session = apply_changes(
                            Session.from_dict(json.loads(raw)),
                            self.scorer,
                            violations,
                            logs,
                            fields
                        )

                        pipe.multi()
                        pipe.set(key, json.dumps(session.to_dict()))
                        pipe.execute()
                        return session
                    except WatchError:
                        logger.debug(f"[STORE] Write conflict on {session_id[:8]}..., attempt {attempt}")

        raise StoreUnavailable(
            f"Gave up updating session {session_id} after {self.max_retries} conflicting writes"
        )

    def clear(self) -> None:
        with self._guard("clear"):
            session_ids = self.client.smembers(self._session_index)
            candidate_ids = self.client.smembers(self._candidate_index)
            keys = [self._session_key(i) for i in session_ids]
            keys += [self._candidate_key(i) for i in candidate_ids]
            keys += [self._session_index, self._candidate_index]
            self.client.delete(*keys)
        logger.info("[STORE] Cleared all sessions and candidates")
