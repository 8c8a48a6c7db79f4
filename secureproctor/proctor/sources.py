"""
Detection Sources - Injectable producers of detection results

The engine never runs inference itself. A source hands it one
DetectionResult per sampling tick; DetectionPump drives that cadence.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from ..config import settings
from .models import DetectionResult, GazeDirection, SessionStatus
from .session import ProctorSession

logger = logging.getLogger(__name__)


class DetectionSource(ABC):
    """Anything that can produce detection results on demand"""

    @abstractmethod
    def read(self) -> Optional[DetectionResult]:
        """
        Produce the result for the current tick.

        Returns:
            A result, or None once the source is exhausted
        """
        pass


class FixtureSource(DetectionSource):
    """Replays a fixed sequence of results, then reports exhaustion"""

    def __init__(self, results: Iterable[DetectionResult]):
        self._results = list(results)
        self._position = 0

    def read(self) -> Optional[DetectionResult]:
        if self._position >= len(self._results):
            return None
        result = self._results[self._position]
        self._position += 1
        return result

    @property
    def remaining(self) -> int:
        return len(self._results) - self._position


class RandomMockSource(DetectionSource):
    """
    Seeded stand-in for a real detector.

    Probabilities per tick match the demo detector: face missing 5%,
    looking away 10%, an object 2%, a second face 1%, confidence 0.85-1.0.
    """

    DEFAULT_OBJECTS = ("phone", "book", "notes")

    def __init__(
        self,
        seed: Optional[int] = None,
        face_missing_rate: float = 0.05,
        looking_away_rate: float = 0.10,
        object_rate: float = 0.02,
        multiple_faces_rate: float = 0.01,
        objects: Sequence[str] = DEFAULT_OBJECTS,
        max_ticks: Optional[int] = None
    ):
        self._random = random.Random(seed)
        self.face_missing_rate = face_missing_rate
        self.looking_away_rate = looking_away_rate
        self.object_rate = object_rate
        self.multiple_faces_rate = multiple_faces_rate
        self.objects = tuple(objects)
        self.max_ticks = max_ticks
        self._ticks = 0

    def read(self) -> Optional[DetectionResult]:
        if self.max_ticks is not None and self._ticks >= self.max_ticks:
            return None
        self._ticks += 1

        rng = self._random
        detected = []
        if self.objects and rng.random() < self.object_rate:
            detected.append(rng.choice(self.objects))

        return DetectionResult(
            face_detected=rng.random() >= self.face_missing_rate,
            eye_gaze=(
                GazeDirection.LOOKING_AWAY
                if rng.random() < self.looking_away_rate
                else GazeDirection.FOCUSED
            ),
            objects_detected=frozenset(detected),
            multiple_faces=rng.random() < self.multiple_faces_rate,
            confidence=0.85 + rng.random() * 0.15,
        )


class DetectionPump:
    """
    Pushes one result per interval from a source into a session.

    Stops when the session leaves ACTIVE, the source is exhausted or
    ``max_ticks`` results have been pushed. Ingest runs in a worker
    thread so a busy session lock never stalls the event loop.
    """

    def __init__(
        self,
        source: DetectionSource,
        session: ProctorSession,
        interval: Optional[float] = None,
        max_ticks: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.source = source
        self.session = session
        self.interval = settings.SAMPLING_INTERVAL_SECONDS if interval is None else interval
        self.max_ticks = max_ticks
        self._sleep = sleep
        self.ticks = 0
        self.violations = 0
        self.dropped = 0

    async def run(self) -> int:
        """
        Run until a stop condition is met.

        Returns:
            Number of results pushed
        """
        logger.info(f"Detection pump started for session {self.session.id} (every {self.interval}s)")

        while self.max_ticks is None or self.ticks < self.max_ticks:
            if self.session.status is not SessionStatus.ACTIVE:
                break

            result = self.source.read()
            if result is None:
                break

            outcome = await asyncio.to_thread(self.session.process, result)
            self.ticks += 1
            self.violations += len(outcome.violations)
            if not outcome.accepted:
                self.dropped += 1

            await self._sleep(self.interval)

        logger.info(
            f"Detection pump stopped for session {self.session.id}: "
            f"ticks={self.ticks} violations={self.violations} dropped={self.dropped}"
        )
        return self.ticks
