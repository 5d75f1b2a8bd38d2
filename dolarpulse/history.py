"""Intraday in-memory sample history.

Only the current UTC day is kept. Appending a sample from a new day evicts
everything older, and the sequence is capped FIFO at ``max_length``.
"""

from collections import deque

from dolarpulse.logger import get_logger
from dolarpulse.models import Sample

log = get_logger(__name__)

DEFAULT_MAX_LENGTH = 2000


class SampleHistory:
    """Append-only per-day sequence of samples.

    The scheduler is the only writer. ``append`` is synchronous, so on a
    single event loop appends from overlapping cycles never interleave.

    Example:
        history = SampleHistory(max_length=2000)
        history.append(sample)
        boot_payload = history.snapshot()
    """

    def __init__(self, max_length: int = DEFAULT_MAX_LENGTH) -> None:
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self.max_length = max_length
        self._samples: deque[Sample] = deque()

    def append(self, sample: Sample) -> None:
        """Evict other-day samples, append, then trim to the cap."""
        day = sample.day
        if self._samples and any(s.day != day for s in self._samples):
            before = len(self._samples)
            self._samples = deque(s for s in self._samples if s.day == day)
            log.info(
                "Day rollover - history reset",
                day=day.isoformat(),
                evicted=before - len(self._samples),
            )

        self._samples.append(sample)

        while len(self._samples) > self.max_length:
            self._samples.popleft()

    def snapshot(self) -> tuple[Sample, ...]:
        """Return the current ordered sequence as an immutable tuple."""
        return tuple(self._samples)

    @property
    def latest(self) -> Sample | None:
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)
