"""
Fixed-capacity rolling buffer of aggregate power samples.

Operations:
- append(sample): add to the tail, evicting from the head beyond capacity.
- snapshot(): copy of the samples, oldest first.
- latest(): newest sample or None.

CHANGELOG:
- 2026-10-17: Reject non-int capacities
- 2026-10-17: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

from collections import deque

from nilm.src.errors import InvalidConfigurationError
from nilm.src.models import AggregatedSample

DEFAULT_CAPACITY: int = 30
"""Number of samples the dashboard chart keeps."""


class HistoryBuffer:
    """FIFO buffer holding at most *capacity* samples.

    Args:
        capacity: Maximum number of samples retained. Must be > 0.

    Raises:
        InvalidConfigurationError: If *capacity* is not a positive int.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise InvalidConfigurationError(
                f"History capacity must be an int > 0 (got {capacity!r})"
            )
        self._samples: deque[AggregatedSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        """Maximum number of retained samples."""
        return self._samples.maxlen  # type: ignore[return-value]

    def append(self, sample: AggregatedSample) -> None:
        """Append *sample*; the oldest sample is dropped when full."""
        self._samples.append(sample)

    def snapshot(self) -> list[AggregatedSample]:
        """Return a copy of the buffered samples, oldest first."""
        return list(self._samples)

    def latest(self) -> AggregatedSample | None:
        """Return the newest sample, or None when empty."""
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)
