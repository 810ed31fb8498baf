"""Per-subject in-flight tracking.

Each subject (a KYC submission, a wallet/role pair) moves through
IDLE -> PROCESSING -> DONE, or back to IDLE when the operation fails so the
registrar can retry immediately.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from enum import Enum

from registrar.sdk.errors import AlreadyProcessing


class SubjectState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    DONE = "done"


class InFlightTracker:
    """Guarantees at most one outstanding operation per subject.

    Local to one view. The event loop is single-threaded, so checking and
    setting the state without awaiting in between is atomic.
    """

    def __init__(self, repeatable: bool = False) -> None:
        # repeatable subjects return to IDLE after success instead of DONE
        self._states: dict[Hashable, SubjectState] = {}
        self._repeatable = repeatable

    def state(self, key: Hashable) -> SubjectState:
        return self._states.get(key, SubjectState.IDLE)

    def is_processing(self, key: Hashable) -> bool:
        return self.state(key) is SubjectState.PROCESSING

    @contextmanager
    def claim(self, key: Hashable) -> Iterator[None]:
        """Hold the subject for the duration of one operation."""
        if self.state(key) is SubjectState.PROCESSING:
            raise AlreadyProcessing(f"Operation already in progress for {key}")
        self._states[key] = SubjectState.PROCESSING
        try:
            yield
        except BaseException:
            self._states[key] = SubjectState.IDLE
            raise
        self._states[key] = SubjectState.IDLE if self._repeatable else SubjectState.DONE
