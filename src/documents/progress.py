"""Per-document processing progress: the stage machine the UI renders.

    idle -> uploading -> processing -> extracting -> complete
                 \\            \\             \\
                  +------------+-------------+--> error --retry--> processing

Retry re-enters at ``processing`` (never ``idle``): classification and routing
run again from scratch on the stored bytes.
"""

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, replace

from src.core.exceptions import InvalidTransitionError
from src.core.models.enums import ProcessingStage

# Processing longer than this is flagged as timed out.
TIMEOUT_THRESHOLD_SECONDS = 180
# Elapsed time is only surfaced once a phase has run longer than this.
ELAPSED_DEBOUNCE_SECONDS = 3

IN_FLIGHT_STAGES = frozenset(
    {ProcessingStage.uploading, ProcessingStage.processing, ProcessingStage.extracting}
)
TERMINAL_STAGES = frozenset({ProcessingStage.complete, ProcessingStage.error})

ALLOWED_STAGE_TRANSITIONS: dict[ProcessingStage, frozenset[ProcessingStage]] = {
    ProcessingStage.idle: frozenset({ProcessingStage.uploading, ProcessingStage.processing}),
    ProcessingStage.uploading: frozenset({ProcessingStage.processing, ProcessingStage.error}),
    ProcessingStage.processing: frozenset(
        {ProcessingStage.extracting, ProcessingStage.complete, ProcessingStage.error}
    ),
    ProcessingStage.extracting: frozenset({ProcessingStage.complete, ProcessingStage.error}),
    ProcessingStage.complete: frozenset({ProcessingStage.idle}),
    ProcessingStage.error: frozenset({ProcessingStage.processing, ProcessingStage.idle}),
}


def can_transition(current: ProcessingStage, target: ProcessingStage) -> bool:
    return ProcessingStage(target) in ALLOWED_STAGE_TRANSITIONS[ProcessingStage(current)]


@dataclass(frozen=True)
class ProgressState:
    stage: ProcessingStage = ProcessingStage.idle
    upload_progress: int = 0
    started_at: float | None = None
    phase_started_at: float | None = None
    elapsed_seconds: int = 0
    error: str | None = None
    is_timed_out: bool = False
    file_size: int = 0

    @property
    def is_in_flight(self) -> bool:
        return self.stage in IN_FLIGHT_STAGES

    def phase_elapsed(self, now: float) -> int:
        if self.phase_started_at is None:
            return 0
        return int(now - self.phase_started_at)

    def visible_elapsed_seconds(self, now: float) -> int | None:
        """Elapsed seconds worth showing, or ``None`` to avoid flicker on fast phases."""
        if self.stage not in (ProcessingStage.processing, ProcessingStage.extracting):
            return None
        elapsed = self.phase_elapsed(now)
        if elapsed <= ELAPSED_DEBOUNCE_SECONDS:
            return None
        return elapsed

    def at(self, now: float) -> "ProgressState":
        """Copy with elapsed time and the timed-out flag brought up to *now*."""
        if self.started_at is None or not self.is_in_flight:
            return self
        elapsed = int(now - self.started_at)
        return replace(
            self,
            elapsed_seconds=elapsed,
            is_timed_out=elapsed >= TIMEOUT_THRESHOLD_SECONDS,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["stage"] = self.stage.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProgressState":
        return cls(**{**data, "stage": ProcessingStage(data["stage"])})


class ProgressTracker:
    """Tracks progress for many documents at once, keyed by document id."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._states: dict[str, ProgressState] = {}

    def now(self) -> float:
        return self._clock()

    def _tick(self, state: ProgressState) -> ProgressState:
        return state.at(self.now())

    def _move(self, document_id: str, target: ProcessingStage, **changes) -> ProgressState:
        state = self._states.get(document_id)
        if state is None:
            raise KeyError(document_id)
        if state.stage != target and not can_transition(state.stage, target):
            raise InvalidTransitionError(state.stage.value, target.value)
        now = self.now()
        if state.stage != target:
            changes.setdefault("phase_started_at", now)
        updated = self._tick(replace(state, stage=target, **changes))
        self._states[document_id] = updated
        return updated

    def start(self, document_id: str, file_size: int = 0) -> ProgressState:
        """Begin tracking a new upload."""
        now = self.now()
        state = ProgressState(
            stage=ProcessingStage.uploading,
            started_at=now,
            phase_started_at=now,
            file_size=file_size,
        )
        self._states[document_id] = state
        return state

    def set_upload_progress(self, document_id: str, progress: int) -> ProgressState | None:
        state = self._states.get(document_id)
        if state is None:
            return None
        updated = replace(state, upload_progress=min(100, max(0, int(progress))))
        self._states[document_id] = updated
        return updated

    def set_stage(self, document_id: str, stage: ProcessingStage) -> ProgressState:
        stage = ProcessingStage(stage)
        if stage == ProcessingStage.complete:
            return self.complete(document_id)
        if stage == ProcessingStage.error:
            return self.fail(document_id, "Unknown error")
        state = self._states.get(document_id)
        upload = state.upload_progress if state and stage == ProcessingStage.uploading else 100
        return self._move(document_id, stage, upload_progress=upload)

    def complete(self, document_id: str) -> ProgressState:
        state = self._tick(self._states[document_id])
        self._states[document_id] = state
        return self._move(document_id, ProcessingStage.complete, upload_progress=100)

    def fail(self, document_id: str, error_message: str) -> ProgressState:
        state = self._tick(self._states[document_id])
        self._states[document_id] = state
        return self._move(document_id, ProcessingStage.error, error=error_message)

    def retry(self, document_id: str) -> ProgressState:
        """Re-enter ``processing`` from ``error`` with a fresh clock."""
        state = self._states.get(document_id)
        if state is None or state.stage != ProcessingStage.error:
            current = state.stage.value if state else ProcessingStage.idle.value
            raise InvalidTransitionError(current, "retry")
        now = self.now()
        return self._move(
            document_id,
            ProcessingStage.processing,
            error=None,
            started_at=now,
            phase_started_at=now,
            elapsed_seconds=0,
            is_timed_out=False,
            upload_progress=100,
        )

    def resume(self, document_id: str, stage: ProcessingStage, file_size: int = 0) -> ProgressState:
        """Adopt a document whose earlier stages ran elsewhere (e.g. another worker)."""
        now = self.now()
        state = ProgressState(
            stage=ProcessingStage(stage),
            upload_progress=100,
            started_at=now,
            phase_started_at=now,
            file_size=file_size,
        )
        self._states[document_id] = state
        return state

    def reset(self, document_id: str) -> None:
        self._states.pop(document_id, None)

    def get(self, document_id: str) -> ProgressState | None:
        state = self._states.get(document_id)
        if state is None:
            return None
        state = self._tick(state)
        self._states[document_id] = state
        return state

    def visible_elapsed_seconds(self, document_id: str) -> int | None:
        state = self.get(document_id)
        if state is None:
            return None
        return state.visible_elapsed_seconds(self.now())

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._states
