"""Tests for the UI progress stage machine."""

import pytest

from src.core.exceptions import InvalidTransitionError
from src.core.models.enums import ProcessingStage
from src.documents.progress import (
    TIMEOUT_THRESHOLD_SECONDS,
    ProgressState,
    ProgressTracker,
    can_transition,
)


@pytest.fixture
def tracker(clock):
    return ProgressTracker(clock=clock)


def test_full_run(tracker):
    state = tracker.start("doc-1", file_size=2048)
    assert state.stage == ProcessingStage.uploading
    assert state.upload_progress == 0

    assert tracker.set_upload_progress("doc-1", 55).upload_progress == 55
    assert tracker.set_stage("doc-1", ProcessingStage.processing).upload_progress == 100
    tracker.set_stage("doc-1", ProcessingStage.extracting)
    state = tracker.complete("doc-1")

    assert state.stage == ProcessingStage.complete
    assert not state.is_in_flight


def test_upload_progress_is_clamped(tracker):
    tracker.start("doc-1")
    assert tracker.set_upload_progress("doc-1", 140).upload_progress == 100
    assert tracker.set_upload_progress("doc-1", -5).upload_progress == 0
    assert tracker.set_upload_progress("unknown", 50) is None


def test_cannot_skip_backwards(tracker):
    tracker.start("doc-1")
    tracker.set_stage("doc-1", ProcessingStage.processing)
    tracker.set_stage("doc-1", ProcessingStage.extracting)
    with pytest.raises(InvalidTransitionError):
        tracker.set_stage("doc-1", ProcessingStage.uploading)


def test_error_exits_only_through_retry(tracker):
    tracker.start("doc-1")
    tracker.fail("doc-1", "Network connection failed")
    assert not can_transition(ProcessingStage.error, ProcessingStage.complete)
    with pytest.raises(InvalidTransitionError):
        tracker.complete("doc-1")


def test_retry_reenters_processing_not_idle(tracker, clock):
    tracker.start("doc-1")
    clock.advance(200)
    failed = tracker.fail("doc-1", "Request timed out")
    assert failed.error == "Request timed out"
    assert failed.is_timed_out

    state = tracker.retry("doc-1")
    assert state.stage == ProcessingStage.processing
    assert state.error is None
    assert state.elapsed_seconds == 0
    assert state.is_timed_out is False


def test_retry_requires_error(tracker):
    tracker.start("doc-1")
    with pytest.raises(InvalidTransitionError):
        tracker.retry("doc-1")
    with pytest.raises(InvalidTransitionError):
        tracker.retry("never-seen")


def test_elapsed_is_debounced(tracker, clock):
    tracker.start("doc-1")
    tracker.set_stage("doc-1", ProcessingStage.processing)
    clock.advance(3)
    assert tracker.visible_elapsed_seconds("doc-1") is None

    clock.advance(2)
    assert tracker.visible_elapsed_seconds("doc-1") == 5


def test_elapsed_restarts_per_phase(tracker, clock):
    tracker.start("doc-1")
    tracker.set_stage("doc-1", ProcessingStage.processing)
    clock.advance(10)
    tracker.set_stage("doc-1", ProcessingStage.extracting)
    clock.advance(1)
    assert tracker.visible_elapsed_seconds("doc-1") is None
    assert tracker.get("doc-1").elapsed_seconds == 11


def test_elapsed_hidden_while_uploading(tracker, clock):
    tracker.start("doc-1")
    clock.advance(30)
    assert tracker.visible_elapsed_seconds("doc-1") is None


def test_timeout_flag(tracker, clock):
    tracker.start("doc-1")
    tracker.set_stage("doc-1", ProcessingStage.processing)
    clock.advance(TIMEOUT_THRESHOLD_SECONDS - 1)
    assert tracker.get("doc-1").is_timed_out is False
    clock.advance(1)
    assert tracker.get("doc-1").is_timed_out is True


def test_resume_adopts_remote_document(tracker):
    state = tracker.resume("doc-2", ProcessingStage.processing, file_size=10)
    assert state.stage == ProcessingStage.processing
    assert state.upload_progress == 100
    assert "doc-2" in tracker


def test_reset_forgets_document(tracker):
    tracker.start("doc-1")
    tracker.reset("doc-1")
    assert tracker.get("doc-1") is None
    assert len(tracker) == 0


def test_state_round_trips_through_dict(tracker):
    state = tracker.start("doc-1", file_size=5)
    restored = ProgressState.from_dict(state.to_dict())
    assert restored == state


def test_at_refreshes_only_in_flight_states(clock):
    state = ProgressState(stage=ProcessingStage.processing, started_at=clock.now)
    assert state.at(clock.now + 181).is_timed_out is True

    done = ProgressState(stage=ProcessingStage.complete, started_at=clock.now)
    assert done.at(clock.now + 500) is done
