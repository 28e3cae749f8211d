import logging
import threading

import pytest

from core.cancellation import CancellationToken
from core.errors import OperationCancelled, ReconstructionError
from core.progress import (
    ProgressPhase,
    TaskProgressTracker,
    logging_progress,
    get_surface_phases,
)


class TestTaskProgressTracker:
    def test_phase_ranges_are_normalized(self):
        tracker = TaskProgressTracker(lambda p: None)
        tracker.set_phases([ProgressPhase("a", 1), ProgressPhase("b", 3)])
        assert tracker.get_range(0) == pytest.approx((0.0, 0.25))
        assert tracker.get_range(1) == pytest.approx((0.25, 1.0))
        assert tracker.get_range(5) == (0.0, 1.0)

    def test_sub_progress_maps_into_phase(self):
        emitted = []
        tracker = TaskProgressTracker(emitted.append)
        tracker.set_phases(get_surface_phases())

        tracker.start_phase(1)
        callback = tracker.sub_progress()
        callback(0.5)
        callback(2.0)
        tracker.end_phase()

        start, end = tracker.get_range(1)
        assert emitted == pytest.approx([start, (start + end) / 2, end, end])
        assert tracker.current_phase_name == "Marching Cubes"

    def test_last_phase_ends_at_one(self):
        tracker = TaskProgressTracker(lambda p: None)
        tracker.set_phases([ProgressPhase("a", 1), ProgressPhase("b", 1), ProgressPhase("c", 1)])
        assert tracker.get_range(2)[1] == 1.0
        assert tracker.get_range(1)[1] == tracker.get_range(2)[0]

    def test_zero_weights(self):
        tracker = TaskProgressTracker(lambda p: None)
        tracker.set_phases([ProgressPhase("a", 0)])
        assert tracker.get_range(0) == (0.0, 1.0)


def test_logging_progress_throttles(caplog):
    emit = logging_progress(step=0.25)
    with caplog.at_level(logging.INFO):
        for p in (0.0, 0.1, 0.2, 0.3, 0.6, 0.7, 1.0):
            emit(p)
    lines = [r.getMessage() for r in caplog.records]
    assert lines == ["Progress: 0%", "Progress: 30%", "Progress: 60%", "Progress: 100%"]


class TestCancellationToken:
    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel_from_another_thread(self):
        token = CancellationToken()
        worker = threading.Thread(target=token.cancel)
        worker.start()
        worker.join()
        assert token.cancelled
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()

    def test_cancelled_is_reconstruction_error(self):
        assert issubclass(OperationCancelled, ReconstructionError)
