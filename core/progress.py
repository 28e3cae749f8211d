"""
Progress reporting for the command-line workflows.

A command runs as a few weighted phases (load, reconstruct, export). Each
reconstruction pass reports its own 0.0 - 1.0 progress; the tracker rescales
that into the phase's share of the whole run and hands it to an emitter,
normally logging_progress().
"""

import logging
from typing import Callable, Optional, List, Tuple
from dataclasses import dataclass


@dataclass
class ProgressPhase:
    name: str
    weight: float


class TaskProgressTracker:
    """Overall progress of a multi-phase command."""

    def __init__(self, emit_fn: Callable[[float], None]):
        self._emit = emit_fn
        self._phases: List[ProgressPhase] = []
        self._ranges: List[Tuple[float, float]] = []
        self._current_phase: int = -1

    def set_phases(self, phases: List[ProgressPhase]) -> None:
        self._phases = list(phases)
        total = sum(p.weight for p in self._phases)
        if total <= 0:
            total = 1.0

        self._ranges = []
        start = 0.0
        for phase in self._phases:
            end = start + phase.weight / total
            self._ranges.append((start, end))
            start = end
        if self._ranges:
            # absorb rounding and all-zero weights into the last phase
            self._ranges[-1] = (self._ranges[-1][0], 1.0)

    def get_range(self, phase_index: int) -> Tuple[float, float]:
        """(start, end) of a phase; the whole run for an unknown index."""
        if 0 <= phase_index < len(self._ranges):
            return self._ranges[phase_index]
        return (0.0, 1.0)

    def start_phase(self, phase_index: int) -> None:
        self._current_phase = phase_index
        logging.debug(f"Phase started: {self.current_phase_name}")
        self._emit(self.get_range(phase_index)[0])

    def end_phase(self) -> None:
        if self._current_phase >= 0:
            self._emit(self.get_range(self._current_phase)[1])

    def sub_progress(self, phase_index: Optional[int] = None) -> Callable[[float], None]:
        """Callback for a reconstruction pass, scaled into the current phase."""
        start, end = self.get_range(self._current_phase if phase_index is None else phase_index)

        def callback(p: float) -> None:
            self._emit(start + min(max(p, 0.0), 1.0) * (end - start))

        return callback

    @property
    def current_phase_name(self) -> str:
        if 0 <= self._current_phase < len(self._phases):
            return self._phases[self._current_phase].name
        return ""


def logging_progress(step: float = 0.1) -> Callable[[float], None]:
    """Emitter that logs "Progress: N%" once per `step` and at completion."""
    last = [-1.0]

    def emit(progress: float) -> None:
        if progress >= 1.0 or progress - last[0] >= step:
            last[0] = progress
            logging.info(f"Progress: {progress * 100:.0f}%")

    return emit


def get_mpr_phases() -> List[ProgressPhase]:
    return [
        ProgressPhase("Loading", 1),
        ProgressPhase("Reformation", 3),
        ProgressPhase("Export", 2),
    ]


def get_projection_phases() -> List[ProgressPhase]:
    return [
        ProgressPhase("Loading", 2),
        ProgressPhase("Projection", 1),
        ProgressPhase("Export", 1),
    ]


def get_surface_phases() -> List[ProgressPhase]:
    return [
        ProgressPhase("Loading", 1),
        ProgressPhase("Marching Cubes", 6),
        ProgressPhase("Export", 1),
    ]
