"""
Core Package

Contains abstract interfaces, the error hierarchy, cancellation and
progress tracking shared by the reconstruction toolkit.
"""

from .base import BaseLoader, BaseExporter
from .cancellation import CancellationToken
from .errors import (
    ReconstructionError,
    UnsupportedInterpolationError,
    VolumeError,
    MeshWriteError,
    OperationCancelled,
)
from .progress import TaskProgressTracker, ProgressPhase

__all__ = [
    'BaseLoader',
    'BaseExporter',
    'CancellationToken',
    'ReconstructionError',
    'UnsupportedInterpolationError',
    'VolumeError',
    'MeshWriteError',
    'OperationCancelled',
    'TaskProgressTracker',
    'ProgressPhase',
]
