"""
Loaders Package

Contains data loading strategies for DICOM series and mesh files.
"""

from .dicom_loader import DICOMSeriesLoader
from .mesh_loader import (
    MeshLoader,
    MeshInfo,
    SUPPORTED_EXTENSIONS,
)

__all__ = [
    'DICOMSeriesLoader',
    'MeshLoader',
    'MeshInfo',
    'SUPPORTED_EXTENSIONS',
]
