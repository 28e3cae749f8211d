"""
DICOM 3D Reconstruction Configuration

Contains constants and default settings for reformation, projection,
surface extraction and export.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


# Window presets as (center, width) in HU
# Reference: https://radiopaedia.org/articles/windowing-ct
WINDOW_PRESETS: Dict[str, Tuple[float, float]] = {
    "bone": (500.0, 2000.0),
    "soft_tissue": (40.0, 400.0),
    "lung": (-600.0, 1500.0),
    "brain": (40.0, 80.0),
}


@dataclass
class MPRConfig:
    """Configuration for Multi-Planar Reformation."""
    interpolation: str = "linear"  # nearest, linear or cubic
    max_workers: Optional[int] = None  # None or 1 = sequential


@dataclass
class ProjectionConfig:
    """Configuration for intensity projections."""
    direction: str = "axial"  # axial, sagittal or coronal
    slab_thickness_mm: Optional[float] = None  # Accepted, full extent is always reduced


@dataclass
class SurfaceConfig:
    """Configuration for Marching Cubes surface extraction."""
    threshold: float = 200.0  # Isosurface value (HU for CT)
    progress_interval: int = 10  # Log every N z-layers


@dataclass
class MeshExportConfig:
    """Configuration for mesh export."""
    stl_header: bytes = b""  # Zero-padded to 80 bytes
    obj_precision: int = 6  # Decimal places for OBJ vertex coordinates


@dataclass
class DICOMConfig:
    """Configuration for DICOM export of reformatted series."""
    patient_name: str = "Anonymous^Patient"
    patient_id: str = "RECON001"
    study_description: str = "3D Reconstruction"
    series_description: str = "MPR Series"
    manufacturer: str = "DICOM 3D"
    institution_name: str = "Research Institution"
    rescale_intercept: float = -1024.0  # Standard CT offset


# Default configurations
DEFAULT_MPR = MPRConfig()
DEFAULT_PROJECTION = ProjectionConfig()
DEFAULT_SURFACE = SurfaceConfig()
DEFAULT_MESH_EXPORT = MeshExportConfig()
DEFAULT_DICOM = DICOMConfig()
