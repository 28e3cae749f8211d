"""
Reconstruction Package

Volume sampling, multi-planar reformation, intensity projection and
isosurface extraction.
"""

from .volume import VolumeData, InterpolationMethod
from .slice_image import SliceImage
from .mpr import MPRGenerator, Plane, PlaneType, plane_basis
from .projection import ProjectionRenderer, ProjectionType, ProjectionMode
from .mesh import Mesh3D
from .surface import SurfaceExtractor

__all__ = [
    'VolumeData',
    'InterpolationMethod',
    'SliceImage',
    'MPRGenerator',
    'Plane',
    'PlaneType',
    'plane_basis',
    'ProjectionRenderer',
    'ProjectionType',
    'ProjectionMode',
    'Mesh3D',
    'SurfaceExtractor',
]
