"""
Exporters Package

Contains exporters for meshes, slice images and volumes.
"""

from .dicom import DICOMExporter
from .image import PNGExporter
from .mesh import STLExporter, OBJExporter, get_mesh_exporter, read_stl
from .volume import NIfTIExporter, MetaImageExporter, get_volume_exporter

__all__ = [
    'DICOMExporter',
    'PNGExporter',
    'STLExporter',
    'OBJExporter',
    'get_mesh_exporter',
    'read_stl',
    'NIfTIExporter',
    'MetaImageExporter',
    'get_volume_exporter',
]
