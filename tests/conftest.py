"""Shared synthetic volumes for the reconstruction tests."""

import numpy as np
import pytest

from reconstruction.volume import VolumeData
from reconstruction.mesh import Mesh3D


@pytest.fixture
def ramp_volume():
    """6 x 5 x 4 (w x h x d) volume with value x + 10*y + 100*z."""
    z, y, x = np.mgrid[0:4, 0:5, 0:6]
    return VolumeData(data=x + 10 * y + 100 * z, spacing=(0.5, 1.0, 2.0))


@pytest.fixture
def sphere_volume():
    """32^3 distance field: value = distance from the centre, in mm."""
    center = 15.5
    z, y, x = np.mgrid[0:32, 0:32, 0:32].astype(np.float64)
    distance = np.sqrt((x - center) ** 2 + (y - center) ** 2 + (z - center) ** 2)
    return VolumeData(data=distance, spacing=(1.0, 1.0, 1.0))


@pytest.fixture
def block_volume():
    """4 x 4 x 4 zeros with a 2 x 2 x 2 block of 100 at indices 1-2."""
    data = np.zeros((4, 4, 4))
    data[1:3, 1:3, 1:3] = 100.0
    return VolumeData(data=data, spacing=(1.0, 1.0, 1.0))


@pytest.fixture
def triangle_mesh():
    """Two triangles sharing an edge, in the z = 0 plane."""
    vertices = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [1.0, 1.0, 0.0],
    ])
    triangles = np.array([[0, 1, 2], [1, 3, 2]])
    return Mesh3D(vertices, triangles)


@pytest.fixture
def ct_volume():
    """Small CT-like volume: air (-1000) with a bone cube (1000) inside."""
    data = np.full((8, 7, 6), -1000.0)
    data[2:6, 2:5, 2:4] = 1000.0
    return VolumeData(
        data=data,
        spacing=(0.8, 0.6, 1.5),
        window_center=40.0,
        window_width=400.0,
    )


@pytest.fixture
def dicom_series(tmp_path, ct_volume):
    """ct_volume written as an axial DICOM series; returns the directory."""
    pytest.importorskip("pydicom")
    from exporters.dicom import DICOMExporter
    from reconstruction.mpr import MPRGenerator

    slices = MPRGenerator(ct_volume).generate("axial")
    series_dir = tmp_path / "series"
    DICOMExporter().export_series(
        slices, series_dir, prefix="CT",
        window_center=ct_volume.window_center,
        window_width=ct_volume.window_width,
    )
    return series_dir
