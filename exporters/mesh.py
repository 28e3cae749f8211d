"""
Mesh Exporters

Writes Mesh3D surfaces as binary STL or ASCII Wavefront OBJ.
"""

from pathlib import Path
from typing import Tuple
import logging
import numpy as np

from core.base import BaseExporter
from reconstruction.mesh import Mesh3D
from .utils import atomic_write


STL_HEADER_SIZE = 80

# One binary STL facet record, little-endian, 50 bytes
STL_RECORD_DTYPE = np.dtype([
    ('normal', '<f4', (3,)),
    ('vertices', '<f4', (3, 3)),
    ('attribute', '<u2'),
])


class STLExporter(BaseExporter):
    """
    Binary STL writer.

    Layout: 80-byte header, uint32 triangle count, then one 50-byte record
    per triangle (unit normal, three vertices, zero attribute word). All
    values are little-endian float32, so coordinates lose precision.
    """

    extension = ".stl"

    def __init__(self, header: bytes = b""):
        if len(header) > STL_HEADER_SIZE:
            raise ValueError(f"STL header is limited to {STL_HEADER_SIZE} bytes")
        self.header = header.ljust(STL_HEADER_SIZE, b"\x00")

    def export(self, mesh: Mesh3D, output_path: str | Path) -> Path:
        """
        Write the mesh to output_path.

        Raises:
            MeshWriteError: If the file cannot be written
        """
        output_path = Path(output_path)
        records = np.zeros(mesh.triangle_count, dtype=STL_RECORD_DTYPE)
        records['normal'] = mesh.face_normals()
        records['vertices'] = mesh.vertices[mesh.triangles]

        with atomic_write(output_path) as f:
            f.write(self.header)
            f.write(np.uint32(mesh.triangle_count).astype('<u4').tobytes())
            f.write(records.tobytes())

        logging.info(f"Wrote STL with {mesh.triangle_count:,} triangles to {output_path}")
        return output_path


class OBJExporter(BaseExporter):
    """ASCII Wavefront OBJ writer with 1-based face indices."""

    extension = ".obj"

    def __init__(self, precision: int = 6):
        self.precision = precision

    def export(self, mesh: Mesh3D, output_path: str | Path) -> Path:
        """
        Write the mesh to output_path.

        Raises:
            MeshWriteError: If the file cannot be written
        """
        output_path = Path(output_path)
        fmt = f"v %.{self.precision}f %.{self.precision}f %.{self.precision}f"

        with atomic_write(output_path, "w", encoding="utf-8", newline="\n") as f:
            f.write("# DICOM 3D Mesh Export\n")
            f.write(f"# Vertices: {mesh.vertex_count}\n")
            f.write(f"# Triangles: {mesh.triangle_count}\n")
            f.write("\n")
            if mesh.vertex_count:
                np.savetxt(f, mesh.vertices, fmt=fmt)
            f.write("\n")
            if mesh.triangle_count:
                np.savetxt(f, mesh.triangles + 1, fmt="f %d %d %d")

        logging.info(
            f"Wrote OBJ with {mesh.vertex_count:,} vertices and "
            f"{mesh.triangle_count:,} triangles to {output_path}"
        )
        return output_path


def read_stl(path: str | Path) -> Tuple[bytes, np.ndarray]:
    """
    Read a binary STL written by STLExporter.

    Returns:
        (header, records) where records uses STL_RECORD_DTYPE
    """
    raw = Path(path).read_bytes()
    if len(raw) < STL_HEADER_SIZE + 4:
        raise ValueError(f"{path} is too short to be a binary STL file")
    header = raw[:STL_HEADER_SIZE]
    count = int(np.frombuffer(raw, dtype='<u4', count=1, offset=STL_HEADER_SIZE)[0])
    expected = STL_HEADER_SIZE + 4 + count * STL_RECORD_DTYPE.itemsize
    if len(raw) != expected:
        raise ValueError(f"{path} declares {count} triangles but has {len(raw)} bytes")
    records = np.frombuffer(raw, dtype=STL_RECORD_DTYPE, count=count, offset=STL_HEADER_SIZE + 4)
    return header, records


def get_mesh_exporter(fmt: str, **options) -> BaseExporter:
    """Exporter for a format name ('stl' or 'obj')."""
    fmt = fmt.lower().lstrip(".")
    if fmt == "stl":
        return STLExporter(**options)
    elif fmt == "obj":
        return OBJExporter(**options)
    raise ValueError(f"Unsupported mesh format: {fmt}")
