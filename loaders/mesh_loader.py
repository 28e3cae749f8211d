"""
Generic Mesh Loader (STL, OBJ, PLY, OFF)

Reads surface meshes back into Mesh3D values, e.g. to inspect the output
of surface extraction. Supports multiple formats via trimesh backend.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np
import logging

from core.base import BaseLoader
from reconstruction.mesh import Mesh3D

try:
    import trimesh
    HAS_TRIMESH = True
except ImportError:
    HAS_TRIMESH = False


# Supported mesh file extensions
SUPPORTED_EXTENSIONS = {'.stl', '.obj', '.ply', '.off'}


@dataclass
class MeshInfo:
    """Information about a loaded mesh."""
    num_vertices: int
    num_faces: int
    bounds_min: np.ndarray  # (3,) array [x_min, y_min, z_min]
    bounds_max: np.ndarray  # (3,) array [x_max, y_max, z_max]
    dimensions: np.ndarray  # (3,) array [width, height, depth] in mm
    center: np.ndarray  # (3,) array [x, y, z] center point
    volume: Optional[float]  # Volume in mm³ (only for watertight meshes)
    is_watertight: bool
    file_format: str  # Original file format (e.g., 'stl', 'obj')

    def __str__(self) -> str:
        vol_str = f"  Volume: {self.volume:.2f} mm³\n" if self.volume else ""
        return (
            f"Mesh Info ({self.file_format.upper()}):\n"
            f"  Vertices: {self.num_vertices:,}\n"
            f"  Faces: {self.num_faces:,}\n"
            f"  Dimensions: {self.dimensions[0]:.2f} x {self.dimensions[1]:.2f} x {self.dimensions[2]:.2f} mm\n"
            f"{vol_str}"
            f"  Watertight: {self.is_watertight}"
        )


class MeshLoader(BaseLoader):
    """
    Loader for triangle mesh files using trimesh as the backend.

    Meshes are read without vertex merging, scaling or recentering, so a
    file written by the STL/OBJ exporters comes back with its coordinates
    unchanged (STL vertices are repeated per facet).

    Attributes:
        info: MeshInfo of the most recently loaded mesh
    """

    def __init__(self):
        if not HAS_TRIMESH:
            raise ImportError(
                "trimesh is required for mesh loading. "
                "Install it with: pip install trimesh"
            )
        self.info: Optional[MeshInfo] = None

    @staticmethod
    def is_supported(filepath: str | Path) -> bool:
        """Check if a file extension is supported."""
        return Path(filepath).suffix.lower() in SUPPORTED_EXTENSIONS

    def can_load(self, source: str | Path) -> bool:
        return self.is_supported(source)

    def _ensure_trimesh(self, mesh_or_scene) -> "trimesh.Trimesh":
        """
        Ensure we have a Trimesh object, extracting from Scene if necessary.

        Raises:
            ValueError: If no valid mesh can be extracted
        """
        if isinstance(mesh_or_scene, trimesh.Trimesh):
            return mesh_or_scene

        if isinstance(mesh_or_scene, trimesh.Scene):
            meshes = [g for g in mesh_or_scene.geometry.values()
                      if isinstance(g, trimesh.Trimesh)]

            if not meshes:
                raise ValueError("No valid meshes found in file (empty scene)")

            if len(meshes) == 1:
                return meshes[0]
            logging.info(f"Combining {len(meshes)} meshes into single mesh")
            return trimesh.util.concatenate(meshes)

        raise ValueError(f"Unexpected mesh type: {type(mesh_or_scene)}")

    def load(self, filepath: str | Path) -> Mesh3D:
        """
        Load a mesh file.

        Args:
            filepath: Path to the mesh file (STL, OBJ, PLY, OFF)

        Returns:
            Mesh3D with the file's vertices and triangles

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file format is not supported or invalid
        """
        mesh, _ = self.load_with_info(filepath)
        return mesh

    def load_with_info(self, filepath: str | Path) -> Tuple[Mesh3D, MeshInfo]:
        """Load a mesh file and compute its MeshInfo."""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"Mesh file not found: {filepath}")

        extension = filepath.suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            supported = ", ".join(sorted(SUPPORTED_EXTENSIONS))
            raise ValueError(
                f"Unsupported file format: {extension}. "
                f"Supported formats: {supported}"
            )

        logging.info(f"Loading mesh: {filepath.name} (format: {extension[1:].upper()})")
        try:
            loaded = trimesh.load(filepath, process=False)
        except Exception as e:
            raise ValueError(f"Failed to load mesh file: {e}") from e

        tm = self._ensure_trimesh(loaded)
        mesh = Mesh3D(np.asarray(tm.vertices), np.asarray(tm.faces))
        self.info = self._compute_info(tm, extension[1:])
        return mesh, self.info

    @staticmethod
    def _compute_info(tm: "trimesh.Trimesh", file_format: str) -> MeshInfo:
        """Compute mesh statistics."""
        if len(tm.vertices):
            bounds_min, bounds_max = tm.bounds
        else:
            bounds_min = bounds_max = np.zeros(3)
        is_watertight = bool(tm.is_watertight)

        return MeshInfo(
            num_vertices=len(tm.vertices),
            num_faces=len(tm.faces),
            bounds_min=bounds_min,
            bounds_max=bounds_max,
            dimensions=bounds_max - bounds_min,
            center=(bounds_min + bounds_max) / 2,
            volume=float(tm.volume) if is_watertight else None,
            is_watertight=is_watertight,
            file_format=file_format,
        )
