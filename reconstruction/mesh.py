"""
Triangle Mesh

Indexed triangle mesh produced by surface extraction and consumed by the
mesh exporters.
"""

from dataclasses import dataclass
import numpy as np

try:
    import trimesh
    HAS_TRIMESH = True
except ImportError:
    HAS_TRIMESH = False


@dataclass(frozen=True, eq=False)
class Mesh3D:
    """
    Indexed triangle mesh in physical (mm) coordinates.

    Attributes:
        vertices: (N, 3) float64 array of vertex positions
        triangles: (M, 3) int64 array of vertex indices, each in [0, N)
    """
    vertices: np.ndarray
    triangles: np.ndarray

    def __post_init__(self):
        vertices = np.array(self.vertices, dtype=np.float64, copy=True).reshape(-1, 3)
        triangles = np.array(self.triangles, dtype=np.int64, copy=True).reshape(-1, 3)

        if triangles.size and (triangles.min() < 0 or triangles.max() >= len(vertices)):
            raise ValueError(
                f"Triangle indices must lie in [0, {len(vertices)}), "
                f"got range [{triangles.min()}, {triangles.max()}]"
            )

        vertices.flags.writeable = False
        triangles.flags.writeable = False
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "triangles", triangles)

    @classmethod
    def empty(cls) -> "Mesh3D":
        return cls(np.empty((0, 3)), np.empty((0, 3), dtype=np.int64))

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return self.triangle_count == 0

    @property
    def bounds(self) -> np.ndarray:
        """(2, 3) array [min, max]; zeros for a mesh without vertices."""
        if self.vertex_count == 0:
            return np.zeros((2, 3))
        return np.stack([self.vertices.min(axis=0), self.vertices.max(axis=0)])

    def face_normals(self) -> np.ndarray:
        """
        Unit normal per triangle, (v1 - v0) x (v2 - v0).

        Degenerate triangles get a zero normal.
        """
        corners = self.vertices[self.triangles]  # (M, 3, 3)
        normals = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        return np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)

    def to_trimesh(self) -> "trimesh.Trimesh":
        """Convert to a trimesh.Trimesh without merging or reordering vertices."""
        if not HAS_TRIMESH:
            raise ImportError(
                "trimesh is required for mesh conversion. "
                "Install it with: pip install trimesh"
            )
        return trimesh.Trimesh(
            vertices=np.array(self.vertices),
            faces=np.array(self.triangles),
            process=False,
        )

    def __str__(self) -> str:
        return f"Mesh3D({self.vertex_count:,} vertices, {self.triangle_count:,} triangles)"
