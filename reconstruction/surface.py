"""
Isosurface Extraction

Marching Cubes over a VolumeData, producing an indexed Mesh3D in physical
coordinates.
"""

from typing import Callable, Dict, List, Optional, Tuple
import logging
import numpy as np

from core.cancellation import CancellationToken
from .volume import VolumeData
from .mesh import Mesh3D
from .mc_tables import CORNER_OFFSETS, EDGE_CORNERS, EDGE_TABLE, TRI_TABLE


# Axis (0=x, 1=y, 2=z) that each edge runs along
EDGE_AXIS = np.argmax(
    CORNER_OFFSETS[EDGE_CORNERS[:, 1]] - CORNER_OFFSETS[EDGE_CORNERS[:, 0]], axis=1
)


class SurfaceExtractor:
    """
    Extracts a triangle mesh approximating the isosurface value == threshold.

    A corner is inside when its value is strictly greater than the
    threshold. Vertices on edges shared by neighbouring cubes are created
    once and reused: every lattice edge is identified by the integer
    3 * linear_index(lower endpoint) + axis, which does not depend on which
    cube visits it first.

    Cubes are visited in z, y, x order, so output is deterministic.
    """

    def __init__(
        self,
        volume: VolumeData,
        progress_callback: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress_interval: int = 10
    ):
        """
        Initialize the extractor.

        Args:
            volume: Source volume
            progress_callback: Optional callback(progress: 0.0-1.0) per z-layer
            cancel_token: Optional token checked at every z-layer
            progress_interval: Log progress every N z-layers
        """
        self.volume = volume
        self.progress_callback = progress_callback
        self.cancel_token = cancel_token
        self.progress_interval = max(1, int(progress_interval))

    def cube_indices(self, threshold: float) -> np.ndarray:
        """
        Configuration index of every cube, shape (depth-1, height-1, width-1).

        Bit k is set when corner k of the cube is above the threshold.
        """
        depth, height, width = self.volume.shape
        above = self.volume.data > threshold
        indices = np.zeros((depth - 1, height - 1, width - 1), dtype=np.uint8)
        for k, (dx, dy, dz) in enumerate(CORNER_OFFSETS):
            corner = above[dz:dz + depth - 1, dy:dy + height - 1, dx:dx + width - 1]
            indices |= corner.astype(np.uint8) << np.uint8(k)
        return indices

    def extract_surface(self, threshold: float) -> Mesh3D:
        """
        Run Marching Cubes at the given isovalue.

        Args:
            threshold: Isovalue in volume units

        Returns:
            Mesh3D; empty when the threshold is outside the value range
            or the volume has fewer than two samples along an axis

        Raises:
            OperationCancelled: If the cancel token fires between layers
        """
        depth, height, width = self.volume.shape
        if min(depth, height, width) < 2:
            logging.warning(f"Volume {self.volume.dimensions} too thin for surface extraction")
            return Mesh3D.empty()

        indices = self.cube_indices(threshold)
        active = (indices != 0) & (indices != 255)
        zs, ys, xs = np.nonzero(active)
        layers = depth - 1
        layer_bounds = np.searchsorted(zs, np.arange(layers + 1))

        logging.info(
            f"Marching Cubes at threshold {threshold}: "
            f"{len(zs):,} of {indices.size:,} cubes intersect the surface"
        )

        data = self.volume.data
        vertex_ids: Dict[int, int] = {}
        vertices: List[Tuple[float, float, float]] = []
        triangles: List[Tuple[int, int, int]] = []

        for z in range(layers):
            self._check_cancelled()

            for n in range(layer_bounds[z], layer_bounds[z + 1]):
                x, y = int(xs[n]), int(ys[n])
                cube = int(indices[z, y, x])
                values = data[
                    z + CORNER_OFFSETS[:, 2], y + CORNER_OFFSETS[:, 1], x + CORNER_OFFSETS[:, 0]
                ]

                slots = [-1] * 12
                crossed = int(EDGE_TABLE[cube])
                for edge in range(12):
                    if crossed & (1 << edge):
                        slots[edge] = self._edge_vertex(
                            x, y, z, edge, values, threshold, vertex_ids, vertices
                        )

                row = TRI_TABLE[cube]
                for i in range(0, 15, 3):
                    if row[i] < 0:
                        break
                    triangles.append((slots[row[i]], slots[row[i + 1]], slots[row[i + 2]]))

            if (z + 1) % self.progress_interval == 0 or z + 1 == layers:
                logging.info(
                    f"Marching Cubes: layer {z + 1}/{layers}, "
                    f"{len(vertices):,} vertices, {len(triangles):,} triangles"
                )
            self._report((z + 1) / layers)

        if not triangles:
            return Mesh3D.empty()
        return Mesh3D(np.array(vertices), np.array(triangles, dtype=np.int64))

    def _edge_vertex(
        self,
        x: int,
        y: int,
        z: int,
        edge: int,
        values: np.ndarray,
        threshold: float,
        vertex_ids: Dict[int, int],
        vertices: List[Tuple[float, float, float]]
    ) -> int:
        """Index of the vertex on a cube edge, creating it on first use."""
        a, b = EDGE_CORNERS[edge]
        dx, dy, dz = CORNER_OFFSETS[a]
        axis = int(EDGE_AXIS[edge])
        lx, ly, lz = x + int(dx), y + int(dy), z + int(dz)

        width, height = self.volume.width, self.volume.height
        key = 3 * ((lz * height + ly) * width + lx) + axis
        index = vertex_ids.get(key)
        if index is not None:
            return index

        v0, v1 = float(values[a]), float(values[b])
        t = (threshold - v0) / (v1 - v0) if v1 != v0 else 0.5

        position = [float(lx), float(ly), float(lz)]
        position[axis] += t
        index = len(vertices)
        vertices.append(self.volume.physical_coordinates(*position))
        vertex_ids[key] = index
        return index

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def _report(self, progress: float) -> None:
        if self.progress_callback is not None:
            self.progress_callback(progress)
