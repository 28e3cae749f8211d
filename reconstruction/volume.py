"""
Volume Data Structure

Defines the reconstructed scalar volume and its sampling operations
(exact lookup, nearest / trilinear / tricubic interpolation and the
voxel-to-physical mapping).
"""

from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Optional, Sequence, Tuple
import numpy as np
from scipy import ndimage

from core.errors import UnsupportedInterpolationError


class InterpolationMethod(Enum):
    """Sampling methods for non-integral voxel coordinates."""
    NEAREST = "nearest"
    LINEAR = "linear"
    CUBIC = "cubic"

    @classmethod
    def parse(cls, value: "InterpolationMethod | str") -> "InterpolationMethod":
        """
        Resolve an enum member or its name.

        Raises:
            UnsupportedInterpolationError: If the value names no known method
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedInterpolationError(value) from None


@dataclass(frozen=True, eq=False)
class VolumeData:
    """
    Reconstructed scan volume.

    The voxel array is stored as (depth, height, width), i.e. (Z, Y, X), in
    C order, so the flattened buffer varies fastest along x, then y, then z.
    The array is copied on construction and made read-only.

    Physical mapping is a pure per-axis scale (index * spacing): there is
    no origin offset or direction-cosine matrix.

    Attributes:
        data: 3D numpy array (Z, Y, X)
        spacing: (x, y, z) millimetres per voxel step
        window_center: Display window center carried from the source series
        window_width: Display window width carried from the source series
        rescale_slope: Rescale slope that was applied by the loader
        rescale_intercept: Rescale intercept that was applied by the loader
    """
    data: np.ndarray  # Shape: (depth, height, width), dtype: float64
    spacing: Tuple[float, float, float]  # mm per voxel (x, y, z)
    window_center: Optional[float] = None
    window_width: Optional[float] = None
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0

    def __post_init__(self):
        data = np.array(self.data, dtype=np.float64, copy=True)
        if data.ndim != 3:
            raise ValueError(f"Volume data must be 3D, got {data.ndim}D")
        if min(data.shape) <= 0:
            raise ValueError(f"Invalid volume dimensions: {data.shape}")

        spacing = tuple(float(s) for s in self.spacing)
        if len(spacing) != 3 or min(spacing) <= 0:
            raise ValueError(f"Spacing must be three positive values, got {self.spacing}")

        data.flags.writeable = False
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "spacing", spacing)

    @classmethod
    def from_array(cls, array: np.ndarray, spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)) -> "VolumeData":
        """Build a volume from a (Z, Y, X) array."""
        return cls(data=array, spacing=spacing)

    @classmethod
    def from_voxels(
        cls,
        voxels: Sequence[float],
        dimensions: Tuple[int, int, int],
        spacing: Tuple[float, float, float],
        **metadata
    ) -> "VolumeData":
        """
        Build a volume from a flat x-fastest voxel buffer.

        Args:
            voxels: Buffer of length width * height * depth
            dimensions: (width, height, depth)
            spacing: (x, y, z) spacing in mm
            **metadata: Optional window / rescale attributes

        Raises:
            ValueError: If the buffer length does not match the dimensions
        """
        width, height, depth = (int(d) for d in dimensions)
        buffer = np.asarray(voxels, dtype=np.float64).ravel()
        if buffer.size != width * height * depth:
            raise ValueError(
                f"Voxel buffer has {buffer.size} values, expected "
                f"{width}x{height}x{depth} = {width * height * depth}"
            )
        return cls(data=buffer.reshape(depth, height, width), spacing=spacing, **metadata)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape

    @property
    def width(self) -> int:
        return self.data.shape[2]

    @property
    def height(self) -> int:
        return self.data.shape[1]

    @property
    def depth(self) -> int:
        return self.data.shape[0]

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        """(width, height, depth)."""
        return (self.width, self.height, self.depth)

    @property
    def voxels(self) -> np.ndarray:
        """Flat read-only voxel buffer, x fastest."""
        return self.data.ravel()

    @property
    def physical_size(self) -> np.ndarray:
        """Physical extent (x, y, z) in mm."""
        return np.array(self.dimensions) * np.array(self.spacing)

    @property
    def value_range(self) -> Tuple[float, float]:
        return float(self.data.min()), float(self.data.max())

    def voxel_at(self, x: int, y: int, z: int) -> Optional[float]:
        """
        Exact lookup at integer coordinates.

        Returns:
            The stored value, or None if any coordinate is outside [0, dim)
        """
        if not (0 <= x < self.width and 0 <= y < self.height and 0 <= z < self.depth):
            return None
        return float(self.data[z, y, x])

    def interpolated_voxel_at(
        self,
        x: float,
        y: float,
        z: float,
        method: InterpolationMethod | str = InterpolationMethod.LINEAR
    ) -> Optional[float]:
        """
        Sample at real-valued voxel coordinates.

        Args:
            x, y, z: Voxel-space coordinates
            method: Interpolation method

        Returns:
            Interpolated value, or None if the point lies outside the lattice
        """
        value = float(self.sample(x, y, z, method))
        if np.isnan(value):
            return None
        return value

    def sample(
        self,
        x: np.ndarray | float,
        y: np.ndarray | float,
        z: np.ndarray | float,
        method: InterpolationMethod | str = InterpolationMethod.LINEAR
    ) -> np.ndarray:
        """
        Vectorized form of interpolated_voxel_at.

        Coordinates are broadcast against each other. A point is absent when
        any coordinate falls outside [0, dim); absent samples are NaN.

        Returns:
            Array of sampled values with the broadcast shape of x, y, z
        """
        method = InterpolationMethod.parse(method)
        x, y, z = np.broadcast_arrays(
            np.asarray(x, dtype=np.float64),
            np.asarray(y, dtype=np.float64),
            np.asarray(z, dtype=np.float64),
        )
        width, height, depth = self.dimensions
        inside = (
            (x >= 0) & (x < width) &
            (y >= 0) & (y < height) &
            (z >= 0) & (z < depth)
        )
        result = np.full(x.shape, np.nan)
        if not inside.any():
            return result

        xi, yi, zi = x[inside], y[inside], z[inside]
        if method is InterpolationMethod.NEAREST:
            result[inside] = self._sample_nearest(xi, yi, zi)
        elif method is InterpolationMethod.LINEAR:
            result[inside] = self._sample_trilinear(xi, yi, zi)
        else:
            result[inside] = self._sample_tricubic(xi, yi, zi)
        return result

    def _sample_nearest(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        # Round half away from zero; coordinates are non-negative here
        ix = np.floor(x + 0.5).astype(np.intp)
        iy = np.floor(y + 0.5).astype(np.intp)
        iz = np.floor(z + 0.5).astype(np.intp)

        values = np.full(x.shape, np.nan)
        valid = (ix < self.width) & (iy < self.height) & (iz < self.depth)
        values[valid] = self.data[iz[valid], iy[valid], ix[valid]]
        return values

    def _sample_trilinear(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        x0 = np.floor(x).astype(np.intp)
        y0 = np.floor(y).astype(np.intp)
        z0 = np.floor(z).astype(np.intp)
        x1 = np.minimum(x0 + 1, self.width - 1)
        y1 = np.minimum(y0 + 1, self.height - 1)
        z1 = np.minimum(z0 + 1, self.depth - 1)
        fx = x - x0
        fy = y - y0
        fz = z - z0

        d = self.data
        # Along x
        v00 = d[z0, y0, x0] * (1 - fx) + d[z0, y0, x1] * fx
        v01 = d[z1, y0, x0] * (1 - fx) + d[z1, y0, x1] * fx
        v10 = d[z0, y1, x0] * (1 - fx) + d[z0, y1, x1] * fx
        v11 = d[z1, y1, x0] * (1 - fx) + d[z1, y1, x1] * fx
        # Along y
        v0 = v00 * (1 - fy) + v10 * fy
        v1 = v01 * (1 - fy) + v11 * fy
        # Along z
        return v0 * (1 - fz) + v1 * fz

    def _sample_tricubic(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        coords = np.vstack([z, y, x])
        return ndimage.map_coordinates(
            self._spline_coefficients, coords, order=3, mode="mirror", prefilter=False
        )

    @cached_property
    def _spline_coefficients(self) -> np.ndarray:
        """Cubic B-spline coefficients, computed once per volume."""
        return ndimage.spline_filter(self.data, order=3, mode="mirror")

    def physical_coordinates(self, x: float, y: float, z: float) -> Tuple[float, float, float]:
        """Map voxel coordinates (integral or fractional) to millimetres."""
        sx, sy, sz = self.spacing
        return (x * sx, y * sy, z * sz)

    def voxel_to_physical(self, indices: np.ndarray) -> np.ndarray:
        """Convert an (..., 3) array of (x, y, z) voxel coordinates to mm."""
        return np.asarray(indices, dtype=np.float64) * np.array(self.spacing)

    def physical_to_voxel(self, points: np.ndarray) -> np.ndarray:
        """Convert an (..., 3) array of (x, y, z) mm positions to voxel coordinates."""
        return np.asarray(points, dtype=np.float64) / np.array(self.spacing)

    def get_slice(self, index: int, axis: int = 0) -> np.ndarray:
        """Get a 2D slice along specified axis (0=axial, 1=coronal, 2=sagittal)."""
        if axis == 0:
            return self.data[index, :, :]
        elif axis == 1:
            return self.data[:, index, :]
        else:
            return self.data[:, :, index]
