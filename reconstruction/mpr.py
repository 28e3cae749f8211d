"""
Multi-Planar Reformation

Generates ordered series of 2D slices from a VolumeData along the three
orthogonal plane families, or a single slice through an arbitrary
(oblique) plane.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
import concurrent.futures
import logging
import threading
import numpy as np

from core.cancellation import CancellationToken
from .volume import VolumeData, InterpolationMethod
from .slice_image import SliceImage


class PlaneType(Enum):
    """Plane families supported by the MPR generator."""
    AXIAL = "axial"
    SAGITTAL = "sagittal"
    CORONAL = "coronal"
    OBLIQUE = "oblique"


@dataclass(frozen=True)
class Plane:
    """
    Plane request.

    Orthogonal kinds carry no data; an oblique plane carries a normal and a
    point on the plane, both in physical (mm) coordinates.
    """
    kind: PlaneType
    normal: Optional[Tuple[float, float, float]] = None
    point: Optional[Tuple[float, float, float]] = None

    def __post_init__(self):
        if self.kind is PlaneType.OBLIQUE:
            if self.normal is None or self.point is None:
                raise ValueError("Oblique plane requires a normal and a point")
            object.__setattr__(self, "normal", tuple(float(v) for v in self.normal))
            object.__setattr__(self, "point", tuple(float(v) for v in self.point))
            plane_basis(self.normal)  # rejects a zero or non-finite normal
        elif self.normal is not None or self.point is not None:
            raise ValueError(f"{self.kind.value} plane takes no normal or point")

    @classmethod
    def axial(cls) -> "Plane":
        return cls(PlaneType.AXIAL)

    @classmethod
    def sagittal(cls) -> "Plane":
        return cls(PlaneType.SAGITTAL)

    @classmethod
    def coronal(cls) -> "Plane":
        return cls(PlaneType.CORONAL)

    @classmethod
    def oblique(cls, normal: Sequence[float], point: Sequence[float]) -> "Plane":
        return cls(PlaneType.OBLIQUE, tuple(normal), tuple(point))


def plane_basis(normal: Sequence[float]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Build an orthonormal frame (n, u, v) for a plane normal.

    The seed vector is world X unless |n.x| > 0.9, then world Y. It is
    projected onto the plane to give u; v = n x u.

    Raises:
        ValueError: If the normal has zero length
    """
    n = np.asarray(normal, dtype=np.float64)
    length = np.linalg.norm(n)
    if length == 0 or not np.isfinite(length):
        raise ValueError(f"Plane normal must be a non-zero finite vector, got {tuple(normal)}")
    n = n / length

    seed = np.array([0.0, 1.0, 0.0]) if abs(n[0]) > 0.9 else np.array([1.0, 0.0, 0.0])
    u = seed - np.dot(seed, n) * n
    u = u / np.linalg.norm(u)
    v = np.cross(n, u)
    return n, u, v


class MPRGenerator:
    """
    Generates Multi-Planar Reformation (MPR) images from a 3D volume.

    Orthogonal families never leave the volume. Oblique samples that fall
    outside the volume are recorded as 0 rather than raising.

    Orientation of the orthogonal families:
        axial (per z):    rows = y, columns = x  (width x height)
        sagittal (per x): rows = z, columns = y  (height x depth)
        coronal (per y):  rows = z, columns = x  (width x depth)
    """

    def __init__(
        self,
        volume: VolumeData,
        interpolation: InterpolationMethod | str = InterpolationMethod.LINEAR,
        max_workers: Optional[int] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize the generator.

        Args:
            volume: Source volume (shared read-only)
            interpolation: Sampling method for oblique slices
            max_workers: Worker threads for orthogonal families (None or 1 = sequential)
            progress_callback: Optional callback(progress: 0.0-1.0) per family
            cancel_token: Optional token checked at each slice boundary

        Raises:
            UnsupportedInterpolationError: For an unknown interpolation name
        """
        self.volume = volume
        self.interpolation = InterpolationMethod.parse(interpolation)
        self.max_workers = max_workers
        self.progress_callback = progress_callback
        self.cancel_token = cancel_token

    def generate(self, plane: Plane | PlaneType | str) -> List[SliceImage]:
        """
        Generate MPR slices for a plane request.

        Args:
            plane: Plane request, or the name/kind of an orthogonal family

        Returns:
            Slices ordered by index along the family axis; exactly one
            slice for an oblique plane
        """
        if not isinstance(plane, Plane):
            plane = Plane(PlaneType(plane) if isinstance(plane, str) else plane)

        if plane.kind is PlaneType.AXIAL:
            slices = self._generate_family(self.volume.depth, self.axial_slice)
        elif plane.kind is PlaneType.SAGITTAL:
            slices = self._generate_family(self.volume.width, self.sagittal_slice)
        elif plane.kind is PlaneType.CORONAL:
            slices = self._generate_family(self.volume.height, self.coronal_slice)
        else:
            self._check_cancelled()
            slices = [self.oblique_slice(plane.normal, plane.point)]
            self._report(1.0)

        logging.info(f"Generated {len(slices)} {plane.kind.value} slices")
        return slices

    def generate_many(self, planes: Sequence[Plane | PlaneType | str]) -> List[List[SliceImage]]:
        """Generate several plane families, in request order."""
        return [self.generate(plane) for plane in planes]

    def axial_slice(self, z: int) -> SliceImage:
        """Axial slice at index z: pixel (row=y, col=x) = voxel (x, y, z)."""
        sx, sy, sz = self.volume.spacing
        return SliceImage(
            data=self.volume.get_slice(z, axis=0),
            pixel_spacing=(sy, sx),
            origin=(0.0, 0.0, z * sz),
            row_direction=(1.0, 0.0, 0.0),
            column_direction=(0.0, 1.0, 0.0),
        )

    def sagittal_slice(self, x: int) -> SliceImage:
        """Sagittal slice at index x: pixel (row=z, col=y) = voxel (x, y, z)."""
        sx, sy, sz = self.volume.spacing
        return SliceImage(
            data=self.volume.get_slice(x, axis=2),
            pixel_spacing=(sz, sy),
            origin=(x * sx, 0.0, 0.0),
            row_direction=(0.0, 1.0, 0.0),
            column_direction=(0.0, 0.0, 1.0),
        )

    def coronal_slice(self, y: int) -> SliceImage:
        """Coronal slice at index y: pixel (row=z, col=x) = voxel (x, y, z)."""
        sx, sy, sz = self.volume.spacing
        return SliceImage(
            data=self.volume.get_slice(y, axis=1),
            pixel_spacing=(sz, sx),
            origin=(0.0, y * sy, 0.0),
            row_direction=(1.0, 0.0, 0.0),
            column_direction=(0.0, 0.0, 1.0),
        )

    def oblique_slice(self, normal: Sequence[float], point: Sequence[float]) -> SliceImage:
        """
        Sample one slice through an arbitrary plane.

        The output window has the volume's width x height pixels, centred at
        `point`, with pixel spacing equal to the volume's x / y spacing along
        the in-plane axes u / v.

        Args:
            normal: Plane normal (normalized internally)
            point: Point on the plane in mm; becomes the window centre

        Returns:
            SliceImage with missing samples set to 0
        """
        _, u, v = plane_basis(normal)
        p = np.asarray(point, dtype=np.float64)
        width, height = self.volume.width, self.volume.height
        sx, sy, _ = self.volume.spacing

        offsets_u = (np.arange(width) - width // 2) * sx
        offsets_v = (np.arange(height) - height // 2) * sy
        points = (
            p[None, None, :]
            + offsets_u[None, :, None] * u[None, None, :]
            + offsets_v[:, None, None] * v[None, None, :]
        )
        voxel = self.volume.physical_to_voxel(points)
        values = self.volume.sample(voxel[..., 0], voxel[..., 1], voxel[..., 2], self.interpolation)
        pixels = np.where(np.isnan(values), 0.0, values)

        origin = p - (width // 2) * sx * u - (height // 2) * sy * v
        return SliceImage(
            data=pixels,
            pixel_spacing=(sy, sx),
            origin=tuple(origin),
            row_direction=tuple(u),
            column_direction=tuple(v),
        )

    def _generate_family(self, count: int, build: Callable[[int], SliceImage]) -> List[SliceImage]:
        """Build `count` slices, optionally on worker threads, ordered by index."""
        slices: List[Optional[SliceImage]] = [None] * count

        if self.max_workers is None or self.max_workers <= 1 or count <= 1:
            for i in range(count):
                self._check_cancelled()
                slices[i] = build(i)
                self._report((i + 1) / count)
            return slices

        progress_lock = threading.Lock()
        completed = 0

        def build_slice(i):
            self._check_cancelled()
            return i, build(i)

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(build_slice, i) for i in range(count)]
            try:
                for future in concurrent.futures.as_completed(futures):
                    i, result = future.result()
                    slices[i] = result
                    with progress_lock:
                        completed += 1
                        self._report(completed / count)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        return slices

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def _report(self, progress: float) -> None:
        if self.progress_callback is not None:
            self.progress_callback(progress)
