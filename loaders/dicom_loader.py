"""
DICOM Series Loader

Reads a multi-slice DICOM series into a VolumeData: slices are ordered
along the slice normal, stacked, and rescaled to real-world values.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence
import logging
import numpy as np

from core.base import BaseLoader
from core.errors import VolumeError
from reconstruction.volume import VolumeData

try:
    import pydicom
    from pydicom.errors import InvalidDicomError
    from pydicom.multival import MultiValue
    HAS_PYDICOM = True
except ImportError:
    HAS_PYDICOM = False


# Relative tolerance when checking that slice positions are evenly spaced
SPACING_TOLERANCE = 0.01


def _first_value(value) -> Optional[float]:
    """First entry of a possibly multi-valued numeric attribute."""
    if isinstance(value, (list, tuple, MultiValue)):
        value = value[0] if len(value) else None
    if value is None or value == "":
        return None
    return float(value)


class DICOMSeriesLoader(BaseLoader):
    """
    Loads a DICOM slice series as a volume.

    Slices are sorted by the projection of Image Position (Patient) onto
    the slice normal (row x column direction of Image Orientation
    (Patient)). The z spacing is the distance between the first two
    positions; a single slice falls back to Spacing Between Slices, then
    Slice Thickness, then 1 mm.
    """

    def __init__(self):
        if not HAS_PYDICOM:
            raise ImportError(
                "pydicom is required for DICOM loading. "
                "Install it with: pip install pydicom"
            )

    def can_load(self, source: str | Path) -> bool:
        source = Path(source)
        if source.is_dir():
            return True
        try:
            pydicom.dcmread(source, stop_before_pixels=True)
        except (InvalidDicomError, OSError):
            return False
        return True

    @staticmethod
    def collect_paths(source: str | Path | Sequence[str | Path]) -> List[Path]:
        """Expand a directory, a single path or a list of paths into files."""
        if isinstance(source, (str, Path)):
            source = [source]

        paths: List[Path] = []
        for entry in source:
            entry = Path(entry)
            if entry.is_dir():
                paths.extend(sorted(p for p in entry.iterdir() if p.is_file() and not p.name.startswith(".")))
            elif entry.exists():
                paths.append(entry)
            else:
                raise FileNotFoundError(f"File not found: {entry}")
        return paths

    def load(self, source: str | Path | Sequence[str | Path]) -> VolumeData:
        """
        Load a series.

        Args:
            source: Directory, single file, or list of files/directories

        Returns:
            VolumeData in real-world units (rescale slope/intercept applied)

        Raises:
            VolumeError: If no slices are found or required metadata is
                missing or inconsistent
        """
        paths = self.collect_paths(source)
        logging.info(f"Loading {len(paths)} DICOM files...")

        datasets = list(self._read_datasets(paths))
        if not datasets:
            raise VolumeError.no_slices()

        first = datasets[0]
        orientation = getattr(first, "ImageOrientationPatient", None)
        if orientation is None or len(orientation) != 6:
            raise VolumeError.missing_metadata("Image Orientation Patient")
        orientation = np.array([float(v) for v in orientation])
        slice_normal = np.cross(orientation[:3], orientation[3:])

        positions = []
        for ds in datasets:
            position = getattr(ds, "ImagePositionPatient", None)
            if position is None or len(position) != 3:
                raise VolumeError.missing_metadata("Image Position Patient")
            positions.append(np.array([float(v) for v in position]))

        order = np.argsort([np.dot(p, slice_normal) for p in positions], kind="stable")
        datasets = [datasets[i] for i in order]
        positions = [positions[i] for i in order]

        pixel_spacing = getattr(first, "PixelSpacing", None)
        if pixel_spacing is None or len(pixel_spacing) != 2:
            raise VolumeError.missing_metadata("Pixel Spacing")
        # PixelSpacing is (row spacing, column spacing) = (y, x)
        spacing_y, spacing_x = float(pixel_spacing[0]), float(pixel_spacing[1])
        spacing_z = self._slice_spacing(first, positions, slice_normal)

        rows, columns = int(first.Rows), int(first.Columns)
        slices = []
        for index, ds in enumerate(datasets):
            if index % 10 == 0 or index == len(datasets) - 1:
                logging.debug(f"Loading slice {index + 1}/{len(datasets)}...")
            slices.append(self._read_pixels(ds, rows, columns))

        window_center = _first_value(getattr(first, "WindowCenter", None))
        window_width = _first_value(getattr(first, "WindowWidth", None))

        try:
            volume = VolumeData(
                data=np.stack(slices, axis=0),
                spacing=(spacing_x, spacing_y, spacing_z),
                window_center=window_center,
                window_width=window_width,
                rescale_slope=float(getattr(first, "RescaleSlope", 1.0)),
                rescale_intercept=float(getattr(first, "RescaleIntercept", 0.0)),
            )
        except ValueError as e:
            raise VolumeError.invalid_dimensions() from e

        logging.info(f"Volume dimensions: {volume.width}x{volume.height}x{volume.depth}")
        logging.info(f"Pixel spacing: {spacing_x}x{spacing_y}x{spacing_z} mm")
        return volume

    def _read_datasets(self, paths: Iterable[Path]):
        for path in paths:
            try:
                yield pydicom.dcmread(path)
            except InvalidDicomError:
                logging.warning(f"Skipping non-DICOM file: {path}")

    @staticmethod
    def _slice_spacing(first, positions: List[np.ndarray], slice_normal: np.ndarray) -> float:
        if len(positions) < 2:
            for name in ("SpacingBetweenSlices", "SliceThickness"):
                value = _first_value(getattr(first, name, None))
                if value is not None and value > 0:
                    return value
            return 1.0

        spacing = float(np.linalg.norm(positions[1] - positions[0]))
        if spacing <= 0:
            raise VolumeError.invalid_dimensions()

        steps = np.diff([np.dot(p, slice_normal) for p in positions])
        if not np.allclose(np.abs(steps), spacing, rtol=SPACING_TOLERANCE):
            logging.warning(
                f"Non-uniform slice spacing ({steps.min():.3f} to {steps.max():.3f} mm); "
                f"using {spacing:.3f} mm"
            )
        return spacing

    @staticmethod
    def _read_pixels(ds, rows: int, columns: int) -> np.ndarray:
        """Pixel array of one slice in real-world units."""
        if "PixelData" not in ds:
            raise VolumeError.invalid_pixel_data()
        try:
            pixels = ds.pixel_array
        except (AttributeError, ValueError, NotImplementedError, RuntimeError) as e:
            raise VolumeError.invalid_pixel_data() from e

        if pixels.shape != (rows, columns):
            raise VolumeError.invalid_dimensions()

        slope = float(getattr(ds, "RescaleSlope", 1.0))
        intercept = float(getattr(ds, "RescaleIntercept", 0.0))
        return pixels.astype(np.float64) * slope + intercept
