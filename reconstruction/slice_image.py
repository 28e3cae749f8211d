"""
Slice Image

A reconstructed 2D view (MPR slice or intensity projection) together with
the in-plane geometry needed to place it back in physical space.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import numpy as np


@dataclass(frozen=True, eq=False)
class SliceImage:
    """
    Immutable 2D slice.

    Attributes:
        data: 2D array (height, width); row-major, so the flat buffer
            varies fastest along the column index
        pixel_spacing: (row spacing, column spacing) in mm
        origin: Physical position (x, y, z) of pixel (row 0, column 0)
        row_direction: Unit vector along a row (increasing column index)
        column_direction: Unit vector along a column (increasing row index)
    """
    data: np.ndarray
    pixel_spacing: Tuple[float, float] = (1.0, 1.0)
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    row_direction: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    column_direction: Tuple[float, float, float] = (0.0, 1.0, 0.0)

    def __post_init__(self):
        data = np.array(self.data, dtype=np.float64, copy=True)
        if data.ndim != 2 or min(data.shape) <= 0:
            raise ValueError(f"Slice data must be a non-empty 2D array, got shape {data.shape}")
        data.flags.writeable = False
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "pixel_spacing", tuple(float(s) for s in self.pixel_spacing))
        object.__setattr__(self, "origin", tuple(float(v) for v in self.origin))
        object.__setattr__(self, "row_direction", tuple(float(v) for v in self.row_direction))
        object.__setattr__(self, "column_direction", tuple(float(v) for v in self.column_direction))

    @classmethod
    def from_pixels(cls, pixels: Sequence[float], width: int, height: int, **geometry) -> "SliceImage":
        """Build a slice from a flat row-major buffer of width * height values."""
        buffer = np.asarray(pixels, dtype=np.float64).ravel()
        if buffer.size != width * height:
            raise ValueError(f"Pixel buffer has {buffer.size} values, expected {width}x{height}")
        return cls(data=buffer.reshape(height, width), **geometry)

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        """Flat read-only pixel buffer."""
        return self.data.ravel()

    def apply_window(
        self,
        window_center: Optional[float] = None,
        window_width: Optional[float] = None
    ) -> np.ndarray:
        """
        Apply windowing to convert pixel values to display range [0, 255].

        Without a window the image is auto-windowed between its minimum and
        maximum; a flat image maps to 0.

        Args:
            window_center: Center of the window
            window_width: Width of the window (must be positive)

        Returns:
            uint8 array (height, width) suitable for display
        """
        if window_center is not None and window_width is not None:
            if window_width <= 0:
                raise ValueError("window_width must be positive")
            lower = window_center - window_width / 2
            upper = window_center + window_width / 2
            windowed = np.clip(self.data, lower, upper)
            normalized = (windowed - lower) / (upper - lower)
        else:
            lower = self.data.min()
            value_range = self.data.max() - lower
            if value_range > 0:
                normalized = (self.data - lower) / value_range
            else:
                normalized = np.zeros_like(self.data)

        return (normalized * 255).astype(np.uint8)
