"""
PNG Exporter

Writes SliceImage values as 8-bit grayscale PNG files after windowing.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Callable
import logging

from core.base import BaseExporter
from reconstruction.slice_image import SliceImage
from .utils import atomic_write

try:
    from PIL import Image
    HAS_PIL = True
except ImportError:
    HAS_PIL = False


class PNGExporter(BaseExporter):
    """
    Exports slices as 8-bit grayscale PNG images.

    Without an explicit window each image is auto-windowed between its own
    minimum and maximum.
    """

    extension = ".png"

    def __init__(
        self,
        window_center: Optional[float] = None,
        window_width: Optional[float] = None
    ):
        if not HAS_PIL:
            raise ImportError(
                "Pillow is required for PNG export. "
                "Install it with: pip install Pillow"
            )
        if window_width is not None and window_width <= 0:
            raise ValueError("window_width must be positive")
        self.window_center = window_center
        self.window_width = window_width

    def export(self, image: SliceImage, output_path: str | Path) -> Path:
        """
        Write one slice.

        Raises:
            MeshWriteError: If the file cannot be written
        """
        output_path = Path(output_path)
        pixels = image.apply_window(self.window_center, self.window_width)

        with atomic_write(output_path) as f:
            Image.fromarray(pixels).save(f, format="PNG")

        logging.debug(f"Wrote {image.width}x{image.height} PNG to {output_path}")
        return output_path

    def export_series(
        self,
        images: Sequence[SliceImage],
        output_dir: str | Path,
        prefix: str = "slice",
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> List[Path]:
        """
        Write a slice series as <prefix>_<index:04d>.png.

        Args:
            images: Slices in index order
            output_dir: Directory to create and write into
            prefix: File name prefix (typically the plane name)
            progress_callback: Optional callback(progress: 0.0-1.0)

        Returns:
            List of written paths
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        created_files = []
        for i, image in enumerate(images):
            created_files.append(self.export(image, output_dir / f"{prefix}_{i:04d}.png"))
            if progress_callback is not None:
                progress_callback((i + 1) / len(images))

        logging.info(f"Wrote {len(created_files)} PNG images to {output_dir}")
        return created_files
