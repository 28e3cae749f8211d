"""
Intensity Projection Renderer

Reduces a volume along one axis into a single image: Maximum (MIP),
Minimum (MinIP) or Average intensity projection.
"""

from enum import Enum
from typing import Optional
import logging
import numpy as np

from .volume import VolumeData
from .slice_image import SliceImage


class ProjectionType(Enum):
    """Viewing direction; the volume is reduced along this axis."""
    AXIAL = "axial"  # over z
    SAGITTAL = "sagittal"  # over x
    CORONAL = "coronal"  # over y


class ProjectionMode(Enum):
    """Reduction operator."""
    MAXIMUM = "maximum"
    MINIMUM = "minimum"
    AVERAGE = "average"


_REDUCERS = {
    ProjectionMode.MAXIMUM: np.max,
    ProjectionMode.MINIMUM: np.min,
    ProjectionMode.AVERAGE: np.mean,
}

# numpy axis of the (Z, Y, X) array reduced for each direction
_REDUCTION_AXIS = {
    ProjectionType.AXIAL: 0,
    ProjectionType.CORONAL: 1,
    ProjectionType.SAGITTAL: 2,
}


class ProjectionRenderer:
    """
    Renders intensity projection images (MIP, MinIP, Average).

    Every voxel along the reduction axis is in range, so each output pixel
    gathers the full extent of that axis. Output images use the same
    orientation as the MPR slice family of the same direction.

    Slab thickness is accepted but not applied: the full axis extent is
    always reduced.
    """

    def __init__(self, volume: VolumeData):
        self.volume = volume

    def render(
        self,
        direction: ProjectionType | str,
        mode: ProjectionMode | str = ProjectionMode.MAXIMUM,
        slab_thickness: Optional[float] = None
    ) -> SliceImage:
        """
        Generate a projection image.

        Args:
            direction: Viewing direction
            mode: Reduction operator
            slab_thickness: Slab thickness in mm (ignored, full extent is used)

        Returns:
            SliceImage holding the reduced values
        """
        direction = ProjectionType(direction)
        mode = ProjectionMode(mode)

        if slab_thickness is not None and slab_thickness > 0:
            logging.warning(
                f"Slab thickness {slab_thickness} mm is not applied; "
                f"projecting over the full {direction.value} extent"
            )

        reduced = _REDUCERS[mode](self.volume.data, axis=_REDUCTION_AXIS[direction])
        logging.info(f"Rendered {mode.value} intensity projection ({direction.value})")
        return self._to_slice(reduced, direction)

    def maximum_intensity_projection(
        self,
        direction: ProjectionType | str,
        slab_thickness: Optional[float] = None
    ) -> SliceImage:
        """Generate Maximum Intensity Projection."""
        return self.render(direction, ProjectionMode.MAXIMUM, slab_thickness)

    def minimum_intensity_projection(
        self,
        direction: ProjectionType | str,
        slab_thickness: Optional[float] = None
    ) -> SliceImage:
        """Generate Minimum Intensity Projection."""
        return self.render(direction, ProjectionMode.MINIMUM, slab_thickness)

    def average_intensity_projection(self, direction: ProjectionType | str) -> SliceImage:
        """Generate Average Intensity Projection."""
        return self.render(direction, ProjectionMode.AVERAGE)

    def _to_slice(self, pixels: np.ndarray, direction: ProjectionType) -> SliceImage:
        sx, sy, sz = self.volume.spacing
        if direction is ProjectionType.AXIAL:
            return SliceImage(pixels, pixel_spacing=(sy, sx))
        elif direction is ProjectionType.SAGITTAL:
            return SliceImage(
                pixels,
                pixel_spacing=(sz, sy),
                row_direction=(0.0, 1.0, 0.0),
                column_direction=(0.0, 0.0, 1.0),
            )
        return SliceImage(
            pixels,
            pixel_spacing=(sz, sx),
            row_direction=(1.0, 0.0, 0.0),
            column_direction=(0.0, 0.0, 1.0),
        )
