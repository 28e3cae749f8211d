"""
Error Types

Exception hierarchy shared by loaders, reconstruction and exporters.
Out-of-volume sampling is never an error; see VolumeData.voxel_at.
"""


class ReconstructionError(Exception):
    """Base class for all reconstruction toolkit errors."""
    pass


class UnsupportedInterpolationError(ReconstructionError, ValueError):
    """Raised for an interpolation method the sampler does not implement."""

    def __init__(self, method):
        self.method = method
        super().__init__(f"Unsupported interpolation method: {method}")


class VolumeError(ReconstructionError):
    """Raised by volume loaders when a slice stack cannot form a volume."""

    @classmethod
    def no_slices(cls) -> "VolumeError":
        return cls("No DICOM slices found")

    @classmethod
    def missing_metadata(cls, name: str) -> "VolumeError":
        return cls(f"Missing required metadata: {name}")

    @classmethod
    def invalid_pixel_data(cls) -> "VolumeError":
        return cls("Invalid or missing pixel data")

    @classmethod
    def invalid_dimensions(cls) -> "VolumeError":
        return cls("Invalid volume dimensions")


class MeshWriteError(ReconstructionError, OSError):
    """Raised when an output file (mesh, image or volume) cannot be written."""
    pass


class OperationCancelled(ReconstructionError):
    """Raised when a long-running pass observes a cancelled token."""
    pass
