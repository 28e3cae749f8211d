"""
Volume Exporters

Writes a VolumeData as a single-file NIfTI-1 image (nibabel) or as a
MetaImage .mhd/.raw pair (SimpleITK). Both preserve the voxel grid
dimensions and per-axis spacing.
"""

from pathlib import Path
import logging
import os
import tempfile
import numpy as np

from core.base import BaseExporter
from core.errors import MeshWriteError
from reconstruction.volume import VolumeData
from .utils import atomic_write

try:
    import nibabel as nib
    HAS_NIBABEL = True
except ImportError:
    HAS_NIBABEL = False

try:
    import SimpleITK as sitk
    HAS_SITK = True
except ImportError:
    HAS_SITK = False


NIFTI_DESCRIPTION = b"DICOM 3D Export"


class NIfTIExporter(BaseExporter):
    """
    NIfTI-1 single-file (.nii) writer.

    Voxels are stored as float32 in (x, y, z) order with millimetre units;
    the spacing lands in pixdim and in a diagonal sform affine.
    """

    extension = ".nii"

    def __init__(self):
        if not HAS_NIBABEL:
            raise ImportError(
                "nibabel is required for NIfTI export. "
                "Install it with: pip install nibabel"
            )

    @staticmethod
    def affine(volume: VolumeData) -> np.ndarray:
        """Voxel-to-mm affine (pure scaling, no origin)."""
        return np.diag([*volume.spacing, 1.0])

    def export(self, volume: VolumeData, output_path: str | Path) -> Path:
        """
        Write the volume.

        Raises:
            MeshWriteError: If the file cannot be written
        """
        output_path = self.default_path(output_path)
        affine = self.affine(volume)

        # nibabel indexes (i, j, k) = (x, y, z)
        data = np.ascontiguousarray(volume.data.transpose(2, 1, 0), dtype=np.float32)
        image = nib.Nifti1Image(data, affine)
        image.header.set_xyzt_units(xyz="mm")
        image.header.set_zooms(volume.spacing)
        image.header["descrip"] = NIFTI_DESCRIPTION
        image.set_sform(affine, code=1)
        image.set_qform(affine, code=1)

        with atomic_write(output_path) as f:
            f.write(image.to_bytes())

        logging.info(f"Wrote NIfTI volume {volume.dimensions} to {output_path}")
        return output_path


class MetaImageExporter(BaseExporter):
    """
    MetaImage writer: a text .mhd header plus an uncompressed .raw file
    of float64 (MET_DOUBLE) samples.
    """

    extension = ".mhd"

    def __init__(self):
        if not HAS_SITK:
            raise ImportError(
                "SimpleITK is required for MetaImage export. "
                "Install it with: pip install SimpleITK"
            )

    def export(self, volume: VolumeData, output_path: str | Path) -> Path:
        """
        Write <name>.mhd and <name>.raw.

        Both files are written to a temporary directory beside the target
        and moved into place together.

        Returns:
            Path of the .mhd header

        Raises:
            MeshWriteError: If either file cannot be written
        """
        output_path = self.default_path(output_path)
        raw_path = output_path.with_suffix(".raw")

        # GetImageFromArray reads numpy (Z, Y, X) as ITK (x, y, z)
        image = sitk.GetImageFromArray(np.ascontiguousarray(volume.data, dtype=np.float64))
        image.SetSpacing(volume.spacing)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(dir=output_path.parent) as tmp_dir:
                tmp_header = Path(tmp_dir) / output_path.name
                sitk.WriteImage(image, str(tmp_header), useCompression=False)
                os.replace(tmp_header.with_suffix(".raw"), raw_path)
                os.replace(tmp_header, output_path)
        except (OSError, RuntimeError) as e:
            raise MeshWriteError(f"Failed to write {output_path}: {e}") from e

        logging.info(f"Wrote MetaImage volume {volume.dimensions} to {output_path}")
        return output_path


VOLUME_EXPORTERS = {
    "nifti": NIfTIExporter,
    "metaimage": MetaImageExporter,
}


def get_volume_exporter(fmt: str) -> BaseExporter:
    """Exporter for a format name ('nifti' or 'metaimage')."""
    try:
        return VOLUME_EXPORTERS[fmt.strip().lower()]()
    except KeyError:
        raise ValueError(
            f"Unsupported volume format: {fmt}. "
            f"Supported formats: {', '.join(VOLUME_EXPORTERS)}"
        ) from None
