"""
DICOM Exporter

Exports reformatted slice series (MPR output or projections) as derived
CT DICOM series, with the in-plane geometry of each SliceImage written to
Image Position / Orientation (Patient).
"""

from pathlib import Path
from datetime import datetime
from typing import Callable, List, Optional, Sequence
import logging
import numpy as np

from config import DEFAULT_DICOM, DICOMConfig
from core.base import BaseExporter
from reconstruction.slice_image import SliceImage
from .utils import atomic_path

try:
    from pydicom.dataset import FileDataset, FileMetaDataset
    from pydicom.uid import (
        generate_uid,
        ExplicitVRLittleEndian,
        CTImageStorage,
    )
    HAS_PYDICOM = True
except ImportError:
    HAS_PYDICOM = False


def _ds(value: float) -> str:
    """Decimal String value (at most 16 characters)."""
    return format(float(value), ".8g")


class DICOMExporter(BaseExporter):
    """
    Exports slice series as DICOM files.

    Creates one file per slice sharing study, series and frame of reference
    UIDs. Pixel values are stored as unsigned 16-bit with the configured
    rescale intercept, so HU values round-trip through RescaleSlope /
    RescaleIntercept.
    """

    extension = ".dcm"

    def __init__(self, config: DICOMConfig = DEFAULT_DICOM):
        """
        Initialize DICOM exporter with metadata.

        Args:
            config: Patient, study and series metadata
        """
        if not HAS_PYDICOM:
            raise ImportError(
                "pydicom is required for DICOM export. "
                "Install it with: pip install pydicom"
            )

        self.config = config
        self.rescale_slope = 1.0
        self.rescale_intercept = float(config.rescale_intercept)
        self.reset_uids()

    def export(self, image: SliceImage, output_path: str | Path) -> Path:
        """Write a single slice as a one-image series."""
        output_path = self.default_path(output_path)
        self._write_slice(image, 0, 1, None, None, None, output_path)
        return output_path

    def export_series(
        self,
        images: Sequence[SliceImage],
        output_dir: str | Path,
        prefix: str = "MPR",
        window_center: Optional[float] = None,
        window_width: Optional[float] = None,
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> List[Path]:
        """
        Export a slice series.

        Args:
            images: Slices in index order
            output_dir: Directory to save DICOM files
            prefix: File name prefix; files are <prefix>_<index:04d>.dcm
            window_center: Default window center written to the header
            window_width: Default window width written to the header
            progress_callback: Optional callback(progress: 0.0-1.0)

        Returns:
            List of paths to created DICOM files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        num_slices = len(images)
        slice_spacing = self._slice_spacing(images)
        created_files = []

        for i, image in enumerate(images):
            filename = output_dir / f"{prefix}_{i:04d}.dcm"
            self._write_slice(
                image, i, num_slices, slice_spacing, window_center, window_width, filename
            )
            created_files.append(filename)

            if progress_callback is not None:
                progress_callback((i + 1) / num_slices)

        logging.info(f"Wrote {num_slices} DICOM slices to {output_dir}")
        return created_files

    def to_stored_values(self, pixels: np.ndarray) -> np.ndarray:
        """Convert real values to stored uint16: (value - intercept) / slope."""
        stored = np.round((pixels - self.rescale_intercept) / self.rescale_slope)
        return np.clip(stored, 0, 65535).astype(np.uint16)

    @staticmethod
    def _slice_spacing(images: Sequence[SliceImage]) -> Optional[float]:
        if len(images) < 2:
            return None
        distance = np.linalg.norm(np.subtract(images[1].origin, images[0].origin))
        return float(distance) if distance > 0 else None

    def _write_slice(
        self,
        image: SliceImage,
        slice_index: int,
        num_slices: int,
        slice_spacing: Optional[float],
        window_center: Optional[float],
        window_width: Optional[float],
        filename: Path
    ) -> None:
        ds = self._create_dataset(
            image=image,
            slice_index=slice_index,
            num_slices=num_slices,
            slice_spacing=slice_spacing,
            window_center=window_center,
            window_width=window_width,
        )
        ds.PixelData = self.to_stored_values(image.data).tobytes()

        with atomic_path(filename) as tmp_path:
            ds.save_as(tmp_path, enforce_file_format=True)

    def _create_dataset(
        self,
        image: SliceImage,
        slice_index: int,
        num_slices: int,
        slice_spacing: Optional[float],
        window_center: Optional[float],
        window_width: Optional[float]
    ) -> "FileDataset":
        """Create a DICOM dataset for a single slice."""

        # Create file meta information
        file_meta = FileMetaDataset()
        file_meta.MediaStorageSOPClassUID = CTImageStorage
        file_meta.MediaStorageSOPInstanceUID = generate_uid()
        file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
        file_meta.ImplementationClassUID = generate_uid()
        file_meta.ImplementationVersionName = "DICOM3D_1.0"

        ds = FileDataset(
            filename_or_obj="",
            dataset={},
            file_meta=file_meta,
            preamble=b"\x00" * 128
        )

        # Patient Module
        ds.PatientName = self.config.patient_name
        ds.PatientID = self.config.patient_id
        ds.PatientBirthDate = ""
        ds.PatientSex = "O"

        # General Study Module
        ds.StudyInstanceUID = self.study_instance_uid
        ds.StudyDate = self.study_date
        ds.StudyTime = self.study_time
        ds.ReferringPhysicianName = ""
        ds.StudyID = "1"
        ds.AccessionNumber = ""
        ds.StudyDescription = self.config.study_description

        # General Series Module
        ds.SeriesInstanceUID = self.series_instance_uid
        ds.SeriesNumber = 1
        ds.Modality = "CT"
        ds.SeriesDate = self.study_date
        ds.SeriesTime = self.study_time
        ds.SeriesDescription = self.config.series_description

        # Frame of Reference Module
        ds.FrameOfReferenceUID = self.frame_of_reference_uid
        ds.PositionReferenceIndicator = ""

        # General Equipment Module
        ds.Manufacturer = self.config.manufacturer
        ds.InstitutionName = self.config.institution_name
        ds.SoftwareVersions = "1.0"

        # Image Pixel Module
        ds.ImageType = ["DERIVED", "SECONDARY", "MPR"]
        ds.SamplesPerPixel = 1
        ds.PhotometricInterpretation = "MONOCHROME2"
        ds.Rows = image.height
        ds.Columns = image.width
        ds.BitsAllocated = 16
        ds.BitsStored = 16
        ds.HighBit = 15
        ds.PixelRepresentation = 0  # Unsigned

        # Image Plane Module
        ds.PixelSpacing = [_ds(s) for s in image.pixel_spacing]
        ds.ImagePositionPatient = [_ds(v) for v in image.origin]
        ds.ImageOrientationPatient = [
            _ds(v) for v in (*image.row_direction, *image.column_direction)
        ]
        if slice_spacing is not None:
            ds.SliceThickness = _ds(slice_spacing)
            ds.SpacingBetweenSlices = _ds(slice_spacing)

        normal = np.cross(image.row_direction, image.column_direction)
        ds.SliceLocation = _ds(np.dot(normal, image.origin))
        ds.InstanceNumber = slice_index + 1

        # SOP Common
        ds.SOPClassUID = CTImageStorage
        ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID

        # Rescale for Hounsfield Units
        ds.RescaleSlope = str(self.rescale_slope)
        ds.RescaleIntercept = str(self.rescale_intercept)
        ds.RescaleType = "HU"

        if window_center is not None and window_width is not None:
            ds.WindowCenter = _ds(window_center)
            ds.WindowWidth = _ds(window_width)

        ds.ContentDate = self.study_date
        ds.ContentTime = self.study_time
        ds.InstanceCreationDate = self.study_date
        ds.InstanceCreationTime = self.study_time

        ds.ImageComments = f"Reformatted slice {slice_index + 1} of {num_slices}"

        return ds

    def reset_uids(self) -> None:
        """Generate new UIDs for a new series."""
        self.study_instance_uid = generate_uid()
        self.series_instance_uid = generate_uid()
        self.frame_of_reference_uid = generate_uid()

        now = datetime.now()
        self.study_date = now.strftime("%Y%m%d")
        self.study_time = now.strftime("%H%M%S.%f")
