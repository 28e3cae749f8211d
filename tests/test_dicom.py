import shutil
import warnings

import numpy as np
import pytest

pydicom = pytest.importorskip("pydicom")

from core.errors import VolumeError  # noqa: E402
from exporters.dicom import DICOMExporter  # noqa: E402
from loaders.dicom_loader import DICOMSeriesLoader, _first_value  # noqa: E402
from reconstruction.mpr import MPRGenerator  # noqa: E402


class TestExporter:
    def test_series_files(self, dicom_series, ct_volume):
        files = sorted(p.name for p in dicom_series.iterdir())
        assert files == [f"CT_{i:04d}.dcm" for i in range(ct_volume.depth)]

    def test_slice_geometry(self, dicom_series):
        ds = pydicom.dcmread(dicom_series / "CT_0002.dcm")
        assert ds.Modality == "CT"
        assert list(ds.ImageType) == ["DERIVED", "SECONDARY", "MPR"]
        assert (ds.Rows, ds.Columns) == (7, 6)
        assert [float(v) for v in ds.PixelSpacing] == [0.6, 0.8]
        assert [float(v) for v in ds.ImagePositionPatient] == [0.0, 0.0, 3.0]
        assert [float(v) for v in ds.ImageOrientationPatient] == [1, 0, 0, 0, 1, 0]
        assert float(ds.SliceThickness) == pytest.approx(1.5)
        assert float(ds.SliceLocation) == pytest.approx(3.0)
        assert ds.InstanceNumber == 3
        assert float(ds.WindowCenter) == 40.0
        assert float(ds.WindowWidth) == 400.0

    def test_series_shares_uids(self, dicom_series):
        datasets = [pydicom.dcmread(p) for p in sorted(dicom_series.iterdir())]
        assert len({ds.SeriesInstanceUID for ds in datasets}) == 1
        assert len({ds.FrameOfReferenceUID for ds in datasets}) == 1
        assert len({ds.SOPInstanceUID for ds in datasets}) == len(datasets)

    def test_sagittal_orientation(self, tmp_path, ct_volume):
        slices = MPRGenerator(ct_volume).generate("sagittal")
        paths = DICOMExporter().export_series(slices, tmp_path, prefix="sagittal")
        ds = pydicom.dcmread(paths[1])
        assert [float(v) for v in ds.ImageOrientationPatient] == [0, 1, 0, 0, 0, 1]
        assert [float(v) for v in ds.ImagePositionPatient] == pytest.approx([0.8, 0.0, 0.0])
        assert (ds.Rows, ds.Columns) == (ct_volume.depth, ct_volume.height)
        assert "WindowCenter" not in ds

    def test_stored_values(self):
        exporter = DICOMExporter()
        stored = exporter.to_stored_values(np.array([-2000.0, -1024.0, 0.0, 70000.0]))
        assert stored.dtype == np.uint16
        assert stored.tolist() == [0, 0, 1024, 65535]

    def test_single_slice_export(self, tmp_path, ct_volume):
        image = MPRGenerator(ct_volume).axial_slice(0)
        path = DICOMExporter().export(image, tmp_path / "single")
        assert path.name == "single.dcm"
        assert "SliceThickness" not in pydicom.dcmread(path)

    def test_writes_part10_file_without_deprecations(self, tmp_path, ct_volume):
        image = MPRGenerator(ct_volume).axial_slice(1)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            path = DICOMExporter().export(image, tmp_path / "slice.dcm")
        raw = path.read_bytes()
        assert raw[128:132] == b"DICM"
        assert pydicom.dcmread(path).file_meta.TransferSyntaxUID == pydicom.uid.ExplicitVRLittleEndian

    def test_reset_uids(self):
        exporter = DICOMExporter()
        before = exporter.series_instance_uid
        exporter.reset_uids()
        assert exporter.series_instance_uid != before


class TestLoader:
    def test_round_trip(self, dicom_series, ct_volume):
        volume = DICOMSeriesLoader().load(dicom_series)
        assert volume.dimensions == ct_volume.dimensions
        assert volume.spacing == pytest.approx(ct_volume.spacing)
        np.testing.assert_array_equal(volume.data, ct_volume.data)
        assert volume.window_center == 40.0
        assert volume.window_width == 400.0
        assert volume.rescale_intercept == -1024.0

    def test_file_order_does_not_matter(self, dicom_series, ct_volume, tmp_path):
        # reversed names: lexical order is now the opposite of slice order
        shuffled = tmp_path / "shuffled"
        shuffled.mkdir()
        paths = sorted(dicom_series.iterdir())
        for i, path in enumerate(reversed(paths)):
            shutil.copy(path, shuffled / f"IM{i:04d}.dcm")

        volume = DICOMSeriesLoader().load(shuffled)
        np.testing.assert_array_equal(volume.data, ct_volume.data)

    def test_list_of_files(self, dicom_series, ct_volume):
        paths = [str(p) for p in sorted(dicom_series.iterdir())]
        volume = DICOMSeriesLoader().load(paths)
        assert volume.depth == ct_volume.depth

    def test_non_dicom_files_skipped(self, dicom_series, ct_volume):
        (dicom_series / "README.txt").write_text("not a DICOM file")
        volume = DICOMSeriesLoader().load(dicom_series)
        assert volume.depth == ct_volume.depth

    def test_empty_directory(self, tmp_path):
        with pytest.raises(VolumeError, match="No DICOM slices"):
            DICOMSeriesLoader().load(tmp_path)

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DICOMSeriesLoader().load(tmp_path / "missing")

    def test_missing_position(self, dicom_series):
        path = dicom_series / "CT_0003.dcm"
        ds = pydicom.dcmread(path)
        del ds.ImagePositionPatient
        ds.save_as(path)
        with pytest.raises(VolumeError, match="Image Position Patient"):
            DICOMSeriesLoader().load(dicom_series)

    def test_missing_orientation(self, dicom_series):
        for path in dicom_series.iterdir():
            ds = pydicom.dcmread(path)
            del ds.ImageOrientationPatient
            ds.save_as(path)
        with pytest.raises(VolumeError, match="Image Orientation Patient"):
            DICOMSeriesLoader().load(dicom_series)

    def test_single_slice_spacing_fallback(self, dicom_series):
        path = dicom_series / "CT_0000.dcm"
        volume = DICOMSeriesLoader().load([path])
        # exported series carry SliceThickness = 1.5
        assert volume.spacing[2] == pytest.approx(1.5)

        ds = pydicom.dcmread(path)
        del ds.SliceThickness
        del ds.SpacingBetweenSlices
        ds.save_as(path)
        volume = DICOMSeriesLoader().load([path])
        assert volume.depth == 1
        assert volume.spacing[2] == 1.0

    def test_can_load(self, dicom_series, tmp_path):
        loader = DICOMSeriesLoader()
        text_file = tmp_path / "notes.txt"
        text_file.write_text("hello")
        assert loader.can_load(dicom_series)
        assert loader.can_load(dicom_series / "CT_0000.dcm")
        assert not loader.can_load(text_file)


@pytest.mark.parametrize("value, expected", [
    (None, None),
    ("", None),
    ("40", 40.0),
    (["40", "80"], 40.0),
    ([], None),
])
def test_first_value(value, expected):
    assert _first_value(value) == expected
