import numpy as np
import pytest

from exporters.volume import NIfTIExporter, MetaImageExporter, get_volume_exporter


class TestNIfTIExporter:
    @pytest.fixture(autouse=True)
    def _nibabel(self):
        pytest.importorskip("nibabel")

    def test_geometry_and_data(self, tmp_path, ramp_volume):
        import nibabel as nib

        path = NIfTIExporter().export(ramp_volume, tmp_path / "volume")
        assert path.name == "volume.nii"

        image = nib.load(str(path))
        assert image.shape == ramp_volume.dimensions
        assert image.header.get_zooms() == pytest.approx(ramp_volume.spacing)
        assert image.header.get_xyzt_units()[0] == "mm"
        np.testing.assert_allclose(image.affine, np.diag([0.5, 1.0, 2.0, 1.0]))

        data = np.asarray(image.dataobj)
        assert data.dtype == np.float32
        assert data[2, 1, 3] == ramp_volume.voxel_at(2, 1, 3)

    def test_values_not_rescaled(self, tmp_path, ct_volume):
        import nibabel as nib

        path = NIfTIExporter().export(ct_volume, tmp_path / "ct.nii")
        data = np.asarray(nib.load(str(path)).dataobj)
        assert data.min() == -1000.0
        assert data.max() == 1000.0


class TestMetaImageExporter:
    @pytest.fixture(autouse=True)
    def _sitk(self):
        pytest.importorskip("SimpleITK")

    def test_header_and_raw(self, tmp_path, ramp_volume):
        path = MetaImageExporter().export(ramp_volume, tmp_path / "volume")
        assert path.name == "volume.mhd"
        raw_path = tmp_path / "volume.raw"
        assert raw_path.exists()
        assert raw_path.stat().st_size == 6 * 5 * 4 * 8

        header = path.read_text()
        assert "ElementType = MET_DOUBLE" in header
        assert "DimSize = 6 5 4" in header
        assert "ElementDataFile = volume.raw" in header

        raw = np.fromfile(raw_path, dtype="<f8").reshape(ramp_volume.shape)
        np.testing.assert_array_equal(raw, ramp_volume.data)

    def test_read_back(self, tmp_path, ramp_volume):
        import SimpleITK as sitk

        path = MetaImageExporter().export(ramp_volume, tmp_path / "volume.mhd")
        image = sitk.ReadImage(str(path))
        assert image.GetSize() == ramp_volume.dimensions
        assert image.GetSpacing() == pytest.approx(ramp_volume.spacing)

    def test_no_temporary_directory_left(self, tmp_path, ramp_volume):
        MetaImageExporter().export(ramp_volume, tmp_path / "volume")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["volume.mhd", "volume.raw"]


def test_unknown_volume_format():
    with pytest.raises(ValueError, match="Unsupported volume format"):
        get_volume_exporter("analyze")
