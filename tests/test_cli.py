import argparse

import numpy as np
import pytest

pytest.importorskip("pydicom")
Image = pytest.importorskip("PIL.Image")

import main  # noqa: E402


def run(*argv):
    return main.main([str(a) for a in argv])


class TestMPRCommand:
    def test_default_planes_get_subdirectories(self, dicom_series, ct_volume, tmp_path):
        out = tmp_path / "mpr"
        assert run("mpr", dicom_series, "-o", out) == 0

        assert len(list((out / "axial").glob("axial_*.png"))) == ct_volume.depth
        assert len(list((out / "sagittal").glob("sagittal_*.png"))) == ct_volume.width
        assert len(list((out / "coronal").glob("coronal_*.png"))) == ct_volume.height
        with Image.open(out / "sagittal" / "sagittal_0000.png") as png:
            assert png.size == (ct_volume.height, ct_volume.depth)

    def test_single_plane_writes_into_output(self, dicom_series, tmp_path):
        out = tmp_path / "mpr"
        assert run("mpr", dicom_series, "-o", out, "--planes", "axial", "--window-preset", "bone") == 0
        assert (out / "axial_0000.png").exists()
        assert not (out / "axial").exists()

    def test_oblique(self, dicom_series, tmp_path):
        out = tmp_path / "oblique"
        code = run("mpr", dicom_series, "-o", out, "--planes", "oblique",
                   "--normal", "0,1,1", "--point", "2,2,6", "--interpolation", "cubic")
        assert code == 0
        assert [p.name for p in out.iterdir()] == ["oblique_0000.png"]

    def test_dicom_output(self, dicom_series, tmp_path):
        pydicom = pytest.importorskip("pydicom")
        out = tmp_path / "mpr"
        assert run("mpr", dicom_series, "-o", out, "--planes", "coronal", "--format", "dcm") == 0
        ds = pydicom.dcmread(out / "coronal_0000.dcm")
        assert [float(v) for v in ds.ImageOrientationPatient] == [1, 0, 0, 0, 0, 1]
        # window from the source series
        assert float(ds.WindowWidth) == 400.0

    def test_lone_window_center_warns(self, dicom_series, tmp_path, caplog):
        pydicom = pytest.importorskip("pydicom")
        out = tmp_path / "mpr"
        code = run("mpr", dicom_series, "-o", out, "--planes", "axial", "--format", "dcm",
                   "--window-center", "500")
        assert code == 0
        assert "must be given together" in caplog.text
        ds = pydicom.dcmread(out / "axial_0000.dcm")
        assert float(ds.WindowCenter) == 40.0

    def test_invalid_plane(self, dicom_series, tmp_path):
        assert run("mpr", dicom_series, "-o", tmp_path / "out", "--planes", "transverse") == 1

    def test_oblique_requires_normal(self, dicom_series, tmp_path):
        assert run("mpr", dicom_series, "-o", tmp_path / "out", "--planes", "oblique") == 1

    def test_zero_normal(self, dicom_series, tmp_path, caplog):
        code = run("mpr", dicom_series, "-o", tmp_path / "out", "--planes", "oblique",
                   "--normal", "0,0,0", "--point", "1,1,1")
        assert code == 1
        assert "Invalid oblique plane" in caplog.text
        assert not (tmp_path / "out").exists()

    def test_invalid_interpolation(self, dicom_series, tmp_path):
        assert run("mpr", dicom_series, "-o", tmp_path / "out", "--interpolation", "spline") == 1

    def test_missing_input(self, tmp_path):
        assert run("mpr", tmp_path / "missing", "-o", tmp_path / "out") == 1

    def test_bad_vector(self, dicom_series, tmp_path):
        with pytest.raises(SystemExit):
            run("mpr", dicom_series, "-o", tmp_path / "out", "--normal", "1,2")


class TestProjectionCommands:
    @pytest.mark.parametrize("command", ["mip", "minip", "average"])
    def test_projection(self, dicom_series, ct_volume, tmp_path, command):
        out = tmp_path / f"{command}.png"
        assert run(command, dicom_series, "-o", out, "--direction", "coronal") == 0
        with Image.open(out) as png:
            assert png.size == (ct_volume.width, ct_volume.depth)

    def test_output_extension_added(self, dicom_series, tmp_path):
        assert run("mip", dicom_series, "-o", tmp_path / "projection") == 0
        assert (tmp_path / "projection.png").exists()

    def test_slab_thickness_accepted(self, dicom_series, tmp_path):
        assert run("minip", dicom_series, "-o", tmp_path / "minip.png", "--thickness", "5") == 0

    def test_average_has_no_thickness(self, dicom_series, tmp_path):
        with pytest.raises(SystemExit):
            run("average", dicom_series, "-o", tmp_path / "avg.png", "--thickness", "5")


class TestSurfaceCommand:
    def test_stl(self, dicom_series, tmp_path):
        assert run("surface", dicom_series, "-o", tmp_path / "bone", "--threshold", "0") == 0
        raw = (tmp_path / "bone.stl").read_bytes()
        count = int(np.frombuffer(raw, dtype="<u4", count=1, offset=80)[0])
        assert count > 0
        assert len(raw) == 84 + 50 * count

    def test_obj_from_extension(self, dicom_series, tmp_path):
        assert run("surface", dicom_series, "-o", tmp_path / "bone.obj", "--threshold", "0") == 0
        text = (tmp_path / "bone.obj").read_text()
        assert text.startswith("# DICOM 3D Mesh Export\n")
        assert "\nf " in text

    def test_empty_surface_still_written(self, dicom_series, tmp_path):
        assert run("surface", dicom_series, "-o", tmp_path / "none.stl", "--threshold", "5000") == 0
        assert (tmp_path / "none.stl").stat().st_size == 84


class TestExportCommand:
    def test_formats(self, dicom_series, tmp_path):
        pytest.importorskip("nibabel")
        pytest.importorskip("SimpleITK")
        out = tmp_path / "volume"
        assert run("export", dicom_series, "-o", out, "--formats", "nifti,metaimage,analyze") == 0
        assert (tmp_path / "volume.nii").exists()
        assert (tmp_path / "volume.mhd").exists()
        assert (tmp_path / "volume.raw").exists()


def test_command_required():
    with pytest.raises(SystemExit):
        main.main([])


@pytest.mark.parametrize("center, width, preset, expected", [
    (10.0, 20.0, "bone", (10.0, 20.0)),
    (10.0, None, "lung", (-600.0, 1500.0)),
    (None, 20.0, None, (None, None)),
    (None, None, None, (None, None)),
])
def test_resolve_window(center, width, preset, expected):
    args = argparse.Namespace(window_center=center, window_width=width, window_preset=preset)
    assert main.resolve_window(args) == expected
