import numpy as np
import pytest

from reconstruction.mpr import MPRGenerator
from reconstruction.slice_image import SliceImage

Image = pytest.importorskip("PIL.Image")

from exporters.image import PNGExporter  # noqa: E402


class TestApplyWindow:
    def test_window_clips_to_range(self):
        image = SliceImage(data=np.array([[-2000.0, -160.0, 40.0, 240.0, 3000.0]]))
        pixels = image.apply_window(40.0, 400.0)
        assert pixels.dtype == np.uint8
        assert pixels.tolist() == [[0, 0, 127, 255, 255]]

    def test_auto_window(self):
        image = SliceImage(data=np.array([[10.0, 20.0], [30.0, 50.0]]))
        assert image.apply_window().tolist() == [[0, 63], [127, 255]]

    def test_flat_image_maps_to_zero(self):
        image = SliceImage(data=np.full((3, 4), 7.0))
        assert np.all(image.apply_window() == 0)

    def test_non_positive_width(self):
        image = SliceImage(data=np.zeros((2, 2)))
        with pytest.raises(ValueError):
            image.apply_window(0.0, 0.0)


class TestPNGExporter:
    def test_export_size_and_values(self, tmp_path, ct_volume):
        image = MPRGenerator(ct_volume).axial_slice(3)
        path = PNGExporter(40.0, 400.0).export(image, tmp_path / "axial.png")

        with Image.open(path) as png:
            assert png.mode == "L"
            assert png.size == (image.width, image.height)
            pixels = np.asarray(png)
        np.testing.assert_array_equal(pixels, image.apply_window(40.0, 400.0))
        assert pixels[3, 2] == 255
        assert pixels[0, 0] == 0

    def test_series_names(self, tmp_path, ramp_volume):
        slices = MPRGenerator(ramp_volume).generate("sagittal")
        progress = []
        paths = PNGExporter().export_series(
            slices, tmp_path / "sagittal", prefix="sagittal", progress_callback=progress.append
        )
        assert [p.name for p in paths] == [f"sagittal_{i:04d}.png" for i in range(ramp_volume.width)]
        assert all(p.exists() for p in paths)
        assert progress[-1] == pytest.approx(1.0)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            PNGExporter(40.0, -1.0)
