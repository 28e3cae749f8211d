import numpy as np
import pytest

from core.errors import UnsupportedInterpolationError
from reconstruction.volume import VolumeData, InterpolationMethod


class TestConstruction:
    def test_dimensions_and_layout(self, ramp_volume):
        assert ramp_volume.dimensions == (6, 5, 4)
        assert ramp_volume.shape == (4, 5, 6)
        assert ramp_volume.spacing == (0.5, 1.0, 2.0)
        assert ramp_volume.voxels.size == 6 * 5 * 4

    def test_data_is_copied_and_read_only(self):
        source = np.zeros((2, 2, 2))
        volume = VolumeData(data=source, spacing=(1, 1, 1))
        source[0, 0, 0] = 5.0
        assert volume.voxel_at(0, 0, 0) == 0.0
        with pytest.raises(ValueError):
            volume.data[0, 0, 0] = 1.0

    def test_from_voxels_is_x_fastest(self):
        volume = VolumeData.from_voxels(range(24), dimensions=(2, 3, 4), spacing=(1, 1, 1))
        assert volume.voxel_at(1, 0, 0) == 1.0
        assert volume.voxel_at(0, 1, 0) == 2.0
        assert volume.voxel_at(0, 0, 1) == 6.0
        assert volume.voxel_at(1, 2, 3) == 23.0

    def test_from_voxels_length_mismatch(self):
        with pytest.raises(ValueError):
            VolumeData.from_voxels(range(10), dimensions=(2, 3, 4), spacing=(1, 1, 1))

    def test_from_array(self):
        volume = VolumeData.from_array(np.ones((2, 3, 4)))
        assert volume.dimensions == (4, 3, 2)
        assert volume.spacing == (1.0, 1.0, 1.0)

    @pytest.mark.parametrize("data, spacing", [
        (np.zeros((3, 3)), (1, 1, 1)),
        (np.zeros((0, 3, 3)), (1, 1, 1)),
        (np.zeros((3, 3, 3)), (1, 0, 1)),
        (np.zeros((3, 3, 3)), (1, -1, 1)),
        (np.zeros((3, 3, 3)), (1, 1)),
    ])
    def test_invalid_geometry_rejected(self, data, spacing):
        with pytest.raises(ValueError):
            VolumeData(data=data, spacing=spacing)

    def test_metadata_defaults(self, ramp_volume):
        assert ramp_volume.window_center is None
        assert ramp_volume.rescale_slope == 1.0
        assert ramp_volume.rescale_intercept == 0.0
        assert ramp_volume.value_range == (0.0, 345.0)


class TestVoxelAt:
    def test_values(self, ramp_volume):
        assert ramp_volume.voxel_at(0, 0, 0) == 0.0
        assert ramp_volume.voxel_at(5, 4, 3) == 345.0
        assert ramp_volume.voxel_at(2, 1, 3) == 312.0

    @pytest.mark.parametrize("x, y, z", [
        (-1, 0, 0), (6, 0, 0), (0, -1, 0), (0, 5, 0), (0, 0, -1), (0, 0, 4),
    ])
    def test_outside_is_absent(self, ramp_volume, x, y, z):
        assert ramp_volume.voxel_at(x, y, z) is None


class TestInterpolation:
    @pytest.mark.parametrize("method", list(InterpolationMethod))
    def test_on_lattice_matches_exact_lookup(self, ramp_volume, method):
        for x, y, z in [(0, 0, 0), (1, 2, 3), (5, 4, 3), (3, 1, 2)]:
            expected = ramp_volume.voxel_at(x, y, z)
            value = ramp_volume.interpolated_voxel_at(x, y, z, method)
            assert value == pytest.approx(expected, abs=1e-6)

    def test_trilinear_on_ramp_is_exact(self, ramp_volume):
        value = ramp_volume.interpolated_voxel_at(1.5, 2.25, 0.5, InterpolationMethod.LINEAR)
        assert value == pytest.approx(1.5 + 22.5 + 50.0)

    def test_trilinear_is_continuous(self, ramp_volume):
        eps = 1e-6
        a = ramp_volume.interpolated_voxel_at(2.0, 1.0, 1.0)
        b = ramp_volume.interpolated_voxel_at(2.0 + eps, 1.0, 1.0)
        # gradient along x is 1 per voxel
        assert abs(b - a) <= eps * 1.0 + 1e-12

    def test_trilinear_clamps_upper_neighbour(self, ramp_volume):
        # x = 5.5 lies inside [0, 6); the x + 1 neighbour is clamped to x = 5
        assert ramp_volume.interpolated_voxel_at(5.5, 0, 0) == pytest.approx(5.0)

    def test_nearest_rounds_half_up(self, ramp_volume):
        assert ramp_volume.interpolated_voxel_at(1.4, 0.6, 0, "nearest") == 11.0
        assert ramp_volume.interpolated_voxel_at(1.5, 0, 0, "nearest") == 2.0

    def test_nearest_rounding_out_of_range_is_absent(self, ramp_volume):
        assert ramp_volume.interpolated_voxel_at(5.6, 0, 0, "nearest") is None

    @pytest.mark.parametrize("method", list(InterpolationMethod))
    @pytest.mark.parametrize("point", [(-0.1, 0, 0), (0, 5.0, 0), (0, 0, 4.2), (100, 100, 100)])
    def test_outside_is_absent(self, ramp_volume, method, point):
        assert ramp_volume.interpolated_voxel_at(*point, method=method) is None

    def test_cubic_reproduces_smooth_field_between_samples(self):
        z, y, x = np.mgrid[0:12, 0:12, 0:12].astype(np.float64)
        volume = VolumeData(data=np.sin(x / 3.0) + np.cos(y / 4.0) + z / 5.0, spacing=(1, 1, 1))
        value = volume.interpolated_voxel_at(5.5, 6.25, 4.75, "cubic")
        expected = np.sin(5.5 / 3.0) + np.cos(6.25 / 4.0) + 4.75 / 5.0
        assert value == pytest.approx(expected, abs=1e-2)

    def test_unknown_method_rejected(self, ramp_volume):
        with pytest.raises(UnsupportedInterpolationError) as excinfo:
            ramp_volume.interpolated_voxel_at(1, 1, 1, "bicubic")
        assert "bicubic" in str(excinfo.value)
        assert isinstance(excinfo.value, ValueError)

    def test_method_names_parse(self):
        assert InterpolationMethod.parse("Linear") is InterpolationMethod.LINEAR
        assert InterpolationMethod.parse(InterpolationMethod.CUBIC) is InterpolationMethod.CUBIC

    def test_vectorized_sample(self, ramp_volume):
        x = np.array([0.0, 1.0, -1.0])
        values = ramp_volume.sample(x, 1.0, 2.0)
        assert values.shape == (3,)
        assert values[0] == pytest.approx(210.0)
        assert values[1] == pytest.approx(211.0)
        assert np.isnan(values[2])


class TestGeometry:
    def test_physical_coordinates(self, ramp_volume):
        assert ramp_volume.physical_coordinates(1, 2, 3) == (0.5, 2.0, 6.0)
        assert ramp_volume.physical_coordinates(1.5, 0, 0.25) == (0.75, 0.0, 0.5)

    def test_physical_round_trip(self, ramp_volume):
        indices = np.array([[1.0, 2.0, 3.0], [0.5, 0.25, 1.5]])
        points = ramp_volume.voxel_to_physical(indices)
        np.testing.assert_allclose(ramp_volume.physical_to_voxel(points), indices)

    def test_physical_size(self, ramp_volume):
        np.testing.assert_allclose(ramp_volume.physical_size, [3.0, 5.0, 8.0])

    def test_get_slice(self, ramp_volume):
        assert ramp_volume.get_slice(2, axis=0).shape == (5, 6)
        assert ramp_volume.get_slice(2, axis=1).shape == (4, 6)
        assert ramp_volume.get_slice(2, axis=2).shape == (4, 5)
        assert ramp_volume.get_slice(1, axis=2)[3, 4] == ramp_volume.voxel_at(1, 4, 3)
