"""Tests for height grid construction and pressure shape resolution."""

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from preprocessors import PressureMode, build_height_grid, flatten_inputs, resolve_pressure
from zbp_errors import ConfigurationError, ShapeError


class TestHeightGrid:
    """Tests for build_height_grid."""

    def test_short_final_step(self):
        """Bounds 0-175 m give a shortened last step."""
        assert_array_equal(build_height_grid([0, 175]), [0, 50, 100, 150, 175])

    def test_exact_multiple(self):
        assert_array_equal(build_height_grid([0, 200]), [0, 50, 100, 150, 200])

    def test_bounds_closer_than_spacing(self):
        assert_array_equal(build_height_grid([100, 130]), [100, 130])

    def test_custom_spacing(self):
        assert_array_equal(build_height_grid([0, 250], dz=100), [0, 100, 200, 250])

    def test_explicit_levels_kept(self):
        levels = [0., 10., 100., 1000.]
        assert_array_equal(build_height_grid(levels), levels)

    def test_returns_float_array(self):
        z = build_height_grid((0, 1000))
        assert z.dtype == float
        assert z.size == 21

    @pytest.mark.parametrize("z", [[500.], [], [0., 100., 50.], [0., 0., 100.]])
    def test_malformed_heights(self, z):
        with pytest.raises(ConfigurationError):
            build_height_grid(z)

    def test_inverted_bounds(self):
        with pytest.raises(ConfigurationError):
            build_height_grid([1000, 0])

    def test_non_positive_spacing(self):
        with pytest.raises(ConfigurationError):
            build_height_grid([0, 1000], dz=0)


class TestResolvePressure:
    """Tests for resolve_pressure."""

    def test_base_only(self):
        mode, p = resolve_pressure(np.full((3, 4), 1e5), (3, 4), 10)
        assert mode is PressureMode.BASE_ONLY
        assert mode.calc_pressure
        assert p is None

    def test_full_profile(self):
        pl = np.random.default_rng(0).uniform(5e4, 1e5, (3, 4, 10))
        mode, p = resolve_pressure(pl, (3, 4), 10)
        assert mode is PressureMode.FULL_PROFILE
        assert not mode.calc_pressure
        assert_array_equal(p, pl)

    def test_full_profile_height_first(self):
        pl = np.random.default_rng(1).uniform(5e4, 1e5, (10, 3, 4))
        mode, p = resolve_pressure(pl, (3, 4), 10)
        assert mode is PressureMode.FULL_PROFILE_HEIGHT_FIRST
        assert not mode.calc_pressure
        assert p.shape == (3, 4, 10)
        assert_array_equal(p[..., 0], pl[0])
        assert_array_equal(p[1, 2, :], pl[:, 1, 2])

    def test_mismatched_shape(self):
        with pytest.raises(ShapeError, match=r"\(3, 5\)"):
            resolve_pressure(np.ones((3, 5)), (3, 4), 10)

    def test_explicit_mode_disambiguates(self):
        """A batch of 10 columns with 10 levels is read as given."""
        pl = np.ones((10, 10))
        mode, p = resolve_pressure(pl, (10,), 10, PressureMode.FULL_PROFILE_HEIGHT_FIRST)
        assert mode is PressureMode.FULL_PROFILE_HEIGHT_FIRST
        assert p.shape == (10, 10)

    def test_explicit_mode_by_value(self):
        mode, _ = resolve_pressure(np.ones((3, 4, 10)), (3, 4), 10, 'full_profile')
        assert mode is PressureMode.FULL_PROFILE

    def test_explicit_mode_wrong_shape(self):
        with pytest.raises(ShapeError):
            resolve_pressure(np.ones((3, 4)), (3, 4), 10, PressureMode.FULL_PROFILE)

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            resolve_pressure(np.ones((3, 4)), (3, 4), 10, 'levels')

    def test_scalar_batch(self):
        mode, _ = resolve_pressure(1e5, (), 5)
        assert mode is PressureMode.BASE_ONLY


class TestFlattenInputs:
    """Tests for flatten_inputs."""

    def test_scalars_broadcast(self):
        Tl = np.arange(6.).reshape(2, 3) + 290
        Tshape, T, eps, PE = flatten_inputs(Tl, 1e-4, 0.5)
        assert Tshape == (2, 3)
        assert_array_equal(T, Tl.ravel())
        assert_array_equal(eps, np.full(6, 1e-4))
        assert_array_equal(PE, np.full(6, 0.5))

    def test_column_order_preserved(self):
        Tl = np.full((2, 3), 300.)
        eps = np.arange(6.).reshape(2, 3)
        _, _, eps_flat, _ = flatten_inputs(Tl, eps, 1.)
        assert_array_equal(eps_flat, [0, 1, 2, 3, 4, 5])

    def test_bad_shape(self):
        with pytest.raises(ShapeError):
            flatten_inputs(np.ones((2, 3)), np.ones(4), 0.5)
