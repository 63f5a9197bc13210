from __future__ import annotations

import math

import numpy as np

from qraph.perlin import MAX_OCTAVES, Perlin, perlin_generator


def test_same_seed_same_noise() -> None:
    xs = np.linspace(-3.0, 3.0, 41)
    a = Perlin(2, 2, 3, 7)
    b = Perlin(2, 2, 3, 7)
    np.testing.assert_array_equal(a.noise1d(xs), b.noise1d(xs))
    assert a.noise2d(0.3, 0.7) == b.noise2d(0.3, 0.7)
    assert a.noise3d(0.3, 0.7, 0.1) == b.noise3d(0.3, 0.7, 0.1)


def test_different_seeds_differ() -> None:
    xs = np.linspace(0.05, 9.95, 50)
    assert not np.allclose(Perlin(2, 2, 3, 1).noise1d(xs), Perlin(2, 2, 3, 2).noise1d(xs))


def test_noise_vanishes_on_integer_lattice() -> None:
    noise = Perlin(2, 2, 4, 1)
    np.testing.assert_array_equal(noise.noise1d(np.array([-3.0, 0.0, 5.0])), 0.0)
    assert noise.noise2d(2.0, -1.0) == 0.0
    assert noise.noise3d(1.0, 2.0, 3.0) == 0.0


def test_scalar_input_returns_float() -> None:
    noise = Perlin(2, 2, 3, 5)
    assert isinstance(noise.noise1d(0.25), float)
    assert isinstance(noise.noise2d(0.25, 0.5), float)
    assert isinstance(noise.noise3d(0.25, 0.5, 0.75), float)


def test_arguments_broadcast() -> None:
    noise = Perlin(2, 2, 3, 5)
    assert noise.noise3d(np.zeros((2, 3)) + 0.5, 0.5, 0.25).shape == (2, 3)
    assert noise.noise2d(np.linspace(0, 1, 4), 0.5).shape == (4,)


def test_single_octave_1d_is_bounded() -> None:
    values = Perlin(2, 2, 1, 9).noise1d(np.linspace(-20.0, 20.0, 997))
    assert np.all(np.abs(values) <= 1.0)


def test_zero_octaves_is_zero() -> None:
    assert Perlin(2, 2, 0, 3).noise1d(0.5) == 0.0


def test_non_finite_input_is_nan() -> None:
    noise = Perlin(2, 2, 3, 3)
    assert math.isnan(noise.noise1d(math.nan))
    out = noise.noise2d(np.array([0.5, math.inf]), 0.5)
    assert math.isfinite(out[0])
    assert math.isnan(out[1])


def test_huge_coordinates_stay_finite() -> None:
    assert math.isfinite(Perlin(2, 2, 3, 3).noise1d(1e20))
    assert math.isfinite(Perlin(2, 1e200, 3, 3).noise1d(1e200))


def test_octaves_are_clamped() -> None:
    assert Perlin(2, 2, 10**6, 1).n == MAX_OCTAVES


def test_negative_seed_is_accepted() -> None:
    assert math.isfinite(Perlin(2, 2, 3, -42).noise1d(0.5))


def test_generators_are_shared() -> None:
    assert perlin_generator(2.0, 2.0, 3, 7) is perlin_generator(2.0, 2.0, 3, 7)
