from __future__ import annotations

import dataclasses
import math

import pytest

from qraph.canvas import WHITE, Color
from qraph.config import SessionConfig, coerce_number
from qraph.errors import InvalidPrecision


def test_defaults() -> None:
    config = SessionConfig()
    assert (config.width, config.height) == (1200, 1200)
    assert config.precision == 0.01
    assert config.axes is True
    assert config.axis_color == WHITE
    assert config.seed is None


def test_numeric_strings_are_accepted() -> None:
    config = SessionConfig(width="64", height=32.0, precision="1/100", seed="7")
    assert config.width == 64 and isinstance(config.width, int)
    assert config.height == 32 and isinstance(config.height, int)
    assert config.precision == pytest.approx(0.01)
    assert config.seed == 7


@pytest.mark.parametrize("precision", [0, -0.5, "inf", "abc"])
def test_invalid_precision(precision: object) -> None:
    with pytest.raises(InvalidPrecision):
        SessionConfig(precision=precision)


@pytest.mark.parametrize("field", ["width", "height", "chunk_size", "max_samples", "color_attempts"])
@pytest.mark.parametrize("value", [0, -3, 2.5, True])
def test_positive_integer_fields(field: str, value: object) -> None:
    with pytest.raises(ValueError):
        SessionConfig(**{field: value})


def test_noise_cache_may_be_disabled() -> None:
    assert SessionConfig(noise_cache_size=0).noise_cache_size == 0
    with pytest.raises(ValueError):
        SessionConfig(noise_cache_size=-1)


def test_axis_color_from_hex() -> None:
    assert SessionConfig(axis_color="#ff0000").axis_color == Color(255, 0, 0)
    assert SessionConfig(axis_color=(1, 2, 3)).axis_color == Color(1, 2, 3, 255)
    with pytest.raises(ValueError):
        SessionConfig(axis_color="#ff00")


def test_replace_validates_and_config_is_frozen() -> None:
    config = SessionConfig()
    assert config.replace(width=10).width == 10
    with pytest.raises(InvalidPrecision):
        config.replace(precision=0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.width = 5  # type: ignore[misc]


@pytest.mark.parametrize(
    "value, dest, expected",
    [
        ("2*pi", float, 2 * math.pi),
        (" 0.5 ", float, 0.5),
        (3.0, int, 3),
        (10**30, int, 10**30),
        ("sqrt(16)", int, 4),
    ],
)
def test_coerce_number(value: object, dest: type, expected: float) -> None:
    assert coerce_number(value, dest) == expected


@pytest.mark.parametrize("value", [True, float("inf"), 1 + 2j, "", "x +", "I"])
def test_coerce_number_rejects(value: object) -> None:
    with pytest.raises(ValueError):
        coerce_number(value)


def test_coerce_number_int_must_be_exact() -> None:
    with pytest.raises(ValueError, match="integer"):
        coerce_number(3.5, int)
    with pytest.raises(NotImplementedError):
        coerce_number(1, complex)  # type: ignore[arg-type]
