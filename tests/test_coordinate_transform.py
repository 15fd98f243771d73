"""Tests for wipe tower coordinate transformation."""

import pytest

from coordinate_transform import TowerTransform, transform_point


@pytest.mark.parametrize("point", [(0.0, 0.0), (10.0, 10.0), (-3.25, 7.5), (123.456, -0.001)])
def test_identity_transform(point):
    assert transform_point(point, 0.0, (0.0, 0.0)) == point


def test_translation_only():
    assert transform_point((1.0, 2.0), 0.0, (100.0, 50.0)) == (101.0, 52.0)


def test_rotation_is_counter_clockwise_in_degrees():
    x, y = transform_point((10.0, 0.0), 90.0, (0.0, 0.0))
    assert x == pytest.approx(0.0, abs=1e-9)
    assert y == pytest.approx(10.0)


def test_rotation_happens_before_translation():
    x, y = transform_point((10.0, 5.0), 90.0, (100.0, 50.0))
    assert x == pytest.approx(95.0)
    assert y == pytest.approx(60.0)


def test_tower_transform_applies_its_placement():
    transform = TowerTransform(rotation_deg=180.0, position=(20.0, 20.0))
    x, y = transform.apply((5.0, 5.0))
    assert x == pytest.approx(15.0)
    assert y == pytest.approx(15.0)
