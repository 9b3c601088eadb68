"""Tests for level compatibility, match average and category."""

from padelmatch.services.level_policy import (
    average_level,
    category_for,
    is_compatible,
    level_distance,
)


class TestCompatibility:
    def test_distance_is_symmetric(self):
        assert level_distance(3.0, 4.5) == level_distance(4.5, 3.0) == 1.5

    def test_within_tolerance(self):
        assert is_compatible(4.0, 4.5, 1.0)

    def test_tolerance_is_inclusive(self):
        assert is_compatible(4.0, 5.0, 1.0)

    def test_outside_tolerance(self):
        assert not is_compatible(4.0, 5.25, 1.0)

    def test_extended_tolerance_widens(self):
        assert not is_compatible(3.0, 4.25, 1.0)
        assert is_compatible(3.0, 4.25, 1.5)


class TestAverageAndCategory:
    def test_average_rounds_to_two_decimals(self):
        assert average_level([3.0, 3.1, 3.3, 4.0]) == 3.35

    def test_average_of_nothing(self):
        assert average_level([]) == 0.0

    def test_category_rounds_half_up(self):
        assert category_for([3.0, 3.0, 4.0, 4.0]) == 4

    def test_category_rounds_down_below_half(self):
        assert category_for([5.25, 5.25, 5.25, 5.25]) == 5

    def test_category_of_nothing(self):
        assert category_for([]) == 0
