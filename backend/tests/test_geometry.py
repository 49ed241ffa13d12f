"""
Tests for corner-pair to center/size box conversion.
"""

import pytest

from transformer_inspection.anomalies.geometry import corners_to_center


class TestCornersToCenter:
    """Tests for corners_to_center()."""
    
    def test_square_from_origin(self):
        assert corners_to_center([0, 0, 10, 10]) == [5.0, 5.0, 10.0, 10.0]
    
    def test_offset_box(self):
        assert corners_to_center([2, 3, 8, 9]) == [5.0, 6.0, 6.0, 6.0]
    
    def test_reversed_corners_give_positive_size(self):
        """Corners given right-to-left still produce non-negative width/height."""
        assert corners_to_center([8, 9, 2, 3]) == [5.0, 6.0, 6.0, 6.0]
    
    def test_fractional_coordinates(self):
        center = corners_to_center([0.5, 1.5, 2.0, 4.0])
        assert center == pytest.approx([1.25, 2.75, 1.5, 2.5])
    
    def test_three_values_returned_unchanged(self):
        assert corners_to_center([1, 2, 3]) == [1, 2, 3]
    
    def test_five_values_returned_unchanged(self):
        assert corners_to_center([1, 2, 3, 4, 5]) == [1, 2, 3, 4, 5]
    
    def test_input_not_mutated(self):
        box = [0.0, 0.0, 4.0, 2.0]
        corners_to_center(box)
        assert box == [0.0, 0.0, 4.0, 2.0]
