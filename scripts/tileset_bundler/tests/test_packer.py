"""
Tests for the packing strategies.
"""

import itertools
import unittest

from ..errors import ConfigurationError
from ..processing.packer import (
    LayoutNode, PackResult, StripPacker, TreePacker, create_packer,
)
from ..tiles.base import Rect


def _placements(result, items):
    return {item_id: result.placement(item_id, w, h) for item_id, w, h in items}


def _assert_disjoint(test, result, items):
    placed = _placements(result, items)
    for (a, ra), (b, rb) in itertools.combinations(placed.items(), 2):
        test.assertFalse(ra.intersects(rb), f"{a} {ra} overlaps {b} {rb}")
    for rect in placed.values():
        if not rect.is_empty:
            test.assertLessEqual(rect.right, result.width)
            test.assertLessEqual(rect.bottom, result.height)


class TestRect(unittest.TestCase):
    """Test Rect class functionality."""

    def test_rect_properties(self):
        """Test derived rectangle properties."""
        rect = Rect(10, 20, 30, 40)

        self.assertEqual(rect.right, 40)
        self.assertEqual(rect.bottom, 60)
        self.assertEqual(rect.area, 1200)
        self.assertEqual(rect.as_box(), (10, 20, 40, 60))

    def test_contains_point(self):
        """Test point containment."""
        rect = Rect(10, 20, 30, 40)

        self.assertTrue(rect.contains_point(10, 20))  # Edge case
        self.assertFalse(rect.contains_point(40, 60))  # Right/bottom edges

    def test_intersects(self):
        """Test rectangle intersection."""
        rect = Rect(10, 10, 20, 20)

        self.assertTrue(rect.intersects(Rect(15, 15, 10, 10)))
        self.assertFalse(rect.intersects(Rect(30, 10, 5, 5)))  # Touching
        self.assertFalse(rect.intersects(Rect(15, 15, 0, 0)))  # Empty


class TestStripPacker(unittest.TestCase):
    """Test the greedy shelf packer."""

    def test_single_row(self):
        """Test placing items on a single row."""
        items = [("a", 10, 5), ("b", 20, 8), ("c", 5, 5)]
        result = StripPacker(max_width=100).pack(items)

        self.assertEqual(result.positions, {"a": (0, 0), "b": (10, 0), "c": (30, 0)})
        self.assertEqual((result.width, result.height), (35, 8))

    def test_wraps_below_tallest_of_row(self):
        """Test that a new row starts below the tallest item."""
        items = [(0, 30, 10), (1, 30, 25), (2, 30, 5), (3, 10, 10)]
        result = StripPacker(max_width=64).pack(items)

        self.assertEqual(result.positions[0], (0, 0))
        self.assertEqual(result.positions[1], (30, 0))
        self.assertEqual(result.positions[2], (0, 25))
        self.assertEqual(result.positions[3], (30, 25))
        self.assertEqual((result.width, result.height), (60, 35))

    def test_exact_fit_stays_on_row(self):
        """Test that an item ending exactly at the width stays on the row."""
        result = StripPacker(max_width=20).pack([(0, 10, 4), (1, 10, 4)])

        self.assertEqual(result.positions[1], (10, 0))

    def test_wide_item_gets_own_row(self):
        """Test that an item wider than the strip gets its own row."""
        items = [(0, 10, 10), (1, 150, 20), (2, 10, 10)]
        result = StripPacker(max_width=100).pack(items)

        self.assertEqual(result.positions[1], (0, 10))
        self.assertEqual(result.positions[2], (0, 30))
        self.assertEqual(result.width, 150)
        self.assertEqual(result.height, 40)

    def test_zero_size_items_take_no_space(self):
        """Test that zero sized items take no space."""
        items = [(0, 10, 10), (1, 0, 0), (2, 10, 10)]
        result = StripPacker(max_width=100).pack(items)

        self.assertEqual(result.positions[1], (10, 0))
        self.assertEqual(result.positions[2], (10, 0))
        self.assertEqual(result.width, 20)

    def test_empty_input(self):
        """Test packing nothing."""
        result = StripPacker().pack([])

        self.assertEqual((result.width, result.height), (0, 0))
        self.assertEqual(result.positions, {})

    def test_no_overlap(self):
        """Test that placed items never overlap."""
        items = [(i, 7 + (i * 13) % 29, 5 + (i * 7) % 17) for i in range(40)]
        result = StripPacker(max_width=96).pack(items)

        _assert_disjoint(self, result, items)

    def test_reproducible(self):
        """Test that packing the same input gives the same layout."""
        items = [(i, 3 + i % 5, 4 + i % 3) for i in range(20)]

        self.assertEqual(StripPacker(50).pack(items), StripPacker(50).pack(items))

    def test_rejects_non_positive_width(self):
        """Test that the strip width must be positive."""
        with self.assertRaises(ConfigurationError):
            StripPacker(max_width=0)


class TestTreePacker(unittest.TestCase):
    """Test the binary-tree packer."""

    def test_find_node_too_large(self):
        """Test that no node fits an oversized item."""
        node = LayoutNode(Rect(0, 0, 100, 100))

        self.assertIsNone(node.find_node(150, 50))

    def test_split_node(self):
        """Test splitting a layout node."""
        node = LayoutNode(Rect(0, 0, 100, 100))
        node.split_node(30, 40)

        self.assertTrue(node.used)
        self.assertEqual(node.right.rect, Rect(30, 0, 70, 100))
        self.assertEqual(node.down.rect, Rect(0, 40, 30, 60))

    def test_no_overlap(self):
        """Test that placed items never overlap."""
        items = [(i, 5 + (i * 11) % 23, 4 + (i * 5) % 19) for i in range(30)]
        result = TreePacker().pack(items)

        self.assertEqual(set(result.positions), {i for i, _, _ in items})
        _assert_disjoint(self, result, items)

    def test_padding_separates_items(self):
        """Test that padding keeps items apart."""
        items = [(i, 8, 8) for i in range(6)]
        result = TreePacker(padding=2).pack(items)

        placed = list(_placements(result, items).values())
        for a, b in itertools.combinations(placed, 2):
            padded_a = Rect(a.x, a.y, a.width + 2, a.height + 2)
            padded_b = Rect(b.x, b.y, b.width + 2, b.height + 2)
            self.assertFalse(padded_a.intersects(padded_b))

    def test_degenerate_items_are_placed_at_origin(self):
        """Test that zero sized items are placed at the origin."""
        result = TreePacker().pack([("empty", 0, 0), ("full", 4, 4)])

        self.assertEqual(result.positions["empty"], (0, 0))
        self.assertEqual((result.width, result.height), (4, 4))

    def test_efficiency(self):
        """Test packing efficiency."""
        items = [(0, 10, 10), (1, 10, 10)]
        result = PackResult(20, 10, {0: (0, 0), 1: (10, 0)})

        self.assertAlmostEqual(result.calculate_efficiency(items), 1.0)


class TestCreatePacker(unittest.TestCase):
    """Test the packer registry."""

    def test_named_packers(self):
        """Test creating packers by name."""
        self.assertIsInstance(create_packer("strip", max_width=64), StripPacker)
        self.assertIsInstance(create_packer("tree"), TreePacker)

    def test_unknown_packer(self):
        """Test creating an unknown packer."""
        with self.assertRaises(ConfigurationError):
            create_packer("maxrects")


if __name__ == '__main__':
    unittest.main()
