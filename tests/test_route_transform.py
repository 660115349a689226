import math
import unittest
from dataclasses import replace

from app.utils.errors import ConfigError, GeometricDegeneracy, InputError
from app.utils.export_options import DEFAULT_STL_OPTIONS
from app.utils.route_transform import (
    ExaggeratedPoint,
    ProjectedPoint,
    ScaledPoint,
    Waypoint,
    apply_vertical_exaggeration,
    calculate_bounds,
    compute_available_size,
    scale_and_center,
    simplify_points,
)


class WaypointTests(unittest.TestCase):
    def test_missing_elevation_defaults_to_zero(self):
        self.assertEqual(Waypoint.from_dict({"lat": 1, "lon": 2}).elevation, 0.0)
        self.assertEqual(Waypoint.from_dict({"lat": 1, "lon": 2, "elevation": None}).elevation, 0.0)

    def test_invalid_point_raises(self):
        with self.assertRaises(InputError):
            Waypoint.from_dict({"lat": 1})
        with self.assertRaises(InputError):
            Waypoint.from_dict({"lat": "north", "lon": 2})
        with self.assertRaises(InputError):
            Waypoint.from_dict({"lat": 1, "lon": 2, "elevation": "abc"})


class CalculateBoundsTests(unittest.TestCase):
    def test_bounds(self):
        bounds = calculate_bounds([
            ProjectedPoint(0, 0, 0),
            ProjectedPoint(100, 50, 200),
            ProjectedPoint(-50, 75, 100),
        ])
        self.assertEqual((bounds.min_x, bounds.max_x), (-50, 100))
        self.assertEqual((bounds.min_y, bounds.max_y), (0, 75))
        self.assertEqual((bounds.min_z, bounds.max_z), (0, 200))
        self.assertEqual(bounds.width, 150)
        self.assertEqual(bounds.center_y, 37.5)

    def test_empty_input_returns_sentinels(self):
        bounds = calculate_bounds([])
        self.assertEqual(bounds.min_x, math.inf)
        self.assertEqual(bounds.max_z, -math.inf)


class ScaleAndCenterTests(unittest.TestCase):
    points = [
        ProjectedPoint(1000.0, 2000.0, 10.0),
        ProjectedPoint(1400.0, 2100.0, 60.0),
        ProjectedPoint(1200.0, 2300.0, 30.0),
    ]

    def test_fits_circular_base(self):
        result = scale_and_center(self.points, DEFAULT_STL_OPTIONS)
        bounds = calculate_bounds(result.points)
        # 80mm base minus 4x buffer margin on each side
        self.assertAlmostEqual(result.available_size, 76.0)
        self.assertAlmostEqual(max(bounds.width, bounds.depth), 76.0, places=9)
        self.assertAlmostEqual(bounds.center_x, 0.0, places=9)
        self.assertAlmostEqual(bounds.center_y, 0.0, places=9)

    def test_fits_print_bed_without_base(self):
        options = replace(DEFAULT_STL_OPTIONS, base=0, bedx=250, bedy=210)
        result = scale_and_center(self.points, options)
        bounds = calculate_bounds(result.points)
        self.assertAlmostEqual(result.available_size, 190.0)
        self.assertAlmostEqual(max(bounds.width, bounds.depth), 190.0, places=9)

    def test_scaling_is_uniform(self):
        result = scale_and_center(self.points, DEFAULT_STL_OPTIONS)
        factor = 1000 * result.scale
        for original, scaled in zip(self.points, result.points):
            self.assertAlmostEqual(scaled.z, original.z * factor)
        first, second = result.points[0], result.points[1]
        self.assertAlmostEqual(second.x - first.x, 400.0 * factor)
        self.assertAlmostEqual(second.y - first.y, 100.0 * factor)

    def test_collapsed_route_raises(self):
        same = [ProjectedPoint(5.0, 5.0, 0.0), ProjectedPoint(5.0, 5.0, 100.0)]
        with self.assertRaises(GeometricDegeneracy):
            scale_and_center(same, DEFAULT_STL_OPTIONS)

    def test_single_axis_route_is_fine(self):
        line = [ProjectedPoint(5.0, 0.0, 0.0), ProjectedPoint(5.0, 10.0, 0.0)]
        result = scale_and_center(line, DEFAULT_STL_OPTIONS)
        self.assertAlmostEqual(result.points[1].y - result.points[0].y, 76.0)

    def test_impossible_base_raises(self):
        options = replace(DEFAULT_STL_OPTIONS, base_diameter=10, buffer=2)
        with self.assertRaises(ConfigError):
            compute_available_size(options)


class VerticalExaggerationTests(unittest.TestCase):
    points = [ScaledPoint(0, 0, 0), ScaledPoint(10, 10, 100), ScaledPoint(20, 20, 200)]

    def test_target_height(self):
        options = replace(DEFAULT_STL_OPTIONS, target_height=50, zcut=True)
        result = apply_vertical_exaggeration(self.points, options)
        self.assertEqual([p.z for p in result], [1, 26, 51])
        self.assertEqual(result[1].x, 10)
        self.assertIsInstance(result[0], ExaggeratedPoint)

    def test_vertical_multiplier(self):
        options = replace(DEFAULT_STL_OPTIONS, target_height=0, vertical=3, zcut=True)
        result = apply_vertical_exaggeration(self.points, options)
        self.assertEqual([p.z for p in result], [1, 301, 601])

    def test_absolute_baseline(self):
        points = [ScaledPoint(0, 0, 100), ScaledPoint(10, 10, 200)]
        options = replace(DEFAULT_STL_OPTIONS, target_height=0, vertical=2, zcut=False)
        result = apply_vertical_exaggeration(points, options)
        self.assertEqual([p.z for p in result], [201, 401])

    def test_range_matches_target_with_offset_route(self):
        points = [ScaledPoint(0, 0, 3.3), ScaledPoint(1, 0, 7.9), ScaledPoint(2, 0, 5.1)]
        options = replace(DEFAULT_STL_OPTIONS, target_height=20, zcut=True, min_path_height=1.5)
        zs = [p.z for p in apply_vertical_exaggeration(points, options)]
        self.assertAlmostEqual(max(zs) - min(zs), 20.0)
        self.assertAlmostEqual(min(zs), 1.5)

    def test_flat_route_sits_at_min_path_height(self):
        points = [ScaledPoint(0, 0, 42), ScaledPoint(10, 0, 42), ScaledPoint(20, 0, 42)]
        result = apply_vertical_exaggeration(points, DEFAULT_STL_OPTIONS)
        self.assertEqual([p.z for p in result], [1, 1, 1])

    def test_below_base_top_raises(self):
        points = [ScaledPoint(0, 0, -30), ScaledPoint(10, 0, -25)]
        options = replace(DEFAULT_STL_OPTIONS, target_height=20, zcut=False)
        with self.assertRaises(GeometricDegeneracy):
            apply_vertical_exaggeration(points, options)

    def test_zero_min_path_height_touches_base_top(self):
        options = replace(DEFAULT_STL_OPTIONS, min_path_height=0)
        with self.assertRaises(GeometricDegeneracy):
            apply_vertical_exaggeration(self.points, options)


class SimplifyPointsTests(unittest.TestCase):
    def test_keeps_first_and_last(self):
        points = [ExaggeratedPoint(0, 0, 1), ExaggeratedPoint(0.1, 0, 1), ExaggeratedPoint(0.2, 0, 1)]
        result = simplify_points(points, 0.5)
        self.assertEqual(result, [points[0], points[2]])

    def test_removes_close_points_and_keeps_spacing(self):
        points = [ExaggeratedPoint(i * 0.3, 0, 1) for i in range(11)]
        result = simplify_points(points, 0.5)
        self.assertIs(result[0], points[0])
        self.assertIs(result[-1], points[-1])
        self.assertLess(len(result), len(points))
        for a, b in zip(result[:-2], result[1:-1]):
            self.assertGreaterEqual(math.dist((a.x, a.y, a.z), (b.x, b.y, b.z)), 0.5)

    def test_uses_three_dimensional_distance(self):
        points = [ExaggeratedPoint(0, 0, 1), ExaggeratedPoint(0.1, 0, 3), ExaggeratedPoint(5, 0, 3)]
        self.assertEqual(len(simplify_points(points, 0.5)), 3)

    def test_well_spaced_points_are_unchanged(self):
        points = [ExaggeratedPoint(i, 0, 1) for i in range(5)]
        self.assertEqual(simplify_points(points, 0.5), points)

    def test_short_input(self):
        self.assertEqual(simplify_points([], 0.5), [])
        single = [ExaggeratedPoint(0, 0, 0)]
        self.assertEqual(simplify_points(single, 0.5), single)


if __name__ == "__main__":
    unittest.main()
