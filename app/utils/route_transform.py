"""
Point transforms between projection and meshing.

Each stage works on its own record type:
Waypoint -> ProjectedPoint (m) -> ScaledPoint (mm) -> ExaggeratedPoint (mm).
"""

import math
from dataclasses import dataclass
from typing import List, NamedTuple, Sequence

from .errors import ConfigError, GeometricDegeneracy, InputError

BED_MARGIN_MM = 10.0
BASE_MARGIN_FACTOR = 4.0


@dataclass(frozen=True)
class Waypoint:
    lat: float
    lon: float
    elevation: float = 0.0

    @classmethod
    def from_dict(cls, point):
        try:
            lat = float(point['lat'])
            lon = float(point['lon'])
            elevation = point.get('elevation')
            elevation = float(elevation) if elevation else 0.0
        except (AttributeError, KeyError, TypeError, ValueError):
            raise InputError(f"Invalid route point: {point!r}")
        return cls(lat, lon, elevation)


@dataclass(frozen=True)
class ProjectedPoint:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class ScaledPoint:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class ExaggeratedPoint:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Bounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float

    @property
    def width(self):
        return self.max_x - self.min_x

    @property
    def depth(self):
        return self.max_y - self.min_y

    @property
    def height(self):
        return self.max_z - self.min_z

    @property
    def center_x(self):
        return (self.min_x + self.max_x) / 2

    @property
    def center_y(self):
        return (self.min_y + self.max_y) / 2


class ScaleResult(NamedTuple):
    points: List[ScaledPoint]
    scale: float
    available_size: float
    target_description: str


def calculate_bounds(points):
    """
    Axis-aligned bounds of any points with x, y, z attributes.

    An empty sequence yields +inf minima and -inf maxima; callers must
    check for empty input themselves.
    """
    min_x = min_y = min_z = math.inf
    max_x = max_y = max_z = -math.inf
    for p in points:
        if p.x < min_x:
            min_x = p.x
        if p.x > max_x:
            max_x = p.x
        if p.y < min_y:
            min_y = p.y
        if p.y > max_y:
            max_y = p.y
        if p.z < min_z:
            min_z = p.z
        if p.z > max_z:
            max_z = p.z
    return Bounds(min_x, max_x, min_y, max_y, min_z, max_z)


def compute_available_size(options):
    """
    Size (mm) the longest route dimension is scaled to.

    Returns:
        tuple: (available_size, target_description)
    """
    if options.base > 0 and options.base_diameter:
        # Keep the wall well inside the base rim.
        margin = options.buffer * BASE_MARGIN_FACTOR
        available = options.base_diameter - 2 * margin
        description = f"{options.base_diameter:g}mm circular base"
    else:
        available = min(options.bedx - 2 * BED_MARGIN_MM, options.bedy - 2 * BED_MARGIN_MM)
        description = f"{options.bedx:g}x{options.bedy:g}mm print bed"

    if available <= 0:
        raise ConfigError(f"No room left for the route on a {description} ({available:.2f}mm available)")
    return available, description


def scale_and_center(points: Sequence[ProjectedPoint], options) -> ScaleResult:
    """
    Uniformly scale projected points (metres) to fit the base or print bed (mm), centred on 0,0.

    Elevation is scaled by the same factor; the final height comes from
    apply_vertical_exaggeration.
    """
    if not points:
        raise InputError("Cannot scale an empty point set")

    bounds = calculate_bounds(points)
    available, description = compute_available_size(options)

    max_dimension = max(bounds.width, bounds.depth)
    if not max_dimension > 0:
        raise GeometricDegeneracy("Route has no horizontal extent; all points project to the same location")

    scale = available / (max_dimension * 1000)
    center_x = bounds.center_x
    center_y = bounds.center_y
    factor = 1000 * scale

    scaled = [
        ScaledPoint((p.x - center_x) * factor, (p.y - center_y) * factor, p.z * factor)
        for p in points
    ]

    print(f"  Scaled to fit {description} ({available:.1f}mm available)")

    return ScaleResult(scaled, scale, available, description)


def apply_vertical_exaggeration(points: Sequence[ScaledPoint], options) -> List[ExaggeratedPoint]:
    """
    Compute the final z of each point from the height policy.

    With zcut the route minimum becomes the baseline, otherwise 0 (in the
    scaled space). target_height > 0 stretches the range to exactly that
    height; otherwise the `vertical` multiplier is applied on top of the
    xy scale. min_path_height is added to every point.
    """
    if not points:
        return []

    bounds = calculate_bounds(points)
    baseline = bounds.min_z if options.zcut else 0.0
    current_range = bounds.max_z - baseline

    if options.target_height and options.target_height > 0:
        if current_range > 0:
            vertical_scale = options.target_height / current_range
            print(f"  Auto-scaling elevation: {current_range:.2f}mm range -> "
                  f"{options.target_height:g}mm ({vertical_scale:.1f}x multiplier)")
        else:
            vertical_scale = 1.0
            print("  Flat route (no elevation change), using 1x multiplier")
    else:
        vertical_scale = options.vertical
        print(f"  Fixed vertical exaggeration: {vertical_scale:g}x "
              f"({current_range:.2f}mm -> {current_range * vertical_scale:.2f}mm)")

    floor = options.min_path_height
    exaggerated = [
        ExaggeratedPoint(p.x, p.y, (p.z - baseline) * vertical_scale + floor)
        for p in points
    ]

    # The wall runs from z=0 up to each point, so every point must be above it.
    lowest = min(p.z for p in exaggerated)
    if not lowest > 0:
        raise GeometricDegeneracy(
            f"Route dips to {lowest:.2f}mm, at or below the base top; "
            f"enable zcut or raise minPathHeight"
        )
    return exaggerated


def simplify_points(points, min_distance=0.5):
    """
    Drop points closer than `min_distance` (3-D) to the last kept point.

    The first and last points are always kept, so the final pair may be
    closer than `min_distance`.
    """
    if len(points) < 2:
        return list(points)

    simplified = [points[0]]
    last_kept = 0
    for i in range(1, len(points)):
        prev = simplified[-1]
        curr = points[i]
        dist = math.sqrt((curr.x - prev.x) ** 2 + (curr.y - prev.y) ** 2 + (curr.z - prev.z) ** 2)
        if dist >= min_distance:
            simplified.append(curr)
            last_kept = i

    if last_kept != len(points) - 1:
        simplified.append(points[-1])

    return simplified
