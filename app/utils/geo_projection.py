"""Map projections from WGS84 lon/lat to planar metres."""

import math

import numpy as np
from pyproj import CRS, Transformer

from .errors import ConfigError, InputError
from .route_transform import ProjectedPoint, Waypoint

WGS84 = "EPSG:4326"
WEB_MERCATOR = "EPSG:3857"


def utm_zone_for(lon, lat):
    """Return (zone, is_north) for a lon/lat pair."""
    zone = int(math.floor((lon + 180.0) / 6.0)) + 1
    zone = min(max(zone, 1), 60)
    return zone, lat >= 0


class Projection:
    """Forward transform from (lon, lat) degrees to (x, y) metres."""

    def __init__(self, name, crs):
        self.name = name
        self.crs = crs
        self._transformer = Transformer.from_crs(WGS84, crs, always_xy=True)

    def forward(self, lon, lat):
        x, y = self._transformer.transform(lon, lat)
        return float(x), float(y)

    def forward_many(self, lons, lats):
        xs, ys = self._transformer.transform(np.asarray(lons, dtype=np.float64),
                                             np.asarray(lats, dtype=np.float64))
        return np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)

    def __repr__(self):
        return f"Projection({self.name!r})"


def setup_projection(proj_type, points):
    """
    Create the projection used for a route.

    Args:
        proj_type: 'mercator' (spherical web-Mercator) or 'utm'
        points: Route waypoints; UTM uses the zone and hemisphere of the first one

    Returns:
        Projection
    """
    if proj_type == 'mercator':
        return Projection('mercator', CRS.from_user_input(WEB_MERCATOR))

    if proj_type == 'utm':
        if not points:
            raise InputError("UTM projection needs at least one point")
        first = _as_waypoint(points[0])
        # Routes crossing zone boundaries keep the first point's zone.
        zone, is_north = utm_zone_for(first.lon, first.lat)
        hemisphere = '+north' if is_north else '+south'
        crs = CRS.from_proj4(f"+proj=utm +zone={zone} {hemisphere} +datum=WGS84 +units=m +no_defs")
        return Projection(f"utm{zone}{'N' if is_north else 'S'}", crs)

    raise ConfigError(f"Unsupported projection type: {proj_type}")


def project_points(points, projection):
    """Project waypoints to ProjectedPoints (x, y in metres; z is the elevation)."""
    waypoints = [_as_waypoint(p) for p in points]
    if not waypoints:
        return []
    xs, ys = projection.forward_many([w.lon for w in waypoints], [w.lat for w in waypoints])
    return [
        ProjectedPoint(float(x), float(y), w.elevation)
        for x, y, w in zip(xs, ys, waypoints)
    ]


def _as_waypoint(point):
    if isinstance(point, Waypoint):
        return point
    return Waypoint.from_dict(point)
