"""GPX file parsing utilities."""

import os

import gpxpy
import gpxpy.gpx


def _point_dict(point):
    return {
        'lat': point.latitude,
        'lon': point.longitude,
        'elevation': point.elevation if point.elevation else 0,
        'time': point.time.isoformat() if point.time else None
    }


def parse_gpx_file(filepath, filename=None):
    """
    Parse a GPX file into a route.

    Track points of all tracks and segments are concatenated in file order.
    Files without tracks fall back to GPX routes, then to waypoints.

    Args:
        filepath: Path to GPX file
        filename: User-facing file name (default: basename of filepath)

    Returns:
        dict: Route with filename, name, points, tracks, bounds and metadata
    """
    with open(filepath, 'r') as gpx_file:
        gpx = gpxpy.parse(gpx_file)

    tracks = []
    for track in gpx.tracks:
        track_points = []
        for segment in track.segments:
            for point in segment.points:
                track_points.append(_point_dict(point))

        tracks.append({
            'name': track.name,
            'points': track_points
        })

    points = [p for track in tracks for p in track['points']]
    if not points:
        points = [_point_dict(p) for route in gpx.routes for p in route.points]
    if not points:
        points = [_point_dict(w) for w in gpx.waypoints]

    lats = [p['lat'] for p in points]
    lons = [p['lon'] for p in points]

    return {
        'filename': filename or os.path.basename(filepath),
        'name': gpx.name or (tracks[0]['name'] if tracks else None),
        'points': points,
        'tracks': tracks,
        'bounds': {
            'north': max(lats),
            'south': min(lats),
            'east': max(lons),
            'west': min(lons)
        } if points else None,
        'metadata': {
            'name': gpx.name,
            'description': gpx.description,
            'author': gpx.author_name
        }
    }
