"""3D mesh generation for route ribbons ("climbing coins")."""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .app_config import get_simplify_min_distance
from .errors import GeometricDegeneracy, InputError
from .export_options import resolve_options
from .geo_projection import project_points, setup_projection
from .route_transform import (
    apply_vertical_exaggeration,
    calculate_bounds,
    scale_and_center,
    simplify_points,
)

BASE_RADIAL_SEGMENTS = 32
DEFAULT_BASE_DIAMETER = 50.0
DEFAULT_WALL_THICKNESS = 2.0


@dataclass(frozen=True, eq=False)
class Mesh:
    """
    Renderer-independent triangle mesh.

    positions and normals are (N, 3) float arrays. When index is None every
    3 consecutive vertices form one triangle; otherwise index is (M, 3).
    """
    positions: np.ndarray
    normals: np.ndarray
    index: Optional[np.ndarray] = None

    @property
    def vertex_count(self):
        return len(self.positions)

    @property
    def normal_count(self):
        return len(self.normals)

    @property
    def is_indexed(self):
        return self.index is not None

    @property
    def triangle_count(self):
        if self.index is not None:
            return len(self.index)
        return len(self.positions) // 3

    def triangles(self):
        """Return (M, 3, 3) triangle corner positions."""
        if self.index is not None:
            return self.positions[self.index]
        return self.positions.reshape(-1, 3, 3)

    def face_normals(self):
        """Unit normal of every triangle (zero for degenerate triangles)."""
        return _face_normals(self.triangles())

    def to_non_indexed(self):
        """Expand to triangle soup where each triangle owns its 3 vertices."""
        if self.index is None:
            return self
        flat = self.index.reshape(-1)
        return Mesh(self.positions[flat], self.normals[flat], None)

    def translated(self, dx=0.0, dy=0.0, dz=0.0):
        offset = np.array([dx, dy, dz], dtype=np.float64)
        return Mesh(self.positions + offset, self.normals, self.index)

    def bounds(self):
        return self.positions.min(axis=0), self.positions.max(axis=0)


def _face_normals(triangles):
    v0 = triangles[:, 0]
    v1 = triangles[:, 1]
    v2 = triangles[:, 2]
    normals = np.cross(v2 - v1, v0 - v1)
    return _normalize_rows(normals)


def _normalize_rows(vectors):
    lengths = np.linalg.norm(vectors, axis=1)
    safe = np.where(lengths > 0, lengths, 1.0)
    return vectors / safe[:, None]


def compute_vertex_normals(positions, index=None):
    """
    Per-vertex normals.

    Indexed meshes average the (area weighted) normals of the faces sharing
    each vertex. Triangle soup gets the face normal on all three vertices.
    """
    positions = np.asarray(positions, dtype=np.float64)
    if index is None:
        face = _face_normals(positions.reshape(-1, 3, 3))
        return np.repeat(face, 3, axis=0)

    tris = positions[index]
    face = np.cross(tris[:, 2] - tris[:, 1], tris[:, 0] - tris[:, 1])
    normals = np.zeros_like(positions)
    for corner in range(3):
        np.add.at(normals, index[:, corner], face)
    return _normalize_rows(normals)


def segment_perpendicular(p0, p1):
    """Unit left-hand perpendicular (-dy, dx) of the segment p0 -> p1 in the xy plane."""
    dx = p1.x - p0.x
    dy = p1.y - p0.y
    length = math.sqrt(dx * dx + dy * dy)
    if length == 0:
        raise GeometricDegeneracy(
            f"Zero-length route segment at ({p0.x:.3f}, {p0.y:.3f}); points must differ in x/y"
        )
    return -dy / length, dx / length


def averaged_join_perpendicular(prev, curr, nxt):
    """
    Perpendicular at an interior point: mean of the incoming and outgoing
    segment perpendiculars, renormalised.

    Approximate miter only; very sharp turns pinch the ribbon.
    """
    in_x, in_y = segment_perpendicular(prev, curr)
    out_x, out_y = segment_perpendicular(curr, nxt)
    perp_x = (in_x + out_x) / 2
    perp_y = (in_y + out_y) / 2
    length = math.sqrt(perp_x * perp_x + perp_y * perp_y)
    if length == 0:
        raise GeometricDegeneracy(
            f"Route doubles back on itself at ({curr.x:.3f}, {curr.y:.3f})"
        )
    return perp_x / length, perp_y / length


def cross_section_perpendiculars(points):
    """Return an (n, 2) array with the unit perpendicular used at each point."""
    n = len(points)
    perps = np.empty((n, 2), dtype=np.float64)
    for i in range(n):
        if i == 0:
            perps[i] = segment_perpendicular(points[0], points[1])
        elif i == n - 1:
            perps[i] = segment_perpendicular(points[i - 1], points[i])
        else:
            perps[i] = averaged_join_perpendicular(points[i - 1], points[i], points[i + 1])
    return perps


def _wall_faces(n_points):
    """
    Triangle indices for a wall of n cross-sections.

    Vertex layout per point: 0=bottom-left, 1=bottom-right, 2=top-left, 3=top-right,
    where left is the +perpendicular side.
    """
    curr = np.arange(n_points - 1)[:, None] * 4
    nxt = curr + 4
    segment_faces = np.hstack([
        # Bottom (-z)
        curr + 0, nxt + 0, curr + 1,
        curr + 1, nxt + 0, nxt + 1,
        # Top (+z)
        curr + 2, curr + 3, nxt + 2,
        curr + 3, nxt + 3, nxt + 2,
        # Left side (+perpendicular)
        curr + 0, curr + 2, nxt + 0,
        nxt + 0, curr + 2, nxt + 2,
        # Right side (-perpendicular)
        curr + 1, nxt + 1, curr + 3,
        nxt + 1, nxt + 3, curr + 3,
    ]).reshape(-1, 3)

    last = (n_points - 1) * 4
    caps = np.array([
        # Start cap, facing back along the route
        [0, 1, 2],
        [1, 3, 2],
        # End cap, facing forward
        [last + 0, last + 2, last + 1],
        [last + 1, last + 2, last + 3],
    ])
    return np.vstack([segment_faces, caps]).astype(np.int64)


def generate_wall_geometry(points, options):
    """
    Build the vertical ribbon from z=0 up to each point's height.

    Args:
        points: ExaggeratedPoints, at least 2, with no zero-length xy segments
        options: ExportOptions (buffer is the wall thickness)

    Returns:
        Mesh: indexed, closed shell with 8(n-1)+4 triangles
    """
    if len(points) < 2:
        raise InputError("A wall needs at least 2 points")

    thickness = options.buffer or DEFAULT_WALL_THICKNESS
    half = thickness / 2

    perps = cross_section_perpendiculars(points) * half
    xy = np.array([[p.x, p.y] for p in points], dtype=np.float64)
    z = np.array([p.z for p in points], dtype=np.float64)

    left = xy + perps
    right = xy - perps
    zeros = np.zeros_like(z)

    positions = np.empty((len(points), 4, 3), dtype=np.float64)
    positions[:, 0] = np.column_stack([left, zeros])
    positions[:, 1] = np.column_stack([right, zeros])
    positions[:, 2] = np.column_stack([left, z])
    positions[:, 3] = np.column_stack([right, z])
    positions = positions.reshape(-1, 3)

    index = _wall_faces(len(points))
    return Mesh(positions, compute_vertex_normals(positions, index), index)


def generate_base_plate(points, options):
    """
    Closed cylinder under the wall, top face at z=0.

    The plate is centred on the xy bounding-box centre of the wall points.
    """
    bounds = calculate_bounds(points)
    diameter = options.base_diameter or DEFAULT_BASE_DIAMETER
    radius = diameter / 2
    height = options.base
    center_x = bounds.center_x
    center_y = bounds.center_y

    print(f"  Circular base plate: {diameter:.2f}mm diameter x {height:.2f}mm height "
          f"at ({center_x:.2f}, {center_y:.2f}), top surface at Z=0.00")

    segments = BASE_RADIAL_SEGMENTS
    theta = np.arange(segments) * (2 * np.pi / segments)
    ring_x = center_x + radius * np.cos(theta)
    ring_y = center_y + radius * np.sin(theta)

    top = np.column_stack([ring_x, ring_y, np.zeros(segments)])
    bottom = np.column_stack([ring_x, ring_y, np.full(segments, -height)])
    centers = np.array([[center_x, center_y, 0.0], [center_x, center_y, -height]])
    positions = np.vstack([top, bottom, centers])

    k = np.arange(segments)
    k_next = (k + 1) % segments
    top_center = 2 * segments
    bottom_center = top_center + 1
    faces = np.vstack([
        np.column_stack([np.full(segments, top_center), k, k_next]),
        np.column_stack([np.full(segments, bottom_center), segments + k_next, segments + k]),
        np.column_stack([segments + k, segments + k_next, k_next]),
        np.column_stack([segments + k, k_next, k]),
    ]).astype(np.int64)

    return Mesh(positions, compute_vertex_normals(positions, faces), faces)


def merge_geometries(meshes):
    """Concatenate meshes as triangle soup and recompute per-face normals."""
    soups = [m.to_non_indexed() for m in meshes]
    positions = np.vstack([m.positions for m in soups])
    return Mesh(positions, compute_vertex_normals(positions))


def validate_geometry(mesh):
    """Return warnings for a mesh; an empty list means it is consistent."""
    warnings = []
    if mesh.vertex_count != mesh.normal_count:
        warnings.append(
            f"Position count ({mesh.vertex_count}) != Normal count ({mesh.normal_count})"
        )
    if mesh.index is None and mesh.vertex_count % 3 != 0:
        warnings.append(f"Vertex count ({mesh.vertex_count}) is not a multiple of 3")
    if not np.all(np.isfinite(mesh.positions)):
        warnings.append("Mesh contains non-finite coordinates")
    elif mesh.vertex_count and not np.max(mesh.positions[:, 2]) > 0:
        warnings.append("Mesh has no height above the base top (max z <= 0)")
    return warnings


def generate_path_geometry(points, options, min_distance=None):
    """
    Mesh exaggerated route points: simplify, build the wall and optional base,
    merge, and move the result into positive x/y.

    Returns:
        Mesh: triangle soup, 3 vertices per triangle sharing one normal
    """
    if min_distance is None:
        min_distance = get_simplify_min_distance()

    print(f"  Generating geometry from {len(points)} points")
    simplified = simplify_points(points, min_distance)
    if len(simplified) != len(points):
        print(f"  Simplified {len(points)} points -> {len(simplified)} points "
              f"(removed {len(points) - len(simplified)} too-close points)")

    bounds = calculate_bounds(simplified)
    print(f"  Creating wall geometry (route: {max(bounds.width, bounds.depth):.2f}mm wide x "
          f"{bounds.height:.2f}mm tall)")

    wall = generate_wall_geometry(simplified, options)
    print(f"  Wall created: {wall.vertex_count} vertices")

    parts = [wall]
    if options.base > 0:
        base = generate_base_plate(simplified, options)
        print(f"  Base created: {base.vertex_count} vertices")
        parts.append(base)
    else:
        print("  No base plate (base=0)")

    merged = merge_geometries(parts)

    min_corner, _ = merged.bounds()
    translate_x = -float(min_corner[0])
    translate_y = -float(min_corner[1])
    if translate_x != 0 or translate_y != 0:
        merged = merged.translated(translate_x, translate_y, 0.0)

    for warning in validate_geometry(merged):
        print(f"[WARN] {warning}")

    return merged


def build_route_geometry(route, options=None):
    """
    Build the printable mesh for a route.

    Args:
        route: Dict with 'points' [{lat, lon, elevation?}, ...] (at least 2)
        options: ExportOptions, a dict of overrides, or None for defaults

    Returns:
        Mesh
    """
    points = route.get('points') if route else None
    if not points or len(points) < 2:
        raise InputError("Route must have at least 2 points for STL export")

    options = resolve_options(options)
    print(f"Building 3D geometry for route: {route.get('filename') or route.get('id') or 'route'}")

    projection = setup_projection(options.proj_type, points)
    projected = project_points(points, projection)
    print(f"  Projected {len(projected)} points ({projection.name})")

    scaled = scale_and_center(projected, options).points
    exaggerated = apply_vertical_exaggeration(scaled, options)

    mesh = generate_path_geometry(exaggerated, options)
    print(f"  Generated geometry with {mesh.vertex_count} vertices, {mesh.triangle_count} triangles")
    return mesh


def mesh_to_preview(mesh):
    """Convert a Mesh to the plain-list payload consumed by the 3D preview."""
    if mesh.index is not None:
        faces = mesh.index.tolist()
    else:
        faces = np.arange(mesh.vertex_count).reshape(-1, 3).tolist()
    return {
        'vertices': mesh.positions.tolist(),
        'normals': mesh.normals.tolist(),
        'faces': faces,
    }
