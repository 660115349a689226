"""Binary STL export for route meshes."""

import io
import re

import numpy as np
from stl import mesh as stl_mesh
from stl import Mode

from .errors import InputError
from .export_options import DEFAULT_STL_OPTIONS, ExportOptions, resolve_options
from .mesh_generator import build_route_geometry

STL_HEADER_NAME = "routecoin"


class RouteStlMesh(stl_mesh.Mesh):
    """numpy-stl mesh with a fixed header so identical meshes encode to identical bytes."""

    def get_header(self, name):
        return name[:80].ljust(80, " ")


def export_to_stl(route_mesh, filepath=None):
    """
    Encode a Mesh as binary STL.

    Triangle normals are taken from the mesh (first vertex of each
    triangle of a triangle-soup mesh) rather than recomputed.

    Args:
        route_mesh: Mesh
        filepath: Optional path to also write the file to

    Returns:
        bytes: STL file contents
    """
    triangles = route_mesh.triangles().astype(np.float32)
    if route_mesh.is_indexed:
        normals = route_mesh.face_normals()
    else:
        normals = route_mesh.normals[0::3]

    if len(triangles) == 0:
        raise ValueError("No mesh data to export")

    data = np.zeros(len(triangles), dtype=stl_mesh.Mesh.dtype)
    data['vectors'] = triangles
    data['normals'] = normals.astype(np.float32)
    out = RouteStlMesh(data, calculate_normals=False, remove_empty_areas=False)

    buffer = io.BytesIO()
    out.save(STL_HEADER_NAME, fh=buffer, mode=Mode.BINARY, update_normals=False)
    payload = buffer.getvalue()

    if filepath:
        with open(filepath, 'wb') as stl_file:
            stl_file.write(payload)

    return payload


def _format_number(value):
    return f"{value:g}"


def generate_filename(route, options=None):
    """
    Generate a sanitized .stl filename for a route.

    Args:
        route: Route dict (filename, id, metadata)
        options: ExportOptions or dict of user overrides

    Returns:
        str: e.g. "morning-run_cumulative_25x_no-base.stl"
    """
    route = route or {}
    if isinstance(options, ExportOptions):
        opts = options
    else:
        opts = ExportOptions.from_dict(options or {})

    if route.get('filename'):
        base_name = re.sub(r'\.gpx$', '', str(route['filename']), flags=re.IGNORECASE)
    elif route.get('id'):
        base_name = str(route['id'])
    else:
        base_name = 'route'

    metadata = route.get('metadata') or {}
    if metadata.get('aggregationMode'):
        base_name += f"_{metadata['aggregationMode']}"
    if metadata.get('elevationMode') == 'cumulative':
        base_name += '_cumulative'
    if metadata.get('pathPattern'):
        base_name += f"_{metadata['pathPattern']}"

    if opts.vertical and opts.vertical != DEFAULT_STL_OPTIONS.vertical:
        base_name += f"_{_format_number(opts.vertical)}x"

    if opts.base_diameter and opts.base_diameter != DEFAULT_STL_OPTIONS.base_diameter:
        base_name += f"_{_format_number(opts.base_diameter / 10)}cm"

    if opts.base == 0:
        base_name += '_no-base'

    base_name = re.sub(r'[^a-zA-Z0-9_-]', '_', base_name)
    base_name = re.sub(r'_+', '_', base_name).strip('_')

    return f"{base_name or 'route'}.stl"


def export_route_to_stl(route, options=None, filepath=None):
    """
    Build and encode the STL for a route.

    Returns:
        tuple: (filename, stl_bytes)
    """
    if not route or not route.get('points') or len(route['points']) < 2:
        raise InputError("Route must have at least 2 points for STL export")

    resolved = resolve_options(options)
    route_mesh = build_route_geometry(route, resolved)

    if route_mesh.normal_count != route_mesh.vertex_count:
        raise ValueError("Invalid geometry: normals missing or count mismatch")

    payload = export_to_stl(route_mesh, filepath)
    filename = generate_filename(route, resolved)
    print(f"STL export complete ({len(payload) / 1024:.1f} KB, {route_mesh.triangle_count} triangles)")
    return filename, payload
