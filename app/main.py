#!/usr/bin/env python3
"""
RouteCoin - Climbing Coin Generator
Web application for turning GPS routes into 3D printable route ribbons on a coin base.
"""

import os
import time
import uuid
from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

from utils.gpx_parser import parse_gpx_file
from utils.errors import InputError, RouteGeometryError
from utils.export_options import DEFAULT_STL_OPTIONS, STL_PRESETS
from utils.mesh_generator import build_route_geometry, mesh_to_preview
from utils.mesh_validator import MeshValidator
from utils.stl_export import export_route_to_stl, generate_filename
from utils.app_config import (
    get_cors_origins,
    get_default_projection_type,
    get_export_folder,
    get_file_ttl_seconds,
    get_max_route_points,
    get_upload_folder,
    parse_env_bool,
)

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": get_cors_origins()}})

# Configuration
UPLOAD_FOLDER = get_upload_folder()
EXPORT_FOLDER = get_export_folder()
ALLOWED_EXTENSIONS = {'gpx'}
CLEANUP_MAX_AGE_SECONDS = get_file_ttl_seconds()

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['EXPORT_FOLDER'] = EXPORT_FOLDER
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size

# Ensure directories exist
os.makedirs(UPLOAD_FOLDER, exist_ok=True)
os.makedirs(EXPORT_FOLDER, exist_ok=True)


def cleanup_old_files(directory, max_age_seconds):
    """Remove files older than `max_age_seconds` from a directory."""
    now = time.time()
    try:
        for entry in os.scandir(directory):
            if not entry.is_file():
                continue
            age = now - entry.stat().st_mtime
            if age > max_age_seconds:
                os.remove(entry.path)
    except OSError as e:
        print(f"[WARN] Cleanup failed for {directory}: {e}")


def build_unique_path(directory, original_filename, required_ext):
    """Build unique storage path while preserving user-facing download name."""
    sanitized = secure_filename(original_filename) or f"route.{required_ext}"
    if not sanitized.endswith(f".{required_ext}"):
        sanitized = f"{sanitized}.{required_ext}"
    stem = sanitized[:-(len(required_ext) + 1)]
    unique_name = f"{stem}_{uuid.uuid4().hex[:10]}.{required_ext}"
    return sanitized, os.path.join(directory, unique_name)


def allowed_file(filename):
    """Check if file has allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def read_route_request(data):
    """
    Pull route and options out of a request payload.

    Returns:
        tuple: (route, options)
    """
    route = data.get('route') or {}
    options = dict(data.get('options') or {})
    options.setdefault('projType', get_default_projection_type())

    points = route.get('points') or []
    max_points = get_max_route_points()
    if len(points) > max_points:
        raise InputError(f"Route has {len(points)} points; the limit is {max_points}")
    return route, options


# Cleanup stale local artifacts on startup.
cleanup_old_files(UPLOAD_FOLDER, CLEANUP_MAX_AGE_SECONDS)
cleanup_old_files(EXPORT_FOLDER, CLEANUP_MAX_AGE_SECONDS)


@app.route('/api/upload', methods=['POST'])
def upload_gpx():
    """Handle GPX file upload."""
    try:
        cleanup_old_files(app.config['UPLOAD_FOLDER'], CLEANUP_MAX_AGE_SECONDS)
        if 'file' not in request.files:
            return jsonify({'error': 'No file provided'}), 400

        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'No file selected'}), 400

        if not allowed_file(file.filename):
            return jsonify({'error': 'Invalid file type. Only GPX files allowed'}), 400

        download_name, filepath = build_unique_path(app.config['UPLOAD_FOLDER'], file.filename, 'gpx')
        file.save(filepath)
        try:
            route = parse_gpx_file(filepath, filename=download_name)
        finally:
            # GPX is only needed for immediate parsing.
            if os.path.exists(filepath):
                os.remove(filepath)

        return jsonify({
            'success': True,
            'filename': download_name,
            'route': route
        })

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/presets', methods=['GET'])
def get_presets():
    """Return default export options and named presets."""
    return jsonify({
        'defaults': DEFAULT_STL_OPTIONS.to_dict(),
        'presets': {
            key: {
                'name': preset['name'],
                'description': preset['description'],
                'options': preset['options'].to_dict(),
            }
            for key, preset in STL_PRESETS.items()
        }
    })


@app.route('/api/preview', methods=['POST'])
def preview_model():
    """Build the route mesh and return it for the 3D preview."""
    try:
        t_start = time.time()
        data = request.get_json(silent=True) or {}
        route, options = read_route_request(data)
        check_edges = parse_env_bool(data.get('check_manifold_edges'), default=True)

        t_mesh_start = time.time()
        route_mesh = build_route_geometry(route, options)
        t_mesh = time.time() - t_mesh_start
        print(f"[PERF] build_route_geometry() took {t_mesh:.3f}s")

        t_validate_start = time.time()
        validation_result = MeshValidator().validate(route_mesh, check_manifold_edges=check_edges)
        t_validate = time.time() - t_validate_start

        t_total = time.time() - t_start
        print(f"[PERF] Total /api/preview time: {t_total:.3f}s")

        return jsonify({
            'success': True,
            'mesh': mesh_to_preview(route_mesh),
            'validation': validation_result,
            'filename': generate_filename(route, options),
            'timings': {
                'mesh_seconds': round(t_mesh, 4),
                'validation_seconds': round(t_validate, 4),
                'total_seconds': round(t_total, 4)
            }
        })

    except RouteGeometryError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        import traceback
        print(f"[ERROR] /api/preview failed: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': str(e)}), 500


@app.route('/api/export/stl', methods=['POST'])
def export_stl():
    """Export a route to STL format for 3D printing."""
    try:
        cleanup_old_files(app.config['EXPORT_FOLDER'], CLEANUP_MAX_AGE_SECONDS)
        data = request.get_json(silent=True) or {}
        route, options = read_route_request(data)

        filename = data.get('filename') or generate_filename(route, options)
        filename, filepath = build_unique_path(app.config['EXPORT_FOLDER'], filename, 'stl')

        t_start = time.time()
        export_route_to_stl(route, options, filepath)
        print(f"[PERF] export_route_to_stl() took {time.time() - t_start:.3f}s")

        return send_file(
            filepath,
            mimetype='application/sla',
            as_attachment=True,
            download_name=filename
        )

    except RouteGeometryError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        print(f"[ERROR] /api/export/stl failed: {str(e)}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'service': 'RouteCoin'
    })


if __name__ == '__main__':
    debug_enabled = parse_env_bool(os.getenv('ROUTECOIN_DEBUG'), default=False)
    app.run(host='0.0.0.0', port=5001, debug=debug_enabled)
