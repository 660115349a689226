"""Application configuration helpers."""

import os
import tempfile


DEFAULT_PROJECTION_TYPE = "mercator"
DEFAULT_SIMPLIFY_MIN_DISTANCE_MM = 0.5
DEFAULT_MAX_ROUTE_POINTS = 50000


def parse_env_bool(value, default=False):
    """Parse a boolean-like environment value with a fallback default."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def get_cors_origins():
    """
    Return CORS origins from env, or localhost-only defaults.

    `ROUTECOIN_CORS_ORIGINS` supports a comma-separated list.
    """
    raw = os.getenv('ROUTECOIN_CORS_ORIGINS', '')
    if raw.strip():
        return [origin.strip() for origin in raw.split(',') if origin.strip()]
    return [r"^http://localhost(:\d+)?$", r"^http://127\.0\.0\.1(:\d+)?$"]


def parse_env_int(name, default):
    """Parse an integer environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def parse_env_float(name, default):
    """Parse a float environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def get_default_projection_type():
    proj_type = os.getenv("ROUTECOIN_DEFAULT_PROJECTION", DEFAULT_PROJECTION_TYPE).strip().lower()
    if proj_type in {"mercator", "utm"}:
        return proj_type
    return DEFAULT_PROJECTION_TYPE


def get_simplify_min_distance():
    """Minimum spacing (mm) kept between consecutive route points before meshing."""
    value = parse_env_float("ROUTECOIN_SIMPLIFY_MIN_DISTANCE_MM", DEFAULT_SIMPLIFY_MIN_DISTANCE_MM)
    if value <= 0:
        return DEFAULT_SIMPLIFY_MIN_DISTANCE_MM
    return value


def get_max_route_points():
    return max(2, parse_env_int("ROUTECOIN_MAX_ROUTE_POINTS", DEFAULT_MAX_ROUTE_POINTS))


def get_upload_folder():
    return os.getenv("ROUTECOIN_UPLOAD_FOLDER") or os.path.join(tempfile.gettempdir(), "routecoin", "uploads")


def get_export_folder():
    return os.getenv("ROUTECOIN_EXPORT_FOLDER") or os.path.join(tempfile.gettempdir(), "routecoin", "exports")


def get_file_ttl_seconds():
    return max(1, parse_env_int("ROUTECOIN_FILE_TTL_SECONDS", 24 * 3600))
