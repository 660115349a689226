"""Error types raised by the route geometry pipeline."""


class RouteGeometryError(ValueError):
    """Base class for errors the caller can report back to the user."""


class InputError(RouteGeometryError):
    """The route itself is unusable (e.g. fewer than 2 points)."""


class ConfigError(RouteGeometryError):
    """An export option has an unsupported or impossible value."""


class GeometricDegeneracy(RouteGeometryError):
    """The route collapses to geometry that cannot be meshed."""
