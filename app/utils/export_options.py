"""STL export options and presets."""

import math
from dataclasses import dataclass, asdict, replace

from .app_config import parse_env_bool
from .errors import ConfigError


SUPPORTED_SHAPE_TYPES = ('track',)
PLACEHOLDER_SHAPE_TYPES = ('linear', 'ring')

# Client payloads use camelCase keys.
_OPTION_KEYS = {
    'shapeType': 'shape_type',
    'projType': 'proj_type',
    'buffer': 'buffer',
    'targetHeight': 'target_height',
    'vertical': 'vertical',
    'base': 'base',
    'baseDiameter': 'base_diameter',
    'minPathHeight': 'min_path_height',
    'zcut': 'zcut',
    'bedx': 'bedx',
    'bedy': 'bedy',
}

_FLOAT_FIELDS = (
    'buffer', 'target_height', 'vertical', 'base', 'base_diameter',
    'min_path_height', 'bedx', 'bedy',
)


@dataclass(frozen=True)
class ExportOptions:
    """Options controlling how a route is turned into a printable mesh (lengths in mm)."""
    shape_type: str = 'track'
    proj_type: str = 'mercator'
    buffer: float = 0.5            # wall thickness, half of it on each side of the route
    target_height: float = 20.0    # elevation range in mm, 0 = use `vertical`
    vertical: float = 10.0         # multiplier, only used when target_height is 0
    base: float = 3.0              # base plate height, 0 = no base
    base_diameter: float = 80.0
    min_path_height: float = 1.0   # lowest route point sits this far above the base
    zcut: bool = True              # measure heights from the route minimum instead of 0
    bedx: float = 200.0            # print bed, only used when base is 0
    bedy: float = 200.0

    @classmethod
    def from_dict(cls, data, defaults=None):
        """
        Merge user overrides over defaults.

        Args:
            data: Mapping with camelCase (client) or snake_case keys. Unknown keys are ignored.
            defaults: ExportOptions to merge over (default: DEFAULT_STL_OPTIONS)

        Returns:
            ExportOptions
        """
        base_options = defaults if defaults is not None else DEFAULT_STL_OPTIONS
        if not data:
            return base_options

        overrides = {}
        for key, value in data.items():
            field_name = _OPTION_KEYS.get(key, key)
            if field_name not in _OPTION_FIELD_NAMES or value is None:
                continue
            overrides[field_name] = value

        for name in _FLOAT_FIELDS:
            if name in overrides:
                try:
                    overrides[name] = float(overrides[name])
                except (TypeError, ValueError):
                    raise ConfigError(f"Invalid value for {name}: {overrides[name]!r}")
        if 'zcut' in overrides:
            overrides['zcut'] = parse_env_bool(overrides['zcut'], default=base_options.zcut)
        for name in ('shape_type', 'proj_type'):
            if name in overrides:
                overrides[name] = str(overrides[name]).strip().lower()

        return replace(base_options, **overrides)

    def to_dict(self):
        """Return options keyed the way the client sends them."""
        values = asdict(self)
        return {camel: values[snake] for camel, snake in _OPTION_KEYS.items()}

    def validate(self):
        """Raise ConfigError for options the geometry pipeline cannot honour."""
        if self.shape_type in PLACEHOLDER_SHAPE_TYPES:
            raise ConfigError(f"Shape type '{self.shape_type}' is not implemented yet")
        if self.shape_type not in SUPPORTED_SHAPE_TYPES:
            raise ConfigError(f"Unsupported shape type: {self.shape_type}")
        for name in _FLOAT_FIELDS:
            if not math.isfinite(getattr(self, name)):
                raise ConfigError(f"{name} must be a finite number")
        if self.buffer < 0:
            raise ConfigError("buffer must not be negative")
        if self.base < 0:
            raise ConfigError("base must not be negative")
        if self.target_height < 0:
            raise ConfigError("targetHeight must not be negative")
        if self.min_path_height < 0:
            raise ConfigError("minPathHeight must not be negative")
        return self


_OPTION_FIELD_NAMES = frozenset(_OPTION_KEYS.values())

DEFAULT_STL_OPTIONS = ExportOptions()

STL_PRESETS = {
    'standard': {
        'name': 'Standard',
        'description': 'Balanced settings for most routes',
        'options': DEFAULT_STL_OPTIONS,
    },
    'dramatic': {
        'name': 'Dramatic Climbing',
        'description': 'Exaggerated elevation (40mm tall)',
        'options': replace(DEFAULT_STL_OPTIONS, target_height=40.0, buffer=0.5, base_diameter=100.0),
    },
    'flatMap': {
        'name': 'Flat Map',
        'description': 'Minimal elevation (10mm tall)',
        'options': replace(DEFAULT_STL_OPTIONS, target_height=10.0, buffer=0.75, base_diameter=80.0),
    },
    'climbingCoin': {
        'name': 'Climbing Coin',
        'description': 'Optimized for cumulative climbing (30mm tall)',
        'options': replace(DEFAULT_STL_OPTIONS, target_height=30.0, buffer=0.5, base_diameter=80.0),
    },
}


def resolve_options(options=None):
    """Accept ExportOptions, a mapping of overrides, or None and return validated ExportOptions."""
    if isinstance(options, ExportOptions):
        resolved = options
    else:
        resolved = ExportOptions.from_dict(options or {})
    return resolved.validate()


def get_preset(name):
    """Return the ExportOptions of a named preset."""
    try:
        return STL_PRESETS[name]['options']
    except KeyError:
        raise ConfigError(f"Unknown preset: {name}")
