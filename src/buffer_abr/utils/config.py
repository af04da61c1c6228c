"""
Configuration Utilities

This module provides utilities for loading, validating, and managing
ABR configuration, and the shared configuration object the engine
reads its switch flags from and writes its bandwidth cap back to.
"""

import json
import yaml
import jsonschema
import argparse
import copy
from typing import Dict, List, Any, Optional, Union, TypeVar, cast
from pathlib import Path

from buffer_abr.exceptions import ConfigurationError

# Type for configuration dictionaries
ConfigDict = Dict[str, Any]
T = TypeVar('T')

LOG_LEVEL_NAMES = ['debug', 'info', 'warning', 'error', 'critical']

# Default configuration
DEFAULT_CONFIG = {
    # General settings
    'general': {
        'log_level': 'info',
        'log_file': None,
        'json_logs': False,
    },

    # Buffer thresholds (fraction of the buffering goal)
    'abr': {
        'low_buffer_threshold': 0.3,
        'high_buffer_threshold': 0.8,
        'initial_quality_index': 0,
    },

    # Flags passed to the host with every switch
    'switching': {
        'safe_margin_switch': False,
        'clear_buffer_switch': False,
    },

    # Bandwidth restrictions (bits per second)
    'restrictions': {
        'min_bandwidth': 0,
        'max_bandwidth': None,
        'restrict_to_screen_size': False,
    },

    # Periodic monitor settings
    'monitor': {
        'interval_ms': 1000,
        'recent_window_ms': 5000,
    },

    # Telemetry retention
    'telemetry': {
        'max_records': 10000,
    },
}


class Restrictions:
    """Bandwidth restrictions shared between the host and the engine.

    The engine writes max_bandwidth; min_bandwidth is read-only to it.
    """

    def __init__(self, min_bandwidth: int = 0, max_bandwidth: Optional[int] = None):
        self.min_bandwidth = min_bandwidth
        self.max_bandwidth = max_bandwidth

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min_bandwidth': self.min_bandwidth,
            'max_bandwidth': self.max_bandwidth,
        }

    def __repr__(self):
        return f"Restrictions(min_bandwidth={self.min_bandwidth}, max_bandwidth={self.max_bandwidth})"


class AbrConfiguration:
    """Configuration object shared by reference between host and engine.

    The engine owns restrictions.max_bandwidth and restrict_to_screen_size
    and treats every other field as read-only.
    """

    def __init__(self,
                 safe_margin_switch: bool = False,
                 clear_buffer_switch: bool = False,
                 restrictions: Optional[Restrictions] = None,
                 restrict_to_screen_size: bool = False,
                 low_buffer_threshold: float = 0.3,
                 high_buffer_threshold: float = 0.8,
                 monitor_interval: float = 1000,
                 recent_window: float = 5000,
                 max_records: Optional[int] = 10000):
        """Initialize the configuration.

        Args:
            safe_margin_switch: Passed to the host with every switch
            clear_buffer_switch: Passed to the host with every switch
            restrictions: Bandwidth restrictions (engine writes max_bandwidth)
            restrict_to_screen_size: Set by the engine on quality increase
            low_buffer_threshold: Buffer level below which quality steps down
            high_buffer_threshold: Buffer level above which quality steps up
            monitor_interval: Periodic monitor interval in milliseconds
            recent_window: Window for the recent segment count in milliseconds
            max_records: Telemetry retention (None for unbounded)

        Raises:
            ConfigurationError: If the values are inconsistent
        """
        self.safe_margin_switch = safe_margin_switch
        self.clear_buffer_switch = clear_buffer_switch
        self.restrictions = restrictions if restrictions is not None else Restrictions()
        self.restrict_to_screen_size = restrict_to_screen_size
        self.low_buffer_threshold = low_buffer_threshold
        self.high_buffer_threshold = high_buffer_threshold
        self.monitor_interval = monitor_interval
        self.recent_window = recent_window
        self.max_records = max_records

        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))

    def validate(self) -> List[str]:
        """Check the configuration values.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        if not self.low_buffer_threshold < self.high_buffer_threshold:
            errors.append(
                f"low_buffer_threshold ({self.low_buffer_threshold}) must be lower than "
                f"high_buffer_threshold ({self.high_buffer_threshold})"
            )
        if self.monitor_interval <= 0:
            errors.append(f"monitor_interval must be positive, got {self.monitor_interval}")
        if self.recent_window < 0:
            errors.append(f"recent_window must not be negative, got {self.recent_window}")
        if self.max_records is not None and self.max_records < 1:
            errors.append(f"max_records must be positive or None, got {self.max_records}")
        return errors

    @classmethod
    def from_dict(cls, config: ConfigDict) -> 'AbrConfiguration':
        """Create a configuration from a (partial) configuration dictionary.

        Missing values are taken from DEFAULT_CONFIG.

        Args:
            config: Nested configuration dictionary

        Returns:
            AbrConfiguration instance
        """
        merged = merge_configs(DEFAULT_CONFIG, config)
        restrictions = merged['restrictions']

        return cls(
            safe_margin_switch=bool(merged['switching']['safe_margin_switch']),
            clear_buffer_switch=bool(merged['switching']['clear_buffer_switch']),
            restrictions=Restrictions(
                min_bandwidth=restrictions['min_bandwidth'],
                max_bandwidth=restrictions['max_bandwidth'],
            ),
            restrict_to_screen_size=bool(restrictions['restrict_to_screen_size']),
            low_buffer_threshold=merged['abr']['low_buffer_threshold'],
            high_buffer_threshold=merged['abr']['high_buffer_threshold'],
            monitor_interval=merged['monitor']['interval_ms'],
            recent_window=merged['monitor']['recent_window_ms'],
            max_records=merged['telemetry']['max_records'],
        )

    def to_dict(self) -> ConfigDict:
        """Convert the configuration to a nested dictionary.

        Returns:
            Configuration dictionary in the DEFAULT_CONFIG layout
        """
        return {
            'abr': {
                'low_buffer_threshold': self.low_buffer_threshold,
                'high_buffer_threshold': self.high_buffer_threshold,
            },
            'switching': {
                'safe_margin_switch': self.safe_margin_switch,
                'clear_buffer_switch': self.clear_buffer_switch,
            },
            'restrictions': {
                'min_bandwidth': self.restrictions.min_bandwidth,
                'max_bandwidth': self.restrictions.max_bandwidth,
                'restrict_to_screen_size': self.restrict_to_screen_size,
            },
            'monitor': {
                'interval_ms': self.monitor_interval,
                'recent_window_ms': self.recent_window,
            },
            'telemetry': {
                'max_records': self.max_records,
            },
        }

    def __repr__(self):
        return (f"AbrConfiguration(thresholds=({self.low_buffer_threshold}, "
                f"{self.high_buffer_threshold}), restrictions={self.restrictions!r}, "
                f"restrict_to_screen_size={self.restrict_to_screen_size})")


def load_config_file(config_path: Union[str, Path]) -> ConfigDict:
    """Load configuration from a file.

    Supports JSON and YAML files.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the configuration file does not exist
        ValueError: If the configuration file has an unsupported format
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix == '.json':
        with open(config_path, 'r') as f:
            return json.load(f)
    elif suffix in ('.yaml', '.yml'):
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    else:
        raise ValueError(f"Unsupported configuration file format: {suffix}")


def merge_configs(base_config: ConfigDict, override_config: ConfigDict) -> ConfigDict:
    """Merge two configuration dictionaries.

    The override_config values take precedence over base_config values.

    Args:
        base_config: Base configuration dictionary
        override_config: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if (
            key in result and
            isinstance(result[key], dict) and
            isinstance(value, dict)
        ):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def get_default_config() -> ConfigDict:
    """Get the default configuration.

    Returns:
        Default configuration dictionary
    """
    return copy.deepcopy(DEFAULT_CONFIG)


def get_config_schema() -> Dict[str, Any]:
    """Get the JSON schema for configuration validation.

    Returns:
        JSON schema dictionary
    """
    return {
        "type": "object",
        "required": ["general", "abr", "switching", "restrictions", "monitor", "telemetry"],
        "properties": {
            "general": {
                "type": "object",
                "properties": {
                    "log_level": {"type": "string", "enum": LOG_LEVEL_NAMES},
                    "log_file": {"type": ["string", "null"]},
                    "json_logs": {"type": "boolean"}
                }
            },
            "abr": {
                "type": "object",
                "properties": {
                    "low_buffer_threshold": {"type": "number"},
                    "high_buffer_threshold": {"type": "number"},
                    "initial_quality_index": {"type": "integer", "minimum": 0}
                }
            },
            "switching": {
                "type": "object",
                "properties": {
                    "safe_margin_switch": {"type": "boolean"},
                    "clear_buffer_switch": {"type": "boolean"}
                }
            },
            "restrictions": {
                "type": "object",
                "properties": {
                    "min_bandwidth": {"type": "integer", "minimum": 0},
                    "max_bandwidth": {"type": ["integer", "null"], "minimum": 0},
                    "restrict_to_screen_size": {"type": "boolean"}
                }
            },
            "monitor": {
                "type": "object",
                "properties": {
                    "interval_ms": {"type": "number", "exclusiveMinimum": 0},
                    "recent_window_ms": {"type": "number", "exclusiveMinimum": 0}
                }
            },
            "telemetry": {
                "type": "object",
                "properties": {
                    "max_records": {"type": ["integer", "null"], "minimum": 1}
                }
            }
        }
    }


def validate_config(config: ConfigDict, schema: Optional[Dict[str, Any]] = None) -> List[str]:
    """Validate a configuration dictionary.

    The configuration is merged over DEFAULT_CONFIG and checked against the
    JSON schema; the threshold ordering is checked separately.

    Args:
        config: Configuration dictionary to validate
        schema: JSON schema (defaults to get_config_schema())

    Returns:
        List of validation error messages (empty if validation passed)
    """
    if schema is None:
        schema = get_config_schema()

    merged = merge_configs(DEFAULT_CONFIG, config)
    validator = jsonschema.Draft7Validator(schema)

    errors = []
    for error in sorted(validator.iter_errors(merged), key=lambda e: [str(p) for p in e.absolute_path]):
        path = '.'.join(str(p) for p in error.absolute_path) or '<root>'
        errors.append(f"{path}: {error.message}")

    abr = merged.get('abr')
    if not isinstance(abr, dict):
        return errors

    low = abr.get('low_buffer_threshold')
    high = abr.get('high_buffer_threshold')
    numbers = all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (low, high))
    if numbers and not low < high:
        errors.append(f"abr.low_buffer_threshold ({low}) must be lower than "
                      f"abr.high_buffer_threshold ({high})")

    return errors


def save_config(config: ConfigDict, file_path: Union[str, Path], format: str = 'json') -> None:
    """Save a configuration dictionary to a file.

    Args:
        config: Configuration dictionary
        file_path: Path to save the configuration file
        format: File format ('json' or 'yaml')

    Raises:
        ValueError: If the format is not supported
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    format = format.lower()

    if format == 'json':
        with open(file_path, 'w') as f:
            json.dump(config, f, indent=2)
    elif format in ('yaml', 'yml'):
        with open(file_path, 'w') as f:
            yaml.dump(config, f, default_flow_style=False)
    else:
        raise ValueError(f"Unsupported configuration format: {format}")


def get_config_value(
    config: ConfigDict,
    path: str,
    default: Optional[T] = None
) -> Optional[T]:
    """Get a value from a configuration dictionary using a dot-notation path.

    Args:
        config: Configuration dictionary
        path: Dot-notation path (e.g., 'abr.low_buffer_threshold')
        default: Default value to return if the path is not found

    Returns:
        Configuration value or default if not found
    """
    current = config
    for part in path.split('.'):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default

    return cast(T, current)


def set_config_value(config: ConfigDict, path: str, value: Any) -> None:
    """Set a value in a configuration dictionary using a dot-notation path.

    Creates intermediate dictionaries if they don't exist.

    Args:
        config: Configuration dictionary
        path: Dot-notation path (e.g., 'monitor.interval_ms')
        value: Value to set
    """
    parts = path.split('.')

    current = config
    for part in parts[:-1]:
        if part not in current or not isinstance(current[part], dict):
            current[part] = {}
        current = current[part]

    current[parts[-1]] = value


def load_config_from_args(args: argparse.Namespace) -> ConfigDict:
    """Load configuration from command-line arguments.

    Args:
        args: Command-line arguments

    Returns:
        Configuration dictionary
    """
    config = get_default_config()

    if getattr(args, 'config', None):
        file_config = load_config_file(args.config)
        config = merge_configs(config, file_config)

    cli_config: ConfigDict = {}

    if getattr(args, 'verbose', False):
        set_config_value(cli_config, 'general.log_level', 'debug')

    if getattr(args, 'log_level', None):
        set_config_value(cli_config, 'general.log_level', args.log_level)

    if getattr(args, 'low', None) is not None:
        set_config_value(cli_config, 'abr.low_buffer_threshold', args.low)

    if getattr(args, 'high', None) is not None:
        set_config_value(cli_config, 'abr.high_buffer_threshold', args.high)

    return merge_configs(config, cli_config)
