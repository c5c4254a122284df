"""
Configuration loaders for YAML and JSON files.

This module provides functions to load and validate simulation configurations
from YAML/JSON files. Both the camelCase keys of the fluid scene files
(``smoothRadius``, ``gravityAccValue``, ...) and the snake_case field names of
SimulationConfig are accepted, flat or grouped under ``particles``, ``fluid``,
``simulation`` and ``viewport`` sections.
"""

from typing import Dict, Any, Union
from pathlib import Path
import re
import yaml
import json

from fluid_sph.core.simulation import SimulationConfig, TUNABLE_PARAMETERS


# Nested section → {key in section: SimulationConfig field}
FIELD_MAPPINGS = {
    'particles': {
        'count': 'particle_count',
        'mass': 'particle_mass',
        'start_point': 'start_point',
        'stride': 'stride',
        'max_width': 'max_width',
        'randomize': 'randomize',
    },
    'fluid': {
        'smooth_radius': 'smooth_radius',
        'collision_damping': 'collision_damping',
        'target_density': 'target_density',
        'pressure_multiplier': 'pressure_multiplier',
        'gravity': 'gravity_acc_value',
        'gravity_acc_value': 'gravity_acc_value',
    },
    'simulation': {
        'time_step': 'time_step',
        'dt': 'time_step',
        'look_ahead_time': 'look_ahead_time',
        'density_method': 'density_method',
        'log_interval': 'log_interval',
        'random_seed': 'random_seed',
        'verbose': 'verbose',
    },
    'viewport': {
        'width': 'viewport_width',
        'height': 'viewport_height',
    },
}

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])([A-Z])')


def to_snake_case(key: str) -> str:
    """Convert ``smoothRadius`` style keys to ``smooth_radius``."""
    return _CAMEL_BOUNDARY.sub(r'_\1', key).lower()


def load_config(filename: Union[str, Path], **overrides) -> SimulationConfig:
    """
    Load simulation configuration from YAML or JSON file.

    Supports nested sections and camelCase keys and flattens them to match
    SimulationConfig fields. Also supports command-line style overrides.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)
    **overrides : keyword arguments
        Override specific config values (e.g., particle_count=800, randomize=True)

    Returns
    -------
    config : SimulationConfig
        Validated simulation configuration

    Raises
    ------
    FileNotFoundError
        If configuration file does not exist
    ValueError
        If file format is unsupported or config is invalid

    Examples
    --------
    >>> config = load_config("configs/fluid_2d.yaml")
    >>> config = load_config("configs/fluid_2d.yaml", particle_count=1000, verbose=False)
    """
    filepath = Path(filename)
    flat_config = flatten_config(_read_config_file(filepath))

    # Apply overrides
    flat_config.update(overrides)

    # Create and validate config
    try:
        config = SimulationConfig(**flat_config)
    except Exception as e:
        raise ValueError(
            f"Configuration validation failed for {filepath}: {e}"
        ) from e

    return config


def load_tunable_parameters(filename: Union[str, Path]) -> Dict[str, float]:
    """
    Read only the reloadable coefficients from a configuration file.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    params : Dict[str, float]
        smooth_radius, collision_damping, target_density,
        pressure_multiplier and gravity_acc_value.

    Raises
    ------
    FileNotFoundError
        If configuration file does not exist
    ValueError
        If any coefficient is missing or not a number
    """
    filepath = Path(filename)
    flat = flatten_config(_read_config_file(filepath))

    missing = [name for name in TUNABLE_PARAMETERS if name not in flat]
    if missing:
        raise ValueError(f"{filepath} is missing reloadable parameters: {missing}")

    params = {}
    for name in TUNABLE_PARAMETERS:
        try:
            params[name] = float(flat[name])
        except (TypeError, ValueError) as e:
            raise ValueError(f"{filepath}: {name} must be a number, got {flat[name]!r}") from e

    return params


def _read_config_file(filepath: Path) -> Dict[str, Any]:
    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    # Determine file type and load
    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        return load_yaml(filepath)
    elif suffix == '.json':
        return load_json(filepath)
    raise ValueError(
        f"Unsupported config file format: {suffix}. "
        "Use .yaml, .yml, or .json"
    )


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Parameters
    ----------
    filepath : Path
        Path to YAML file

    Returns
    -------
    config_dict : Dict[str, Any]
        Configuration dictionary
    """
    with open(filepath, 'r') as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        config_dict = {}

    return config_dict


def load_json(filepath: Path) -> Dict[str, Any]:
    """
    Load JSON configuration file.

    Parameters
    ----------
    filepath : Path
        Path to JSON file

    Returns
    -------
    config_dict : Dict[str, Any]
        Configuration dictionary
    """
    with open(filepath, 'r') as f:
        config_dict = json.load(f)

    return config_dict


def flatten_config(config_dict: Dict[str, Any], parent_key: str = '') -> Dict[str, Any]:
    """
    Flatten nested configuration dictionary.

    Converts nested structures like:
        {'fluid': {'smoothRadius': 35, 'gravity': 9.8}}
    to:
        {'smooth_radius': 35, 'gravity_acc_value': 9.8}

    camelCase keys are converted to snake_case first, and
    ``particleCount`` at the top level maps to ``particle_count``.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Nested configuration dictionary
    parent_key : str
        Parent key for recursion

    Returns
    -------
    flat_dict : Dict[str, Any]
        Flattened configuration dictionary
    """
    flat = {}

    for raw_key, value in config_dict.items():
        key = to_snake_case(raw_key)

        # Check if this is a nested section with mappings
        if key in FIELD_MAPPINGS and isinstance(value, dict):
            for raw_subkey, subvalue in value.items():
                subkey = to_snake_case(raw_subkey)
                flat[FIELD_MAPPINGS[key].get(subkey, subkey)] = subvalue
        elif isinstance(value, dict):
            # Recursively flatten nested dicts without explicit mappings
            flat.update(flatten_config(value, parent_key=key))
        else:
            # Direct assignment
            flat[key] = value

    # YAML has no tuples
    if isinstance(flat.get('start_point'), list):
        flat['start_point'] = tuple(flat['start_point'])

    return flat


def save_config(config: SimulationConfig, filename: Union[str, Path]) -> None:
    """
    Save SimulationConfig to a YAML or JSON file.

    Parameters
    ----------
    config : SimulationConfig
        Configuration to save
    filename : str or Path
        Output file path (.yaml, .yml or .json)
    """
    filepath = Path(filename)

    # Convert config to dictionary
    config_dict = config.model_dump()

    # Organize into nested structure for readability
    organized = {
        'particles': {
            'count': config_dict['particle_count'],
            'mass': config_dict['particle_mass'],
            'start_point': list(config_dict['start_point']),
            'stride': config_dict['stride'],
            'max_width': config_dict['max_width'],
            'randomize': config_dict['randomize'],
        },
        'fluid': {
            'smooth_radius': config_dict['smooth_radius'],
            'collision_damping': config_dict['collision_damping'],
            'target_density': config_dict['target_density'],
            'pressure_multiplier': config_dict['pressure_multiplier'],
            'gravity_acc_value': config_dict['gravity_acc_value'],
        },
        'simulation': {
            'time_step': config_dict['time_step'],
            'look_ahead_time': config_dict['look_ahead_time'],
            'density_method': config_dict['density_method'],
            'log_interval': config_dict['log_interval'],
            'random_seed': config_dict['random_seed'],
            'verbose': config_dict['verbose'],
        },
        'viewport': {
            'width': config_dict['viewport_width'],
            'height': config_dict['viewport_height'],
        },
    }

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.dump(organized, f, default_flow_style=False, sort_keys=False)
    elif suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(organized, f, indent=2)
    else:
        raise ValueError(f"Unsupported output format: {suffix}. Use .yaml or .json")


def config_from_dict(config_dict: Dict[str, Any]) -> SimulationConfig:
    """
    Create SimulationConfig from dictionary (helper for programmatic use).

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Configuration dictionary, flat or nested, camelCase or snake_case

    Returns
    -------
    config : SimulationConfig
        Validated configuration
    """
    flat = flatten_config(config_dict)
    return SimulationConfig(**flat)
