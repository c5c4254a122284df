"""
Configuration module: parameter management and run configuration.

Provides YAML/JSON configuration loading and validation for FLUID-SPH runs.
"""

from fluid_sph.config.loaders import (
    load_config,
    load_tunable_parameters,
    save_config,
    config_from_dict,
    flatten_config,
)

__all__ = [
    'load_config',
    'load_tunable_parameters',
    'save_config',
    'config_from_dict',
    'flatten_config',
]
