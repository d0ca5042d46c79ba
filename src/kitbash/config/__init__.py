"""Configuration loading."""

from kitbash.config.schema import (
    KitbashConfig,
    load_config,
    parse_color,
    validate_config,
)

__all__ = [
    "KitbashConfig",
    "load_config",
    "parse_color",
    "validate_config",
]
