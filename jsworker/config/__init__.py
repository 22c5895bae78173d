"""
Configuration module for jsworker.
"""
from jsworker.config.logging import setup_logging
from jsworker.config.defaults import (
    BindingNames,
    SentinelDefaults,
    EngineDefaults,
    BINDING_NAMES,
    SENTINELS,
    ENGINE_DEFAULTS,
    SCRIPT_NAME_PREFIX,
    SENTINEL_PREFIX,
)

__all__ = [
    "setup_logging",
    "BindingNames",
    "SentinelDefaults",
    "EngineDefaults",
    "BINDING_NAMES",
    "SENTINELS",
    "ENGINE_DEFAULTS",
    "SCRIPT_NAME_PREFIX",
    "SENTINEL_PREFIX",
]
