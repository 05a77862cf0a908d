"""
Configuration Management Module.

Handles loading and validation of:
- Option files (JSON/YAML) validated against the bundled schema.
- Environment variable overrides.
- Typed option groups shared by conversion, clients and orchestrator.
"""

from xray_bridge.config.loader import ConfigLoader, ConfigurationError
from xray_bridge.config.options import (
    CucumberOptions,
    JiraOptions,
    OpenSSLOptions,
    Options,
    PluginOptions,
    StatusOptions,
    XrayOptions,
)
from xray_bridge.config.schema_registry import SchemaRegistry, SchemaValidationError

__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "CucumberOptions",
    "JiraOptions",
    "OpenSSLOptions",
    "Options",
    "PluginOptions",
    "SchemaRegistry",
    "SchemaValidationError",
    "StatusOptions",
    "XrayOptions",
]
