"""
Configuration Loader Module.

Provides the option loader that handles:
- Loading YAML and JSON option files.
- Schema validation using JSON Schema.
- Overlaying environment variables on top of file values.
- Converting the merged mapping into typed ``Options``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml
from loguru import logger

from xray_bridge import constants
from xray_bridge.config.options import Options
from xray_bridge.config.parsing import (
    as_array_of_strings,
    as_boolean,
    as_float,
    as_string,
    parse,
)
from xray_bridge.config.schema_registry import SchemaRegistry

SCHEMA_DIR = Path(__file__).parent / "schemas"

# env variable -> (group, option, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[Any], Any]]] = {
    constants.ENV_JIRA_PROJECT_KEY: ("jira", "project_key", as_string),
    constants.ENV_XRAY_API_URL: ("jira", "url", as_string),
    constants.ENV_JIRA_TEST_EXECUTION_ISSUE_KEY: ("jira", "test_execution_issue_key", as_string),
    constants.ENV_JIRA_TEST_EXECUTION_ISSUE_SUMMARY: (
        "jira", "test_execution_issue_summary", as_string,
    ),
    constants.ENV_JIRA_TEST_EXECUTION_ISSUE_DESCRIPTION: (
        "jira", "test_execution_issue_description", as_string,
    ),
    constants.ENV_JIRA_TEST_PLAN_ISSUE_KEY: ("jira", "test_plan_issue_key", as_string),
    constants.ENV_XRAY_UPLOAD_RESULTS: ("xray", "upload_results", as_boolean),
    constants.ENV_XRAY_UPLOAD_SCREENSHOTS: ("xray", "upload_screenshots", as_boolean),
    constants.ENV_XRAY_TEST_ENVIRONMENTS: ("xray", "test_environments", as_array_of_strings),
    constants.ENV_PLUGIN_ENABLED: ("plugin", "enabled", as_boolean),
    constants.ENV_PLUGIN_DEBUG: ("plugin", "debug", as_boolean),
    constants.ENV_PLUGIN_LOG_DIRECTORY: ("plugin", "log_directory", as_string),
    constants.ENV_PLUGIN_NORMALIZE_SCREENSHOT_NAMES: (
        "plugin", "normalize_screenshot_names", as_boolean,
    ),
    constants.ENV_PLUGIN_TIMEOUT_SEC: ("plugin", "timeout_sec", as_float),
    constants.ENV_PLUGIN_HEARTBEAT_INTERVAL_SEC: ("plugin", "heartbeat_interval_sec", as_float),
    constants.ENV_CUCUMBER_FEATURE_FILE_EXTENSION: ("cucumber", "feature_file_extension", as_string),
    constants.ENV_CUCUMBER_UPLOAD_FEATURES: ("cucumber", "upload_features", as_boolean),
}

STATUS_ENV_OVERRIDES: Dict[str, str] = {
    constants.ENV_XRAY_STATUS_PASSED: "passed",
    constants.ENV_XRAY_STATUS_FAILED: "failed",
    constants.ENV_XRAY_STATUS_PENDING: "pending",
    constants.ENV_XRAY_STATUS_SKIPPED: "skipped",
}


class ConfigurationError(Exception):
    """Raised when the configuration is invalid, incomplete or cannot be loaded."""

    pass


class ConfigLoader:
    """
    Option loader with schema validation and environment overrides.

    Environment variables always win over values from the option file,
    so CI pipelines can flip single switches (e.g. ``XRAY_UPLOAD_RESULTS``)
    without touching the checked-in file.

    Attributes:
        config_dir: Base directory for option files.
        schema_registry: Registry of JSON schemas for validation.
    """

    SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}
    SCHEMA_NAME = "options_schema"

    def __init__(
        self,
        config_dir: str | Path = ".",
        schema_dir: str | Path | None = None,
    ) -> None:
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory that relative option file names resolve against.
            schema_dir: Directory containing JSON schema files.
                        Defaults to the schemas bundled with the package.
        """
        self.config_dir = Path(config_dir)
        self.schema_registry = SchemaRegistry(schema_dir or SCHEMA_DIR)
        logger.debug(f"ConfigLoader initialized — config_dir={self.config_dir}")

    def load(
        self,
        filename: Optional[str] = None,
        env: Optional[Mapping[str, Any]] = None,
        *,
        validate: bool = True,
    ) -> Options:
        """
        Load options from an optional file plus environment overrides.

        Args:
            filename: Option file (YAML/JSON). None means defaults only.
            env: Environment mapping (e.g. ``os.environ``).
            validate: Whether to validate the merged options against the option schema.

        Returns:
            Typed options.

        Raises:
            ConfigurationError: If the file cannot be loaded, fails validation,
                or an environment value cannot be parsed.
            FileNotFoundError: If the option file does not exist.
        """
        data: Dict[str, Any] = {}
        if filename:
            file_path = self._resolve_path(filename)
            logger.info(f"Loading configuration: {file_path}")
            data = self._read_file(file_path)
            if validate:
                self._validate(data)

        data = self.apply_env_overrides(data, env or {})
        # environment values are subject to the same constraints as file values
        if validate:
            self._validate(data)
        options = Options.from_dict(data)
        logger.debug(
            f"Configuration loaded — project={options.jira.project_key or '(unset)'}, "
            f"upload_results={options.xray.upload_results}"
        )
        return options

    @staticmethod
    def apply_env_overrides(
        data: Dict[str, Any],
        env: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Overlay recognised environment variables on a configuration mapping.

        Raises:
            ConfigurationError: If an environment value cannot be parsed.
        """
        merged = {group: dict(values or {}) for group, values in data.items()}

        for variable, (group, option, parser) in ENV_OVERRIDES.items():
            try:
                value = parse(env, variable, parser)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {variable}: {e}") from e
            if value is not None:
                merged.setdefault(group, {})[option] = value
                logger.debug(f"Option {group}.{option} set from {variable}")

        for variable, status in STATUS_ENV_OVERRIDES.items():
            value = parse(env, variable, as_string)
            if value is not None:
                xray = merged.setdefault("xray", {})
                xray["status"] = dict(xray.get("status") or {}, **{status: value})

        return merged

    def _resolve_path(self, filename: str) -> Path:
        """Resolve a filename to a full path, checking config_dir first."""
        path = Path(filename)
        if path.is_absolute() and path.exists():
            return path

        config_path = self.config_dir / filename
        if config_path.exists():
            return config_path

        if path.exists():
            return path

        raise FileNotFoundError(
            f"Configuration file not found: {filename} "
            f"(searched in {self.config_dir} and current directory)"
        )

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML or JSON file."""
        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_EXTENSIONS:
            raise ConfigurationError(
                f"Unsupported file format '{suffix}'. "
                f"Supported: {sorted(self.SUPPORTED_EXTENSIONS)}"
            )

        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e

        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping (dict), "
                f"got {type(data).__name__}: {file_path}"
            )

        return data

    def _validate(self, data: Dict[str, Any]) -> None:
        """Validate option data against the bundled JSON schema."""
        try:
            self.schema_registry.validate(data, self.SCHEMA_NAME)
        except Exception as e:
            raise ConfigurationError(
                f"Configuration validation failed against schema '{self.SCHEMA_NAME}': {e}"
            ) from e
