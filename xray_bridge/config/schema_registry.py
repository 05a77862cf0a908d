"""
Schema Registry Module.

Holds the JSON schemas shipped with xray-bridge (the option file schema
and the Cypress 12/13 run-result shapes) as compiled Draft 7 validators.
A schema file is read, checked against the Draft 7 meta-schema and
compiled the first time one of its documents is validated.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import jsonschema
from jsonschema.exceptions import SchemaError, ValidationError
from loguru import logger


class SchemaValidationError(Exception):
    """Raised when a document, or a schema itself, is invalid."""

    def __init__(self, message: str, errors: List[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def _format_error(error: ValidationError) -> str:
    """Render one violation as ``[jira -> url] 1 is not of type 'string'``."""
    location = " -> ".join(str(part) for part in error.absolute_path) or "(root)"
    return f"  [{location}] {error.message}"


class SchemaRegistry:
    """
    Named Draft 7 validators backed by ``<schema_dir>/<name>.json`` files.

    Usage::

        registry = SchemaRegistry(SCHEMA_DIR)
        registry.validate(document, "run_result_v13")
    """

    def __init__(self, schema_dir: str | Path) -> None:
        self.schema_dir = Path(schema_dir)
        self._validators: Dict[str, jsonschema.Draft7Validator] = {}

    def validator(self, schema_name: str) -> jsonschema.Draft7Validator:
        """
        Return the compiled validator of a schema, compiling it on first use.

        Raises:
            FileNotFoundError: If ``<schema_name>.json`` does not exist.
            SchemaValidationError: If the file is not JSON or not a Draft 7 schema.
        """
        cached = self._validators.get(schema_name)
        if cached is not None:
            return cached

        schema_path = self.schema_dir / f"{schema_name}.json"
        if not schema_path.is_file():
            raise FileNotFoundError(f"Schema not found: {schema_name} (expected at {schema_path})")

        try:
            schema = json.loads(schema_path.read_text(encoding="utf-8"))
            jsonschema.Draft7Validator.check_schema(schema)
        except (OSError, json.JSONDecodeError) as e:
            raise SchemaValidationError(f"Failed to load schema {schema_name}: {e}") from e
        except SchemaError as e:
            raise SchemaValidationError(
                f"Schema {schema_name} is not a valid Draft 7 schema: {e.message}",
                errors=[_format_error(e)],
            ) from e

        compiled = jsonschema.Draft7Validator(schema)
        self._validators[schema_name] = compiled
        logger.debug(f"Schema compiled: {schema_name} ({schema_path})")
        return compiled

    def validate(self, data: Any, schema_name: str) -> None:
        """
        Validate a document against a named schema.

        Every violation is collected, ordered by document location.

        Raises:
            SchemaValidationError: If the document violates the schema.
        """
        violations = sorted(
            self.validator(schema_name).iter_errors(data),
            key=lambda error: [str(part) for part in error.absolute_path],
        )
        if not violations:
            return

        messages = [_format_error(error) for error in violations]
        raise SchemaValidationError(
            f"Schema validation failed for '{schema_name}' "
            f"({len(messages)} error(s)):\n" + "\n".join(messages),
            errors=messages,
        )
