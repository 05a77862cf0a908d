"""
Run Result Shapes.

Cypress changed the layout of its run results between major versions 12
and 13. Both layouts are handled as a tagged union: the shape is selected
by the major version in ``cypressVersion`` and the raw document is then
validated against the JSON schema of that shape.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from loguru import logger

from xray_bridge.config.schema_registry import SchemaRegistry, SchemaValidationError

SCHEMA_DIR = Path(__file__).parent / "schemas"

_VERSION_PATTERN = re.compile(r"^\s*v?(\d+)(?:\.\d+)*")

_registry = SchemaRegistry(SCHEMA_DIR)


class SchemaMismatchError(Exception):
    """Raised when a run result matches none of the supported shapes."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class RunResultShape(Enum):
    """Supported run-result layouts."""

    V12 = "run_result_v12"
    V13 = "run_result_v13"


def is_failed_run(raw_result: Any) -> bool:
    """Return True if the tool aborted before completing the run."""
    return isinstance(raw_result, Mapping) and raw_result.get("status") == "failed"


def detect_shape(raw_result: Any) -> RunResultShape:
    """
    Select the run-result shape from the ``cypressVersion`` discriminant.

    Raises:
        SchemaMismatchError: If the object is not a mapping or carries no
            parsable version.
    """
    if not isinstance(raw_result, Mapping):
        raise SchemaMismatchError(
            f"Run result must be a mapping, got {type(raw_result).__name__}"
        )

    version = raw_result.get("cypressVersion")
    match = _VERSION_PATTERN.match(version) if isinstance(version, str) else None
    if match is None:
        raise SchemaMismatchError(
            f"Run result carries no parsable cypressVersion: {version!r}"
        )

    if int(match.group(1)) >= 13:
        return RunResultShape.V13
    return RunResultShape.V12


def validate_shape(raw_result: Mapping[str, Any], shape: RunResultShape) -> None:
    """
    Validate a raw run result against the schema of the selected shape.

    Raises:
        SchemaMismatchError: If the document does not match the shape.
    """
    try:
        _registry.validate(raw_result, shape.value)
    except SchemaValidationError as e:
        raise SchemaMismatchError(
            f"Run result does not match the {shape.name} layout: {e}",
            errors=e.errors,
        ) from e
    logger.debug(f"Run result matches the {shape.name} layout")


def resolve_shape(raw_result: Any) -> RunResultShape:
    """Detect and validate the shape of a raw run result."""
    shape = detect_shape(raw_result)
    validate_shape(raw_result, shape)
    return shape
