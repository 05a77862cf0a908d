"""
Diagnostics Artifacts.

When a request to Xray fails, the complete failure context is written to a
file in the log directory so that the wire-level problem can be inspected
without re-running the pipeline:

- ``<operation>Error.json`` for HTTP failures that carry a response,
  containing ``{"error": {...}, "response": <body>}``.
- ``<operation>Error.log`` for everything else, containing the serialized
  failure.
"""

from __future__ import annotations

import json
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from loguru import logger


def describe_error(error: Any) -> Any:
    """Serialize a failure into JSON-compatible data (no request headers)."""
    if not isinstance(error, BaseException):
        return error

    description: Dict[str, Any] = {
        "name": type(error).__name__,
        "message": str(error),
    }
    if isinstance(error, requests.exceptions.RequestException):
        if error.request is not None:
            description["method"] = error.request.method
            description["url"] = error.request.url
        if error.response is not None:
            description["status"] = error.response.status_code
            description["statusText"] = error.response.reason
    description["traceback"] = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    return description


def response_body(response: requests.Response) -> Any:
    """Return the parsed JSON body, or the raw text if it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text


def write_error_file(
    error: Any,
    operation: str,
    log_directory: str | Path = "logs",
) -> Optional[Path]:
    """
    Write the diagnostics artifact of a failed operation.

    Writing is best-effort: problems are logged and None is returned, the
    caller's original error stays the one that is raised.

    Args:
        error: The failure (exception or any JSON-serializable object).
        operation: Operation name, e.g. "importExecution".
        log_directory: Target directory, created if missing.

    Returns:
        Path of the written artifact, or None if it could not be written.
    """
    directory = Path(log_directory)
    response = getattr(error, "response", None)
    structured = isinstance(error, requests.exceptions.RequestException) and response is not None

    if structured:
        path = directory / f"{operation}Error.json"
        content: Any = {"error": describe_error(error), "response": response_body(response)}
    else:
        path = directory / f"{operation}Error.log"
        content = describe_error(error)

    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content, indent=2, default=str), encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"Failed to write diagnostics for {operation} to {path}: {e}")
        return None

    resolved = path.resolve()
    logger.error(f"Complete error logs have been written to: {resolved}")
    return resolved
