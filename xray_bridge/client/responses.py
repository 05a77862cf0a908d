"""
Xray Response Models.

Typed views of Xray response bodies. Per-item errors reported inside a
successful response are data, not exceptions: the items without errors
were still imported.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional


@dataclass(frozen=True)
class ItemError:
    """An item the server rejected while the request as a whole succeeded."""

    message: str
    entity_key: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "ItemError":
        if isinstance(raw, dict):
            message = raw.get("message") or raw.get("error") or json.dumps(raw, sort_keys=True)
            key = raw.get("key") or raw.get("issueKey") or raw.get("testKey")
            return cls(message=str(message), entity_key=key)
        return cls(message=str(raw))


@dataclass
class UploadOutcome:
    """
    Result of an upload or import.

    Attributes:
        created_or_updated_issues: Keys (or raw entries) of Test/Test Execution issues.
        created_or_updated_preconditions: Keys (or raw entries) of Precondition issues.
        errors: Server-reported per-item errors.
        response: The response body, verbatim.
    """

    created_or_updated_issues: List[Any] = field(default_factory=list)
    created_or_updated_preconditions: List[Any] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)
    response: Any = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class ExportResult:
    """A feature file bundle exported from Xray."""

    filename: str
    path: Path


@dataclass(frozen=True)
class Skipped:
    """An upload that was deliberately not attempted."""

    reason: str


def issue_keys(entries: Any) -> List[Any]:
    """Reduce issue entries ({"key": ...} or plain keys) to keys where possible."""
    keys = []
    for entry in entries or []:
        if isinstance(entry, dict) and "key" in entry:
            keys.append(entry["key"])
        else:
            keys.append(entry)
    return keys
