"""
Canonical Result Models.

Tool-independent representation of a test run and its Xray JSON
serialization. Records are immutable once built; the same report can be
serialized for the cloud or the server dialect of the Xray API.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

CLOUD = "cloud"
SERVER = "server"


class Status(Enum):
    """Canonical test status."""

    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    SKIPPED = "skipped"


# Built-in Xray status names per dialect.
DEFAULT_STATUS_NAMES: Dict[str, Dict[Status, str]] = {
    CLOUD: {
        Status.PASSED: "PASSED",
        Status.FAILED: "FAILED",
        Status.PENDING: "TODO",
        Status.SKIPPED: "FAILED",
    },
    SERVER: {
        Status.PASSED: "PASS",
        Status.FAILED: "FAIL",
        Status.PENDING: "TODO",
        Status.SKIPPED: "FAIL",
    },
}


@dataclass(frozen=True)
class Attachment:
    """Evidence file attached to a test result. ``data`` is kept as-is."""

    name: str
    mime_type: str
    data: bytes

    def to_xray_dict(self) -> Dict[str, str]:
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "filename": self.name,
            "contentType": self.mime_type,
        }


@dataclass(frozen=True)
class StepResult:
    """Result of a single step (Gherkin scenarios)."""

    status: Status
    comment: Optional[str] = None


@dataclass(frozen=True)
class CanonicalTestRecord:
    """
    Normalized outcome of a single test.

    Attributes:
        title: Full test title, used for logging.
        status: Canonical status.
        started_at: Start time, ISO-8601 UTC truncated to seconds.
        finished_at: Finish time, ISO-8601 UTC truncated to seconds.
        duration_ms: Duration in milliseconds.
        issue_key: Jira Test issue key, if the test is linked to one.
        comment: Error message of a failed test.
        attachments: Evidence in capture order.
        steps: Step results, if any.
    """

    title: str
    status: Status
    started_at: str
    finished_at: str
    duration_ms: int
    issue_key: Optional[str] = None
    comment: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()
    steps: Optional[Tuple[StepResult, ...]] = None

    def to_xray_dict(
        self,
        dialect: str = CLOUD,
        status_names: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """Convert to the Xray JSON format of a single test."""
        result: Dict[str, Any] = {
            "start": self.started_at,
            "finish": self.finished_at,
            "status": xray_status(self.status, dialect, status_names),
        }
        if self.issue_key:
            result["testKey"] = self.issue_key
        if self.comment:
            result["comment"] = self.comment
        if self.attachments:
            evidence_key = "evidence" if dialect == CLOUD else "evidences"
            result[evidence_key] = [a.to_xray_dict() for a in self.attachments]
        if self.steps:
            result["steps"] = [
                {
                    "status": xray_status(step.status, dialect, status_names),
                    **({"comment": step.comment} if step.comment else {}),
                }
                for step in self.steps
            ]
        return result


@dataclass(frozen=True)
class ExecutionReport:
    """
    Canonical execution report of one test run.

    Attributes:
        project: Jira project key.
        start_date: Run start, ISO-8601 UTC truncated to seconds.
        finish_date: Run end, ISO-8601 UTC truncated to seconds.
        tests: Test records in run order.
        test_execution_issue_key: Existing Test Execution to update.
        summary: Execution summary; None keeps the existing issue's summary.
        description: Execution description; None keeps the existing one.
        test_plan_issue_key: Test Plan to attach the execution to.
        test_environments: Non-empty tuple of test environments.
        status_names: Custom Xray status names keyed by canonical status name.
    """

    project: str
    start_date: str
    finish_date: str
    tests: Tuple[CanonicalTestRecord, ...] = ()
    test_execution_issue_key: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    test_plan_issue_key: Optional[str] = None
    test_environments: Optional[Tuple[str, ...]] = None
    status_names: Tuple[Tuple[str, str], ...] = field(default=())

    def __post_init__(self) -> None:
        """Validate the report invariants."""
        if self.start_date > self.finish_date:
            raise ValueError(
                f"Execution start date {self.start_date} is after "
                f"finish date {self.finish_date}"
            )
        if self.test_environments is not None and len(self.test_environments) == 0:
            raise ValueError("Test environments must be omitted or non-empty")

    @property
    def total_tests(self) -> int:
        """Total number of test records."""
        return len(self.tests)

    def count(self, status: Status) -> int:
        """Number of tests with the given status."""
        return sum(1 for t in self.tests if t.status is status)

    def to_xray_dict(self, dialect: str = CLOUD) -> Dict[str, Any]:
        """
        Convert the report to the Xray JSON import format.

        Args:
            dialect: "cloud" or "server".

        Returns:
            Dictionary in Xray JSON import format.
        """
        status_names = dict(self.status_names)
        info: Dict[str, Any] = {
            "project": self.project,
            "startDate": self.start_date,
            "finishDate": self.finish_date,
        }
        if self.summary is not None:
            info["summary"] = self.summary
        if self.description is not None:
            info["description"] = self.description
        if self.test_plan_issue_key:
            info["testPlanKey"] = self.test_plan_issue_key
        if self.test_environments:
            info["testEnvironments"] = list(self.test_environments)

        payload: Dict[str, Any] = {
            "info": info,
            "tests": [t.to_xray_dict(dialect, status_names) for t in self.tests],
        }
        if self.test_execution_issue_key:
            payload["testExecutionKey"] = self.test_execution_issue_key
        return payload

    def to_json(self, dialect: str = CLOUD) -> str:
        """Serialize to a stable JSON string (sorted keys)."""
        return json.dumps(self.to_xray_dict(dialect), sort_keys=True, indent=2)


def xray_status(
    status: Status,
    dialect: str = CLOUD,
    status_names: Optional[Mapping[str, str]] = None,
) -> str:
    """Return the Xray status name for a canonical status."""
    if status_names and status.name in status_names:
        return status_names[status.name]
    try:
        return DEFAULT_STATUS_NAMES[dialect][status]
    except KeyError:
        raise ValueError(f"Unknown Xray dialect '{dialect}'") from None
