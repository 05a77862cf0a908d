"""
Result Normalizer Module.

Converts a Cypress run result (12 or 13 layout) into canonical test
records. Pure mapping: screenshot bytes are obtained through an injected
loader, no disk or network access happens here.
"""

from __future__ import annotations

import mimetypes
import re
from datetime import datetime, timedelta, timezone
from pathlib import PurePath
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from xray_bridge.conversion.models import Attachment, CanonicalTestRecord, Status
from xray_bridge.conversion.run_result import RunResultShape, SchemaMismatchError, resolve_shape

AttachmentLoader = Callable[[str], bytes]
FeatureIndex = Mapping[str, Sequence[str]]

STATUS_TABLE: Dict[str, Status] = {
    "passed": Status.PASSED,
    "failed": Status.FAILED,
    "pending": Status.PENDING,
    "skipped": Status.SKIPPED,
}

_GENERIC_ISSUE_KEY = r"[A-Z][A-Z0-9_]+-\d+"
_SCREENSHOT_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9.]+")
_FRACTION_PATTERN = re.compile(r"\.(\d+)")


class UnknownStatusError(Exception):
    """Raised when a test carries a status label outside the status table."""

    def __init__(self, label: Any, title: str = "") -> None:
        super().__init__(
            f"Unknown test status '{label}'"
            + (f" for test '{title}'" if title else "")
            + f". Known: {sorted(STATUS_TABLE)}"
        )
        self.label = label
        self.title = title


def map_status(label: Any, title: str = "") -> Status:
    """Map a tool status label to the canonical status."""
    try:
        return STATUS_TABLE[str(label).lower()]
    except KeyError:
        raise UnknownStatusError(label, title) from None


def parse_iso_time(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Fractional seconds of any length are accepted and cut to microseconds.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp.
    """
    text = _FRACTION_PATTERN.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip().replace("Z", "+00:00"), count=1
    )
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(value: Any, field: str) -> datetime:
    """Parse a run-result timestamp, naming the field when it is invalid."""
    try:
        return parse_iso_time(value)
    except (TypeError, ValueError, AttributeError):
        raise SchemaMismatchError(f"Invalid timestamp in {field}: {value!r}") from None


def format_iso_time(value: datetime) -> str:
    """Format as UTC with second precision; sub-seconds are dropped."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def extract_issue_key(
    title: Sequence[str],
    project_key: Optional[str] = None,
    feature_index: Optional[FeatureIndex] = None,
) -> Optional[str]:
    """
    Find the Jira Test issue key of a test.

    The title is searched first. Otherwise the scenario tags of the
    feature index are searched, accepting both ``@CYP-123`` and
    ``@TestName:CYP-123``.
    """
    key_pattern = re.escape(project_key) + r"-\d+" if project_key else _GENERIC_ISSUE_KEY

    match = re.search(rf"(?<![A-Za-z0-9_]){key_pattern}\b", " ".join(title))
    if match:
        return match.group(0)

    if feature_index and title:
        tag_pattern = re.compile(rf"^@?(?:TestName:)?({key_pattern})$")
        for tag in feature_index.get(title[-1], ()):
            tag_match = tag_pattern.match(tag.strip())
            if tag_match:
                return tag_match.group(1)
    return None


def normalize_screenshot_name(name: str) -> str:
    """Replace every run of characters outside [a-zA-Z0-9.] with '_'."""
    return _SCREENSHOT_NAME_PATTERN.sub("_", name)


class _Context:
    """Per-call conversion settings."""

    def __init__(
        self,
        project_key: Optional[str],
        feature_index: Optional[FeatureIndex],
        attachment_loader: Optional[AttachmentLoader],
        upload_screenshots: bool,
        normalize_screenshot_names: bool,
    ) -> None:
        self.project_key = project_key
        self.feature_index = feature_index
        self.attachment_loader = attachment_loader
        self.upload_screenshots = upload_screenshots
        self.normalize_screenshot_names = normalize_screenshot_names

    def attachments(self, paths: Iterable[str]) -> tuple:
        if not self.upload_screenshots:
            return ()
        if self.attachment_loader is None:
            return ()
        attachments = []
        for path in paths:
            name = PurePath(path).name
            mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
            if self.normalize_screenshot_names:
                name = normalize_screenshot_name(name)
            attachments.append(
                Attachment(name=name, mime_type=mime_type, data=self.attachment_loader(path))
            )
        return tuple(attachments)

    def record(
        self,
        test: Mapping[str, Any],
        started: datetime,
        duration_ms: int,
        screenshot_paths: Iterable[str],
    ) -> CanonicalTestRecord:
        title: List[str] = list(test["title"])
        full_title = " ".join(title)
        issue_key = extract_issue_key(title, self.project_key, self.feature_index)
        if issue_key is None:
            logger.warning(f"No Jira issue key found for test '{full_title}'")

        return CanonicalTestRecord(
            title=full_title,
            status=map_status(test["state"], full_title),
            started_at=format_iso_time(started),
            finished_at=format_iso_time(started + timedelta(milliseconds=duration_ms)),
            duration_ms=duration_ms,
            issue_key=issue_key,
            comment=test.get("displayError") or None,
            attachments=self.attachments(screenshot_paths),
        )


def _normalize_v12(raw_result: Mapping[str, Any], context: _Context) -> List[CanonicalTestRecord]:
    records = []
    for run_index, run in enumerate(raw_result["runs"]):
        for test_index, test in enumerate(run.get("tests") or []):
            attempt = test["attempts"][-1]
            screenshots = [
                screenshot["path"]
                for each in test["attempts"]
                for screenshot in each.get("screenshots") or []
            ]
            records.append(
                context.record(
                    test,
                    started=parse_timestamp(
                        attempt["startedAt"],
                        f"runs[{run_index}].tests[{test_index}].attempts[-1].startedAt",
                    ),
                    duration_ms=int(attempt.get("duration") or 0),
                    screenshot_paths=screenshots,
                )
            )
    return records


def _screenshot_of(file_name: str, stem: str) -> bool:
    # Cypress names screenshots "<title parts joined by ' -- '>[ (failed)][ (attempt 2)].png".
    return file_name in (stem, stem + ".png") or file_name.startswith(stem + " (")


def _normalize_v13(raw_result: Mapping[str, Any], context: _Context) -> List[CanonicalTestRecord]:
    records = []
    for run_index, run in enumerate(raw_result["runs"]):
        started = parse_timestamp(run["stats"]["startedAt"], f"runs[{run_index}].stats.startedAt")
        run_screenshots = [s["path"] for s in run.get("screenshots") or []]
        for test in run.get("tests") or []:
            stem = " -- ".join(test["title"])
            screenshots = [p for p in run_screenshots if _screenshot_of(PurePath(p).name, stem)]
            records.append(
                context.record(
                    test,
                    started=started,
                    duration_ms=int(test.get("duration") or 0),
                    screenshot_paths=screenshots,
                )
            )
    return records


_NORMALIZERS = {
    RunResultShape.V12: _normalize_v12,
    RunResultShape.V13: _normalize_v13,
}


def normalize(
    raw_result: Any,
    *,
    project_key: Optional[str] = None,
    feature_index: Optional[FeatureIndex] = None,
    attachment_loader: Optional[AttachmentLoader] = None,
    upload_screenshots: bool = True,
    normalize_screenshot_names: bool = False,
) -> List[CanonicalTestRecord]:
    """
    Convert a raw run result into canonical test records.

    Args:
        raw_result: Cypress run result (12 or 13 layout).
        project_key: Jira project key used to recognise issue keys.
        feature_index: Scenario name -> tags, from the feature file parser.
        attachment_loader: Returns the bytes of a screenshot path. Without
            a loader no attachments are produced.
        upload_screenshots: Whether screenshots become attachments.
        normalize_screenshot_names: Restrict attachment names to [a-zA-Z0-9.].

    Returns:
        One record per test outcome, in run order.

    Raises:
        SchemaMismatchError: If the run result matches no supported layout
            or carries an invalid timestamp.
        UnknownStatusError: If a test carries an unknown status label.
    """
    shape = resolve_shape(raw_result)
    context = _Context(
        project_key=project_key,
        feature_index=feature_index,
        attachment_loader=attachment_loader,
        upload_screenshots=upload_screenshots,
        normalize_screenshot_names=normalize_screenshot_names,
    )
    records = _NORMALIZERS[shape](raw_result, context)
    logger.debug(f"Normalized {len(records)} test(s) from a {shape.name} run result")
    return records
