"""
Execution Report Builder Module.

Assembles canonical test records and run metadata into an
``ExecutionReport``. Given identical inputs, the produced report is
identical, which keeps uploads reproducible.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger

from xray_bridge.config.loader import ConfigurationError
from xray_bridge.config.options import Options
from xray_bridge.conversion.models import ExecutionReport
from xray_bridge.conversion.normalizer import (
    AttachmentLoader,
    FeatureIndex,
    format_iso_time,
    normalize,
    parse_iso_time,
    parse_timestamp,
)
from xray_bridge.conversion.run_result import SchemaMismatchError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def read_attachment(path: str) -> bytes:
    """Default attachment loader: read the evidence file from disk."""
    return Path(path).read_bytes()


def epoch_millis(timestamp: str) -> int:
    """Milliseconds since the epoch of an ISO-8601 timestamp."""
    return (parse_iso_time(timestamp) - _EPOCH) // timedelta(milliseconds=1)


class ExecutionReportBuilder:
    """
    Builds Xray execution reports from raw run results.

    Usage::

        builder = ExecutionReportBuilder(options)
        report = builder.build(run_result)
        payload = report.to_xray_dict("cloud")
    """

    def __init__(
        self,
        options: Options,
        feature_index: Optional[FeatureIndex] = None,
        attachment_loader: Optional[AttachmentLoader] = read_attachment,
    ) -> None:
        """
        Initialize the builder.

        Args:
            options: Invocation options.
            feature_index: Scenario name -> tags, for issue linkage.
            attachment_loader: Loader for screenshot bytes; None skips evidence.
        """
        self.options = options
        self.feature_index = feature_index
        self.attachment_loader = attachment_loader

    def build(self, raw_result: Mapping[str, Any]) -> ExecutionReport:
        """
        Build the execution report of a completed run.

        Raises:
            ConfigurationError: If no Jira project key is configured.
            SchemaMismatchError: If the run result layout is not supported or
                its timestamps are invalid.
            UnknownStatusError: If a test carries an unknown status.
        """
        jira = self.options.jira
        if not jira.project_key:
            raise ConfigurationError(
                "A Jira project key is required to build an execution report "
                "(set jira.project_key or JIRA_PROJECT_KEY)"
            )

        tests = normalize(
            raw_result,
            project_key=jira.project_key,
            feature_index=self.feature_index,
            attachment_loader=self.attachment_loader,
            upload_screenshots=self.options.xray.upload_screenshots,
            normalize_screenshot_names=self.options.plugin.normalize_screenshot_names,
        )

        started = parse_timestamp(raw_result["startedTestsAt"], "startedTestsAt")
        ended = parse_timestamp(raw_result["endedTestsAt"], "endedTestsAt")
        if ended < started:
            raise SchemaMismatchError(
                f"Invalid timestamp in endedTestsAt: {raw_result['endedTestsAt']!r} "
                f"is before startedTestsAt {raw_result['startedTestsAt']!r}"
            )

        environments = self.options.xray.test_environments
        report = ExecutionReport(
            project=jira.project_key,
            start_date=format_iso_time(started),
            finish_date=format_iso_time(ended),
            tests=tuple(tests),
            test_execution_issue_key=jira.test_execution_issue_key or None,
            summary=self._summary(raw_result),
            description=self._description(raw_result),
            test_plan_issue_key=jira.test_plan_issue_key or None,
            test_environments=tuple(environments) if environments else None,
            status_names=tuple(sorted(self.options.xray.status.as_mapping().items())),
        )
        logger.info(
            f"Execution report built: {report.total_tests} tests for project "
            f"{report.project} ({report.start_date} - {report.finish_date})"
        )
        return report

    def _summary(self, raw_result: Mapping[str, Any]) -> Optional[str]:
        jira = self.options.jira
        # Keep the summary of an existing execution issue unless overridden.
        if jira.test_execution_issue_summary is not None:
            return jira.test_execution_issue_summary
        if jira.test_execution_issue_key:
            return None
        return f"Execution Results [{epoch_millis(raw_result['startedTestsAt'])}]"

    def _description(self, raw_result: Mapping[str, Any]) -> Optional[str]:
        jira = self.options.jira
        if jira.test_execution_issue_description is not None:
            return jira.test_execution_issue_description
        if jira.test_execution_issue_key:
            return None
        return (
            f"Cypress version: {raw_result['cypressVersion']}\n"
            f"Browser: {raw_result['browserName']} ({raw_result['browserVersion']})"
        )


def build(
    raw_result: Mapping[str, Any],
    options: Options,
    **kwargs: Any,
) -> ExecutionReport:
    """Functional shortcut for ``ExecutionReportBuilder(options, ...).build(raw_result)``."""
    return ExecutionReportBuilder(options, **kwargs).build(raw_result)
