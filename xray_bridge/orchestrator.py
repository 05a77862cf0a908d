"""
Upload Orchestrator Module.

Top-level control flow invoked when a test run has completed:

1. The run itself failed (the tool aborted) -> skipped, nothing else happens.
2. The plugin is disabled -> skipped.
3. Result upload is disabled -> skipped.
4. Otherwise: build the execution report, resolve credentials, upload.

Credentials are only resolved in step 4, so failed or disabled runs never
touch the credential configuration or the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from loguru import logger

from xray_bridge.client.base import XrayClient
from xray_bridge.client.factory import create_client_from_env
from xray_bridge.client.responses import Skipped, UploadOutcome
from xray_bridge.config.options import Options
from xray_bridge.conversion.normalizer import AttachmentLoader, FeatureIndex
from xray_bridge.conversion.report_builder import ExecutionReportBuilder, read_attachment
from xray_bridge.conversion.run_result import is_failed_run

SKIPPED_RUN_FAILED = "run failed"
SKIPPED_DISABLED = "disabled"
SKIPPED_NOT_A_FEATURE_FILE = "not a feature file"


@dataclass
class UploadContext:
    """
    Everything one invocation needs, passed explicitly.

    Attributes:
        options: Invocation options.
        env: Environment mapping holding the credentials.
        client: Xray client; created from ``env`` on first use if omitted.
        feature_index: Scenario name -> tags, for issue linkage.
        attachment_loader: Loader for screenshot bytes.
    """

    options: Options
    env: Mapping[str, Any] = field(default_factory=dict)
    client: Optional[XrayClient] = None
    feature_index: Optional[FeatureIndex] = None
    attachment_loader: Optional[AttachmentLoader] = read_attachment

    def get_client(self) -> XrayClient:
        """Return the client, resolving credentials once per context."""
        if self.client is None:
            self.client = create_client_from_env(self.env, self.options)
        return self.client


class UploadOrchestrator:
    """
    Decides whether and how the results of a run are sent to Xray.

    Usage::

        context = UploadContext(options=options, env=os.environ)
        outcome = UploadOrchestrator(context).run(run_result)
        if isinstance(outcome, Skipped):
            print(outcome.reason)
    """

    def __init__(self, context: UploadContext) -> None:
        self.context = context

    def run(self, raw_result: Mapping[str, Any]) -> Union[UploadOutcome, Skipped]:
        """
        Upload the results of a completed run.

        Returns:
            The upload outcome, or ``Skipped`` with the reason.

        Raises:
            ConfigurationError: If the project key is missing.
            SchemaMismatchError: If the run result layout is not supported.
            UnknownStatusError: If a test carries an unknown status.
            NoViableCredentialsError: If no credential set is complete.
            AuthenticationError: If authentication fails.
            TransportError: If the upload fails.
        """
        options = self.context.options
        if is_failed_run(raw_result):
            logger.error(
                f"Failed to run {raw_result.get('failures', 'all')} tests: "
                f"{raw_result.get('message', '(no message)')}"
            )
            logger.warning("Skipping results upload: the test run did not complete")
            return Skipped(SKIPPED_RUN_FAILED)

        if not options.plugin.enabled:
            logger.info("Xray bridge is disabled, skipping results upload")
            return Skipped(SKIPPED_DISABLED)

        if not options.xray.upload_results:
            logger.info("Results upload is disabled, skipping")
            return Skipped(SKIPPED_DISABLED)

        builder = ExecutionReportBuilder(
            options,
            feature_index=self.context.feature_index,
            attachment_loader=self.context.attachment_loader,
        )
        report = builder.build(raw_result)

        client = self.context.get_client()
        data = client.import_execution(report)
        outcome = client.execution_import_outcome(data)
        logger.info(
            f"Results upload finished: {report.total_tests} tests, "
            f"execution issue(s) {outcome.created_or_updated_issues}"
        )
        return outcome

    def synchronize_feature(self, feature_file: Union[str, Path]) -> Union[UploadOutcome, Skipped]:
        """
        Import a feature file into Xray when feature upload is enabled.

        Per-item errors are returned in ``UploadOutcome.errors``; deciding
        whether they fail the pipeline is up to the caller.

        Raises:
            NoViableCredentialsError: If no credential set is complete.
            AuthenticationError: If authentication fails.
            TransportError: If the import fails.
        """
        options = self.context.options
        if not options.plugin.enabled or not options.cucumber.upload_features:
            logger.debug(f"Feature upload disabled, skipping {feature_file}")
            return Skipped(SKIPPED_DISABLED)

        path = Path(feature_file)
        if not path.name.endswith(options.cucumber.feature_file_extension):
            logger.debug(
                f"Skipping {path}: does not end with "
                f"'{options.cucumber.feature_file_extension}'"
            )
            return Skipped(SKIPPED_NOT_A_FEATURE_FILE)

        client = self.context.get_client()
        data = client.import_feature(path, project_key=options.jira.project_key or None)
        return client.feature_import_outcome(data)
