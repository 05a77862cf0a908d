"""
Xray Bridge CLI.

Pipeline entry point for sending Cypress results and feature files to Xray.

Usage:
    xray-bridge --action upload-results --results cypress-results.json --config xray.yaml
    xray-bridge --action import-feature --feature cypress/e2e/login.cy.feature
    xray-bridge --action export-features --keys CYP-1,CYP-2 --output-dir features/
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger

from xray_bridge.client.base import MalformedResponseError, TransportError
from xray_bridge.client.responses import Skipped, UploadOutcome
from xray_bridge.config.loader import ConfigLoader, ConfigurationError
from xray_bridge.conversion.normalizer import UnknownStatusError
from xray_bridge.conversion.run_result import SchemaMismatchError
from xray_bridge.credentials import AuthenticationError, NoViableCredentialsError
from xray_bridge.logging_setup import init_logging
from xray_bridge.orchestrator import UploadContext, UploadOrchestrator

FATAL_ERRORS = (
    ConfigurationError,
    SchemaMismatchError,
    UnknownStatusError,
    NoViableCredentialsError,
    AuthenticationError,
    TransportError,
    MalformedResponseError,
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="xray-bridge",
        description="Send Cypress results and Cucumber feature files to Jira Xray",
    )
    parser.add_argument(
        "--action",
        choices=["upload-results", "import-feature", "export-features"],
        required=True,
        help="Operation to perform",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Option file (YAML/JSON); environment variables override it",
    )
    parser.add_argument(
        "--results",
        type=str,
        help="Cypress run result JSON file (upload-results)",
    )
    parser.add_argument(
        "--feature-index",
        type=str,
        help="JSON file mapping scenario names to their tags (upload-results)",
    )
    parser.add_argument(
        "--feature",
        action="append",
        default=[],
        help="Feature file to import; may be repeated (import-feature)",
    )
    parser.add_argument(
        "--keys",
        type=str,
        default="",
        help="Comma separated issue keys to export (export-features)",
    )
    parser.add_argument(
        "--filter",
        type=int,
        default=None,
        help="Saved Jira filter id to export (export-features)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=".",
        help="Directory receiving exported feature files (export-features)",
    )
    parser.add_argument(
        "--fail-on-item-errors",
        action="store_true",
        help="Exit with 1 if Xray rejected some of the imported items",
    )
    return parser.parse_args(argv)


def _read_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read JSON file {path}: {e}") from e


def _report(outcome: Any, fail_on_item_errors: bool) -> int:
    if isinstance(outcome, Skipped):
        logger.info(f"Skipped: {outcome.reason}")
        return 0
    if isinstance(outcome, UploadOutcome) and outcome.has_errors:
        for error in outcome.errors:
            key = f" [{error.entity_key}]" if error.entity_key else ""
            logger.warning(f"Xray rejected an item{key}: {error.message}")
        return 1 if fail_on_item_errors else 0
    return 0


def run(args: argparse.Namespace, env: Any) -> int:
    """Execute the requested action and return the exit code."""
    options = ConfigLoader().load(args.config, env)
    init_logging(options.plugin.debug, options.plugin.log_directory)

    feature_index = _read_json(args.feature_index) if args.feature_index else None
    context = UploadContext(options=options, env=env, feature_index=feature_index)
    orchestrator = UploadOrchestrator(context)

    if args.action == "upload-results":
        if not args.results:
            raise ConfigurationError("--results is required for upload-results")
        outcome = orchestrator.run(_read_json(args.results))
        return _report(outcome, args.fail_on_item_errors)

    if args.action == "import-feature":
        if not args.feature:
            raise ConfigurationError("--feature is required for import-feature")
        exit_code = 0
        for feature in args.feature:
            outcome = orchestrator.synchronize_feature(feature)
            exit_code = max(exit_code, _report(outcome, args.fail_on_item_errors))
        return exit_code

    keys = [key.strip() for key in args.keys.split(",") if key.strip()]
    result = context.get_client().export_features(
        keys=keys or None,
        filter_id=args.filter,
        output_dir=args.output_dir,
    )
    logger.info(f"Feature files written to: {result.path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point of the CLI."""
    args = parse_args(argv)
    try:
        return run(args, dict(os.environ))
    except FATAL_ERRORS as e:
        logger.error(str(e))
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
