"""
Xray Server Client.

Talks to Xray on a self-hosted Jira (Server/Data Center). Requests carry
the Jira personal access token or basic auth header directly.
"""

from __future__ import annotations

from typing import Any

from xray_bridge.client.base import XrayClient, item_errors
from xray_bridge.client.responses import UploadOutcome, issue_keys
from xray_bridge.conversion.models import SERVER
from xray_bridge.credentials import Credentials


class ServerClient(XrayClient):
    """Client for Xray server/DC (``/rest/raven/1.0/api``)."""

    DIALECT = SERVER

    API_PATH = "/rest/raven/1.0/api"

    def __init__(self, url: str, credentials: Credentials, **kwargs: Any) -> None:
        """
        Initialize the client.

        Args:
            url: Base URL of the Jira instance (e.g. "https://jira.example.com").
            credentials: PAT or basic auth credentials.
            **kwargs: See ``XrayClient``.
        """
        if not url:
            raise ValueError("Xray server client requires the Jira base URL")
        super().__init__(credentials, **kwargs)
        self.url = url.rstrip("/")

    @property
    def base_url(self) -> str:
        return f"{self.url}{self.API_PATH}"

    def execution_import_outcome(self, data: Any) -> UploadOutcome:
        """Read ``{"testExecIssue": {"id", "key", "self"}}``."""
        if isinstance(data, dict) and isinstance(data.get("testExecIssue"), dict):
            key = data["testExecIssue"].get("key")
            return UploadOutcome(created_or_updated_issues=[key] if key else [], response=data)
        return super().execution_import_outcome(data)

    def feature_import_outcome(self, data: Any) -> UploadOutcome:
        """
        Read the server feature import response.

        Newer Xray server versions answer with ``{"testIssues": {"success",
        "errors"}, "preConditionIssues": {"success", "errors"}}``; older ones
        with a bare list of test issues.
        """
        if isinstance(data, dict) and ("testIssues" in data or "preConditionIssues" in data):
            tests = data.get("testIssues") or {}
            preconditions = data.get("preConditionIssues") or {}
            return UploadOutcome(
                created_or_updated_issues=issue_keys(tests.get("success")),
                created_or_updated_preconditions=issue_keys(preconditions.get("success")),
                errors=item_errors(tests.get("errors")) + item_errors(preconditions.get("errors")),
                response=data,
            )
        return super().feature_import_outcome(data)
