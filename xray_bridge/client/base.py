"""
Xray REST API Client.

Shared protocol of the Xray cloud and Xray server clients. Every operation
runs through the same states::

    IDLE -> AUTHENTICATING -> IN_FLIGHT -> SUCCEEDED | FAILED

- AUTHENTICATING obtains the authorization header (a network round-trip
  for JWT credentials). A failure aborts the operation, there are no
  retries.
- IN_FLIGHT is the actual request. A heartbeat reports liveness until the
  request settles.
- FAILED writes exactly one diagnostics artifact and raises a
  ``TransportError`` naming it.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from pathlib import Path, PurePath
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import requests
from loguru import logger

from xray_bridge.client.heartbeat import DEFAULT_INTERVAL_SEC, Notify, heartbeat
from xray_bridge.client.responses import ExportResult, ItemError, UploadOutcome, issue_keys
from xray_bridge.conversion.models import ExecutionReport
from xray_bridge.credentials import AuthenticationError, Credentials, HTTPHeader
from xray_bridge.diagnostics import write_error_file


class OperationState(Enum):
    """Lifecycle state of a client operation."""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TransportError(Exception):
    """Raised when a request to Xray fails."""

    def __init__(
        self,
        operation: str,
        artifact_path: Optional[Path],
        cause: Optional[BaseException] = None,
    ) -> None:
        message = f"Xray operation '{operation}' failed"
        if cause is not None:
            message += f": {cause}"
        if artifact_path is not None:
            message += f". Complete error logs have been written to: {artifact_path}"
        super().__init__(message)
        self.operation = operation
        self.artifact_path = artifact_path


class MalformedResponseError(Exception):
    """Raised when an Xray response lacks data the protocol relies on."""

    def __init__(self, message: str, artifact_path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.artifact_path = artifact_path


def parse_content_disposition(header: Optional[str]) -> str:
    """
    Extract the quoted filename of a ``Content-Disposition`` header.

    Example:
        'attachment; filename="results.feature"' -> "results.feature"

    Raises:
        MalformedResponseError: If the header is missing or holds no quoted name.
    """
    if not header:
        raise MalformedResponseError("Response carries no Content-Disposition header")

    start = header.find('"')
    end = header.rfind('"')
    if start == -1 or end <= start:
        raise MalformedResponseError(
            f"Content-Disposition header holds no quoted filename: {header!r}"
        )

    filename = PurePath(header[start + 1:end]).name
    if not filename:
        raise MalformedResponseError(
            f"Content-Disposition header holds an empty filename: {header!r}"
        )
    return filename


def item_errors(raw: Optional[List[Any]]) -> List[ItemError]:
    return [ItemError.from_raw(e) for e in raw or []]


class XrayClient(ABC):
    """
    Base client for the Xray REST API.

    Subclasses define the dialect: the base URL, whether an authentication
    endpoint is used, and how dialect-specific responses are read.

    Usage::

        client = CloudClient(JWTCredentials("id", "secret"), log_directory="logs")
        response = client.import_execution(report)
    """

    DIALECT: str = ""

    OPERATION_IMPORT_EXECUTION = "importExecution"
    OPERATION_IMPORT_FEATURE = "importFeature"
    OPERATION_EXPORT_FEATURES = "exportFeatures"

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout_sec: float = 30.0,
        log_directory: Union[str, Path] = "logs",
        heartbeat_interval_sec: float = DEFAULT_INTERVAL_SEC,
        verify: Any = True,
        session: Optional[requests.Session] = None,
        notify: Optional[Notify] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            credentials: Credentials resolved for this run.
            timeout_sec: Deadline of every request.
            log_directory: Directory for diagnostics artifacts.
            heartbeat_interval_sec: Interval of "still working" notices.
            verify: TLS verification flag or CA bundle path (requests ``verify``).
            session: HTTP session to use; a new one is created if omitted.
            notify: Receiver of heartbeat notices (defaults to the logger).
        """
        self.credentials = credentials
        self.timeout_sec = timeout_sec
        self.log_directory = Path(log_directory)
        self.heartbeat_interval_sec = heartbeat_interval_sec
        self.notify = notify
        self._session = session or requests.Session()
        self._session.verify = verify
        self._session.headers.update({"Accept": "application/json"})
        self.states: Dict[str, OperationState] = {}

    @property
    @abstractmethod
    def base_url(self) -> str:
        """Base URL of the Xray REST API of this dialect."""

    @property
    def authentication_url(self) -> Optional[str]:
        """URL that exchanges credentials for a token, if the dialect has one."""
        return None

    def state(self, operation: str) -> OperationState:
        """Last known state of an operation."""
        return self.states.get(operation, OperationState.IDLE)

    def _set_state(self, operation: str, state: OperationState) -> None:
        self.states[operation] = state
        logger.debug(f"Xray {operation}: {state.value}")

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _authenticate(self, operation: str) -> HTTPHeader:
        self._set_state(operation, OperationState.AUTHENTICATING)
        try:
            return self.credentials.get_authentication_header(
                session=self._session,
                authentication_url=self.authentication_url,
                timeout=self.timeout_sec,
            )
        except AuthenticationError:
            self._set_state(operation, OperationState.FAILED)
            raise

    @contextmanager
    def _in_flight(self, operation: str, notice: str) -> Iterator[None]:
        """Run the request of an operation with heartbeat and failure capture."""
        self._set_state(operation, OperationState.IN_FLIGHT)
        try:
            with heartbeat(notice, self.heartbeat_interval_sec, self.notify):
                yield
        except MalformedResponseError as e:
            self._set_state(operation, OperationState.FAILED)
            e.artifact_path = write_error_file(e, operation, self.log_directory)
            raise
        except Exception as e:
            self._set_state(operation, OperationState.FAILED)
            artifact_path = write_error_file(e, operation, self.log_directory)
            logger.error(f"Xray {operation} failed: {e}")
            raise TransportError(operation, artifact_path, e) from e
        self._set_state(operation, OperationState.SUCCEEDED)

    # ------------------------------------------------------------------
    # Execution results
    # ------------------------------------------------------------------

    def import_execution(self, report: ExecutionReport) -> Any:
        """
        Upload an execution report as a single request.

        Returns:
            The response body, verbatim.

        Raises:
            AuthenticationError: If authentication fails.
            TransportError: If the upload fails.
        """
        operation = self.OPERATION_IMPORT_EXECUTION
        header = self._authenticate(operation)
        logger.info(f"Uploading test results ({report.total_tests} tests)...")

        with self._in_flight(operation, "Still uploading..."):
            response = self._session.post(
                self._url("/import/execution"),
                json=report.to_xray_dict(self.DIALECT),
                headers=header,
                timeout=self.timeout_sec,
            )
            response.raise_for_status()
            data = response.json()

        logger.success(f"Successfully uploaded test execution results: {json.dumps(data)}")
        return data

    def execution_import_outcome(self, data: Any) -> UploadOutcome:
        """Read an execution import response (``{"id", "key", "self"}``)."""
        key = data.get("key") if isinstance(data, dict) else None
        return UploadOutcome(
            created_or_updated_issues=[key] if key else [],
            response=data,
        )

    # ------------------------------------------------------------------
    # Feature files
    # ------------------------------------------------------------------

    def import_feature(
        self,
        file: Union[str, Path],
        project_key: Optional[str] = None,
        project_id: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Any:
        """
        Import a Cucumber feature file (multipart upload).

        Tests, preconditions and per-item errors of the response are logged
        separately; per-item errors do not fail the operation.

        Returns:
            The response body, verbatim.

        Raises:
            FileNotFoundError: If the feature file does not exist.
            AuthenticationError: If authentication fails.
            TransportError: If the import fails.
        """
        path = Path(file)
        if not path.is_file():
            raise FileNotFoundError(f"Feature file not found: {path}")

        operation = self.OPERATION_IMPORT_FEATURE
        header = self._authenticate(operation)
        logger.info(f"Importing cucumber feature file: {path}")

        params = {"projectKey": project_key, "projectId": project_id, "source": source}
        with self._in_flight(operation, "Still importing..."):
            with path.open("rb") as stream:
                response = self._session.post(
                    self._url("/import/feature"),
                    files={"file": (path.name, stream)},
                    params={k: v for k, v in params.items() if v is not None},
                    headers=header,
                    timeout=self.timeout_sec,
                )
            response.raise_for_status()
            data = response.json()

        outcome = self.feature_import_outcome(data)
        if outcome.created_or_updated_issues:
            logger.info(
                "Successfully updated or created test issues: "
                f"{json.dumps(outcome.created_or_updated_issues)}"
            )
        if outcome.created_or_updated_preconditions:
            logger.info(
                "Successfully updated or created precondition issues: "
                f"{json.dumps(outcome.created_or_updated_preconditions)}"
            )
        if outcome.errors:
            logger.error(
                "Encountered some errors during import: "
                f"{json.dumps([e.message for e in outcome.errors])}"
            )
        return data

    def feature_import_outcome(self, data: Any) -> UploadOutcome:
        """
        Partition a feature import response.

        Reads ``{"updatedOrCreatedTests", "updatedOrCreatedPreconditions",
        "errors"}``; a bare list is read as created/updated tests.
        """
        if isinstance(data, list):
            return UploadOutcome(created_or_updated_issues=issue_keys(data), response=data)
        if not isinstance(data, dict):
            return UploadOutcome(response=data)
        return UploadOutcome(
            created_or_updated_issues=issue_keys(data.get("updatedOrCreatedTests")),
            created_or_updated_preconditions=issue_keys(
                data.get("updatedOrCreatedPreconditions")
            ),
            errors=item_errors(data.get("errors")),
            response=data,
        )

    def export_features(
        self,
        keys: Optional[Sequence[str]] = None,
        filter_id: Optional[int] = None,
        output_dir: Union[str, Path] = ".",
    ) -> ExportResult:
        """
        Export Cucumber feature files by issue keys and/or a saved filter.

        The output filename is taken from the quoted name in the
        ``Content-Disposition`` response header.

        Raises:
            ValueError: If neither keys nor a filter is given.
            AuthenticationError: If authentication fails.
            MalformedResponseError: If the filename cannot be determined.
            TransportError: If the export fails.
        """
        if not keys and filter_id is None:
            raise ValueError("Exporting feature files requires issue keys or a filter id")

        operation = self.OPERATION_EXPORT_FEATURES
        header = self._authenticate(operation)
        logger.info("Exporting cucumber tests...")

        params: Dict[str, Any] = {}
        if keys:
            params["keys"] = ";".join(keys)
        if filter_id is not None:
            params["filter"] = filter_id

        with self._in_flight(operation, "Still exporting..."):
            response = self._session.get(
                self._url("/export/cucumber"),
                params=params,
                headers=header,
                timeout=self.timeout_sec,
            )
            response.raise_for_status()
            filename = parse_content_disposition(response.headers.get("Content-Disposition"))
            target = Path(output_dir) / filename
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(response.content)

        logger.success(f"Exported cucumber tests to: {target}")
        return ExportResult(filename=filename, path=target)

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
        logger.debug("Xray client session closed")

    def __enter__(self) -> "XrayClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
