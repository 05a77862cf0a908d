"""
Unit Tests for the Xray Client Module.

Covers:
- Execution import: request shape, response passthrough, failure artifacts.
- Operation states, authentication failures and heartbeat lifetime.
- Feature import: multipart request, response partitioning per dialect.
- Feature export: Content-Disposition filename handling.
- Client factory: dialect selection from credentials.
"""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
import requests

from xray_bridge.client import (
    CloudClient,
    MalformedResponseError,
    OperationState,
    ServerClient,
    TransportError,
    create_client,
    create_client_from_env,
    parse_content_disposition,
)
from xray_bridge.client.responses import ItemError
from xray_bridge.config.options import Options
from xray_bridge.conversion.models import ExecutionReport
from xray_bridge.conversion.report_builder import build
from xray_bridge.credentials import (
    AuthenticationError,
    Credentials,
    JWTCredentials,
    NoViableCredentialsError,
    PATCredentials,
)

CLOUD_URL = "https://xray.cloud.getxray.app/api/v2"
SERVER_URL = "https://jira.example.com/rest/raven/1.0/api"
AUTH_HEADER = {"Authorization": "Bearer token"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def credentials() -> MagicMock:
    """Credentials returning a fixed bearer header."""
    fake = MagicMock(spec=Credentials)
    fake.get_authentication_header.return_value = dict(AUTH_HEADER)
    return fake


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def cloud_client(credentials: MagicMock, session: MagicMock, log_dir: Path) -> CloudClient:
    """A cloud client talking to the fake session."""
    return CloudClient(credentials, session=session, log_directory=log_dir)


@pytest.fixture
def server_client(credentials: MagicMock, session: MagicMock, log_dir: Path) -> ServerClient:
    """A server client talking to the fake session."""
    return ServerClient(
        "https://jira.example.com/", credentials, session=session, log_directory=log_dir
    )


@pytest.fixture
def report(run_result_v13: Dict[str, Any], options: Options) -> ExecutionReport:
    """Execution report of the Cypress 13 sample run."""
    return build(run_result_v13, options, attachment_loader=None)


@pytest.fixture
def feature_file(tmp_path: Path) -> Path:
    path = tmp_path / "login.feature"
    path.write_text(
        "Feature: Login\n\n  @CYP-10\n  Scenario: successful login\n    Given a user\n",
        encoding="utf-8",
    )
    return path


# ---------------------------------------------------------------------------
# Execution Import Tests
# ---------------------------------------------------------------------------


class TestImportExecution:
    """Tests for uploading execution reports."""

    def test_upload_success(
        self, cloud_client: CloudClient, session: MagicMock, report: ExecutionReport, make_response
    ) -> None:
        """Test that the report is posted and the response returned verbatim."""
        body = {"id": "10100", "key": "CYP-123", "self": "https://example.atlassian.net/rest/api/2/issue/10100"}
        session.post.return_value = make_response(200, json_data=body)

        data = cloud_client.import_execution(report)

        assert data == body
        session.post.assert_called_once_with(
            f"{CLOUD_URL}/import/execution",
            json=report.to_xray_dict("cloud"),
            headers=AUTH_HEADER,
            timeout=30.0,
        )
        assert cloud_client.state("importExecution") is OperationState.SUCCEEDED
        assert cloud_client.execution_import_outcome(data).created_or_updated_issues == ["CYP-123"]

    def test_http_failure_writes_json_artifact(
        self,
        cloud_client: CloudClient,
        session: MagicMock,
        report: ExecutionReport,
        make_response,
        log_dir: Path,
    ) -> None:
        """Test that an HTTP error writes one JSON artifact and raises TransportError."""
        session.post.return_value = make_response(400, json_data={"error": "bad project key"})

        with pytest.raises(TransportError) as exc_info:
            cloud_client.import_execution(report)

        artifact = log_dir / "importExecutionError.json"
        assert exc_info.value.artifact_path == artifact.resolve()
        assert str(artifact.resolve()) in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, requests.exceptions.HTTPError)

        content = json.loads(artifact.read_text(encoding="utf-8"))
        assert content["response"] == {"error": "bad project key"}
        assert content["error"]["status"] == 400
        assert sorted(p.name for p in log_dir.iterdir()) == ["importExecutionError.json"]
        assert cloud_client.state("importExecution") is OperationState.FAILED

    def test_network_failure_writes_log_artifact(
        self, cloud_client: CloudClient, session: MagicMock, report: ExecutionReport, log_dir: Path
    ) -> None:
        """Test that failures without a response write a .log artifact."""
        session.post.side_effect = requests.exceptions.ConnectionError("connection refused")

        with pytest.raises(TransportError, match="connection refused"):
            cloud_client.import_execution(report)

        artifact = log_dir / "importExecutionError.log"
        assert artifact.exists()
        assert json.loads(artifact.read_text(encoding="utf-8"))["name"] == "ConnectionError"

    def test_authentication_failure(
        self, cloud_client: CloudClient, credentials: MagicMock, session: MagicMock,
        report: ExecutionReport, log_dir: Path,
    ) -> None:
        """Test that failed authentication aborts before any request."""
        credentials.get_authentication_header.side_effect = AuthenticationError("rejected", 401)

        with pytest.raises(AuthenticationError):
            cloud_client.import_execution(report)

        session.post.assert_not_called()
        assert cloud_client.state("importExecution") is OperationState.FAILED
        assert not log_dir.exists()

    def test_authentication_url_passed(
        self, cloud_client: CloudClient, credentials: MagicMock, session: MagicMock,
        report: ExecutionReport, make_response,
    ) -> None:
        """Test that credentials receive the dialect's authentication endpoint."""
        session.post.return_value = make_response(200, json_data={"key": "CYP-1"})
        cloud_client.import_execution(report)
        credentials.get_authentication_header.assert_called_once_with(
            session=session, authentication_url=f"{CLOUD_URL}/authenticate", timeout=30.0
        )

    def test_jwt_exchange_before_upload(
        self, session: MagicMock, report: ExecutionReport, make_response, log_dir: Path
    ) -> None:
        """Test the full cloud flow: token exchange, then upload with the token."""
        session.post.side_effect = [
            make_response(200, json_data="jwt-token", url=f"{CLOUD_URL}/authenticate"),
            make_response(200, json_data={"key": "CYP-7"}),
        ]
        client = CloudClient(JWTCredentials("id", "secret"), session=session, log_directory=log_dir)

        client.import_execution(report)

        upload_call = session.post.call_args_list[1]
        assert upload_call.args[0] == f"{CLOUD_URL}/import/execution"
        assert upload_call.kwargs["headers"] == {"Authorization": "Bearer jwt-token"}

    def test_server_dialect(
        self, server_client: ServerClient, session: MagicMock, report: ExecutionReport, make_response
    ) -> None:
        """Test the server endpoint, payload dialect and response."""
        body = {"testExecIssue": {"id": "1", "key": "CYP-5", "self": "https://jira.example.com/1"}}
        session.post.return_value = make_response(200, json_data=body, url=f"{SERVER_URL}/import/execution")

        data = server_client.import_execution(report)

        call = session.post.call_args
        assert call.args[0] == f"{SERVER_URL}/import/execution"
        assert [t["status"] for t in call.kwargs["json"]["tests"]] == ["PASS", "FAIL", "TODO"]
        assert server_client.execution_import_outcome(data).created_or_updated_issues == ["CYP-5"]

    def test_state_idle_before_use(self, cloud_client: CloudClient) -> None:
        """Test that operations start out idle."""
        assert cloud_client.state("importExecution") is OperationState.IDLE


# ---------------------------------------------------------------------------
# Heartbeat Lifetime Tests
# ---------------------------------------------------------------------------


class TestHeartbeatLifetime:
    """Tests that heartbeat notices stop once a request settles."""

    def _slow(self, result: Any) -> Any:
        def respond(*args: Any, **kwargs: Any) -> Any:
            time.sleep(0.1)
            if isinstance(result, Exception):
                raise result
            return result
        return respond

    def _client(self, credentials, session, log_dir, notices: List[str]) -> CloudClient:
        return CloudClient(
            credentials,
            session=session,
            log_directory=log_dir,
            heartbeat_interval_sec=0.01,
            notify=notices.append,
        )

    def test_notices_stop_after_success(
        self, credentials, session: MagicMock, report: ExecutionReport, make_response, log_dir: Path
    ) -> None:
        """Test notices during a slow upload and none afterwards."""
        notices: List[str] = []
        session.post.side_effect = self._slow(make_response(200, json_data={"key": "CYP-1"}))

        self._client(credentials, session, log_dir, notices).import_execution(report)

        emitted = len(notices)
        assert emitted >= 1
        assert set(notices) == {"Still uploading..."}
        time.sleep(0.05)
        assert len(notices) == emitted
        assert not any(t.name == "xray-heartbeat" for t in threading.enumerate())

    def test_notices_stop_after_failure(
        self, credentials, session: MagicMock, report: ExecutionReport, log_dir: Path
    ) -> None:
        """Test that a failed upload also stops the notices."""
        notices: List[str] = []
        session.post.side_effect = self._slow(requests.exceptions.Timeout("deadline exceeded"))

        with pytest.raises(TransportError):
            self._client(credentials, session, log_dir, notices).import_execution(report)

        emitted = len(notices)
        time.sleep(0.05)
        assert len(notices) == emitted
        assert not any(t.name == "xray-heartbeat" for t in threading.enumerate())


# ---------------------------------------------------------------------------
# Feature Import Tests
# ---------------------------------------------------------------------------


class TestImportFeature:
    """Tests for importing Cucumber feature files."""

    CLOUD_RESPONSE = {
        "errors": ["Error in file login.feature: Precondition CYP-9 does not exist"],
        "updatedOrCreatedTests": [
            {"id": "32495", "key": "CYP-10", "self": "https://example.atlassian.net/rest/api/2/issue/32495"}
        ],
        "updatedOrCreatedPreconditions": [
            {"id": "32496", "key": "CYP-11", "self": "https://example.atlassian.net/rest/api/2/issue/32496"}
        ],
    }

    def test_import_cloud(
        self, cloud_client: CloudClient, session: MagicMock, feature_file: Path,
        make_response, log_messages: List[str],
    ) -> None:
        """Test the multipart request and the partitioned response."""
        session.post.return_value = make_response(200, json_data=self.CLOUD_RESPONSE)

        data = cloud_client.import_feature(feature_file, project_key="CYP")

        assert data == self.CLOUD_RESPONSE
        call = session.post.call_args
        assert call.args[0] == f"{CLOUD_URL}/import/feature"
        assert call.kwargs["params"] == {"projectKey": "CYP"}
        assert call.kwargs["files"]["file"][0] == "login.feature"
        assert call.kwargs["headers"] == AUTH_HEADER

        outcome = cloud_client.feature_import_outcome(data)
        assert outcome.created_or_updated_issues == ["CYP-10"]
        assert outcome.created_or_updated_preconditions == ["CYP-11"]
        assert outcome.errors == [ItemError(self.CLOUD_RESPONSE["errors"][0])]
        assert outcome.has_errors
        assert any("Encountered some errors during import" in m for m in log_messages)
        assert cloud_client.state("importFeature") is OperationState.SUCCEEDED

    def test_optional_params_omitted(
        self, cloud_client: CloudClient, session: MagicMock, feature_file: Path, make_response
    ) -> None:
        """Test that unset query parameters are not sent."""
        session.post.return_value = make_response(200, json_data={"updatedOrCreatedTests": []})
        cloud_client.import_feature(feature_file, project_id="10000", source="CYP")
        assert session.post.call_args.kwargs["params"] == {"projectId": "10000", "source": "CYP"}

    def test_missing_file(self, cloud_client: CloudClient, session: MagicMock, tmp_path: Path) -> None:
        """Test that a missing feature file fails before authenticating."""
        with pytest.raises(FileNotFoundError):
            cloud_client.import_feature(tmp_path / "nope.feature")
        session.post.assert_not_called()

    def test_http_failure(
        self, cloud_client: CloudClient, session: MagicMock, feature_file: Path,
        make_response, log_dir: Path,
    ) -> None:
        """Test that a rejected import writes its own artifact."""
        session.post.return_value = make_response(500, content=b"Internal Server Error")

        with pytest.raises(TransportError):
            cloud_client.import_feature(feature_file, project_key="CYP")

        content = json.loads((log_dir / "importFeatureError.json").read_text(encoding="utf-8"))
        assert content["response"] == "Internal Server Error"

    def test_server_outcome(self, server_client: ServerClient) -> None:
        """Test partitioning the server response."""
        data = {
            "testIssues": {
                "success": [{"issueKey": "CYP-10", "key": "CYP-10"}],
                "errors": [{"message": "Test with key CYP-12 was not found", "key": "CYP-12"}],
            },
            "preConditionIssues": {"success": [{"key": "CYP-11"}], "errors": []},
        }
        outcome = server_client.feature_import_outcome(data)
        assert outcome.created_or_updated_issues == ["CYP-10"]
        assert outcome.created_or_updated_preconditions == ["CYP-11"]
        assert outcome.errors == [ItemError("Test with key CYP-12 was not found", "CYP-12")]

    def test_server_legacy_outcome(self, server_client: ServerClient) -> None:
        """Test that a bare list is read as created tests."""
        outcome = server_client.feature_import_outcome([{"key": "CYP-10"}, {"key": "CYP-13"}])
        assert outcome.created_or_updated_issues == ["CYP-10", "CYP-13"]
        assert not outcome.has_errors


# ---------------------------------------------------------------------------
# Feature Export Tests
# ---------------------------------------------------------------------------


class TestExportFeatures:
    """Tests for exporting Cucumber feature files."""

    def test_export_by_keys(
        self, cloud_client: CloudClient, session: MagicMock, make_response, tmp_path: Path
    ) -> None:
        """Test that the bundle is written under the server-provided name."""
        session.get.return_value = make_response(
            200,
            content=b"PK\x03\x04bundle",
            headers={"Content-Disposition": 'attachment; filename="FeatureBundle.zip"'},
            url=f"{CLOUD_URL}/export/cucumber",
        )

        result = cloud_client.export_features(keys=["CYP-1", "CYP-2"], output_dir=tmp_path / "out")

        assert result.filename == "FeatureBundle.zip"
        assert result.path.read_bytes() == b"PK\x03\x04bundle"
        call = session.get.call_args
        assert call.args[0] == f"{CLOUD_URL}/export/cucumber"
        assert call.kwargs["params"] == {"keys": "CYP-1;CYP-2"}

    def test_export_by_filter(
        self, server_client: ServerClient, session: MagicMock, make_response, tmp_path: Path
    ) -> None:
        """Test exporting a saved filter."""
        session.get.return_value = make_response(
            200,
            content=b"Feature: Login",
            headers={"Content-Disposition": 'attachment; filename="CYP-1.feature"'},
        )
        result = server_client.export_features(filter_id=10100, output_dir=tmp_path)
        assert session.get.call_args.kwargs["params"] == {"filter": 10100}
        assert (tmp_path / "CYP-1.feature").read_text() == "Feature: Login"
        assert result.path == tmp_path / "CYP-1.feature"

    def test_export_requires_selection(self, cloud_client: CloudClient, session: MagicMock) -> None:
        """Test that an export needs keys or a filter."""
        with pytest.raises(ValueError):
            cloud_client.export_features()
        session.get.assert_not_called()

    def test_missing_content_disposition(
        self, cloud_client: CloudClient, session: MagicMock, make_response,
        tmp_path: Path, log_dir: Path,
    ) -> None:
        """Test that a response without filename is malformed."""
        session.get.return_value = make_response(200, content=b"Feature: Login")

        with pytest.raises(MalformedResponseError) as exc_info:
            cloud_client.export_features(keys=["CYP-1"], output_dir=tmp_path / "out")

        assert exc_info.value.artifact_path == (log_dir / "exportFeaturesError.log").resolve()
        assert not (tmp_path / "out").exists()
        assert cloud_client.state("exportFeatures") is OperationState.FAILED


class TestParseContentDisposition:
    """Tests for parse_content_disposition()."""

    @pytest.mark.parametrize(
        "header, filename",
        [
            ('attachment; filename="results.feature"', "results.feature"),
            ('attachment;filename="FeatureBundle.zip"', "FeatureBundle.zip"),
            ('attachment; filename="../../etc/evil.feature"', "evil.feature"),
        ],
    )
    def test_valid(self, header: str, filename: str) -> None:
        """Test extracting the quoted file name."""
        assert parse_content_disposition(header) == filename

    @pytest.mark.parametrize(
        "header",
        [None, "", "attachment", 'attachment; filename="', 'attachment; filename=""'],
    )
    def test_invalid(self, header) -> None:
        """Test that headers without a usable name are malformed."""
        with pytest.raises(MalformedResponseError):
            parse_content_disposition(header)


# ---------------------------------------------------------------------------
# Client Factory Tests
# ---------------------------------------------------------------------------


class TestClientFactory:
    """Tests for create_client() and create_client_from_env()."""

    def test_jwt_selects_cloud(self, options: Options, session: MagicMock) -> None:
        """Test that JWT credentials select the cloud dialect."""
        client = create_client(JWTCredentials("id", "secret"), options, session=session)
        assert isinstance(client, CloudClient)
        assert client.base_url == CLOUD_URL

    def test_pat_selects_server(self, options: Options, session: MagicMock) -> None:
        """Test that PAT credentials select the server dialect."""
        client = create_client(
            PATCredentials("token"), options, api_url="https://jira.internal", session=session
        )
        assert isinstance(client, ServerClient)
        assert client.base_url == "https://jira.internal/rest/raven/1.0/api"

    def test_options_applied(self, options: Options, session: MagicMock) -> None:
        """Test that timeouts, log directory and TLS settings are applied."""
        options.plugin.timeout_sec = 12.5
        options.openssl.root_ca_path = "/etc/ssl/ca.pem"
        client = create_client(JWTCredentials("id", "secret"), options, session=session)
        assert client.timeout_sec == 12.5
        assert client.log_directory == Path(options.plugin.log_directory)
        assert session.verify == "/etc/ssl/ca.pem"

    def test_server_without_url(self, session: MagicMock) -> None:
        """Test that the server dialect needs a URL."""
        with pytest.raises(ValueError):
            create_client(PATCredentials("token"), Options(), session=session)

    def test_from_env(self, options: Options, session: MagicMock) -> None:
        """Test resolving credentials and URL from the environment."""
        env = {"XRAY_API_TOKEN": "token", "XRAY_API_URL": "https://jira.internal"}
        client = create_client_from_env(env, options, session=session)
        assert isinstance(client, ServerClient)
        assert client.url == "https://jira.internal"

    def test_from_env_without_credentials(self, options: Options) -> None:
        """Test that an environment without credentials is rejected."""
        with pytest.raises(NoViableCredentialsError):
            create_client_from_env({}, options)

    def test_context_manager_closes_session(self, options: Options, session: MagicMock) -> None:
        """Test that leaving the context closes the HTTP session."""
        with create_client(JWTCredentials("id", "secret"), options, session=session) as client:
            assert session.headers["Accept"] == "application/json"
            assert client.state("importExecution") is OperationState.IDLE
        session.close.assert_called_once()
