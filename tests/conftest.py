"""
Root conftest.py: shared Pytest fixtures.

Provides fixtures for:
- Cypress run results in the 12 and 13 layouts (plus an aborted run)
- Options with a configured Jira project
- Hand-built ``requests.Response`` objects and a fake HTTP session
- Capturing loguru messages

No fixture touches the network: every client under test talks to a
MagicMock session.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Callable, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import pytest
import requests
from loguru import logger

from xray_bridge.config.options import JiraOptions, Options, PluginOptions


# ---------------------------------------------------------------------------
# Run Result Fixtures
# ---------------------------------------------------------------------------

SCREENSHOT_V12 = (
    "/builds/cypress/screenshots/example.cy.ts/"
    "xray upload demo -- CYP-41 should look for the anchor element (failed).png"
)
SCREENSHOT_V13 = (
    "/builds/cypress/screenshots/example.cy.ts/"
    "xray upload demo -- CYP-268 should look for the anchor element (failed).png"
)

_RUN_RESULT_V12: Dict[str, Any] = {
    "status": "finished",
    "startedTestsAt": "2022-11-28T17:41:12.234Z",
    "endedTestsAt": "2022-11-28T17:41:19.702Z",
    "totalDuration": 7468,
    "cypressVersion": "12.17.4",
    "browserName": "electron",
    "browserVersion": "106.0.5249.51",
    "runs": [
        {
            "spec": {"name": "example.cy.ts", "relative": "cypress/e2e/example.cy.ts"},
            "tests": [
                {
                    "title": ["xray upload demo", "CYP-40 should look for paragraph elements"],
                    "state": "passed",
                    "displayError": None,
                    "attempts": [
                        {
                            "state": "passed",
                            "startedAt": "2022-11-28T17:41:15.091Z",
                            "duration": 244,
                            "screenshots": [],
                        }
                    ],
                },
                {
                    "title": ["xray upload demo", "CYP-41 should look for the anchor element"],
                    "state": "failed",
                    "displayError": "AssertionError: Timed out retrying after 4000ms",
                    "attempts": [
                        {
                            "state": "failed",
                            "startedAt": "2022-11-28T17:41:15.338Z",
                            "duration": 4022,
                            "screenshots": [
                                {
                                    "name": None,
                                    "takenAt": "2022-11-28T17:41:19.240Z",
                                    "path": SCREENSHOT_V12,
                                }
                            ],
                        }
                    ],
                },
                {
                    "title": ["xray upload demo", "should be skipped"],
                    "state": "pending",
                    "displayError": None,
                    "attempts": [
                        {
                            "state": "pending",
                            "startedAt": "2022-11-28T17:41:19.365Z",
                            "duration": 0,
                            "screenshots": [],
                        }
                    ],
                },
            ],
        }
    ],
}

_RUN_RESULT_V13: Dict[str, Any] = {
    "status": "finished",
    "startedTestsAt": "2023-09-09T10:59:28.826Z",
    "endedTestsAt": "2023-09-09T10:59:31.000Z",
    "totalDuration": 2174,
    "cypressVersion": "13.2.0",
    "browserName": "electron",
    "browserVersion": "114.0.5735.289",
    "runs": [
        {
            "spec": {"name": "example.cy.ts", "relative": "cypress/e2e/example.cy.ts"},
            "stats": {
                "startedAt": "2023-09-09T10:59:28.829Z",
                "endedAt": "2023-09-09T10:59:29.768Z",
            },
            "tests": [
                {
                    "title": ["xray upload demo", "CYP-452 should look for paragraph elements"],
                    "state": "passed",
                    "duration": 638,
                    "displayError": None,
                    "attempts": [{"state": "passed"}],
                },
                {
                    "title": ["xray upload demo", "CYP-268 should look for the anchor element"],
                    "state": "failed",
                    "duration": 300,
                    "displayError": "AssertionError: expected 2 to equal 3",
                    "attempts": [{"state": "failed"}],
                },
                {
                    "title": ["xray upload demo", "should be skipped"],
                    "state": "pending",
                    "duration": 0,
                    "displayError": None,
                    "attempts": [{"state": "pending"}],
                },
            ],
            "screenshots": [
                {"path": SCREENSHOT_V13, "takenAt": "2023-09-09T10:59:29.700Z"},
            ],
        }
    ],
}


@pytest.fixture
def run_result_v12() -> Dict[str, Any]:
    """A finished Cypress 12 run: one passed, one failed, one pending test."""
    return copy.deepcopy(_RUN_RESULT_V12)


@pytest.fixture
def run_result_v13() -> Dict[str, Any]:
    """A finished Cypress 13 run: one passed, one failed, one pending test."""
    return copy.deepcopy(_RUN_RESULT_V13)


@pytest.fixture
def failed_run() -> Dict[str, Any]:
    """A run the tool aborted before any test executed."""
    return {
        "status": "failed",
        "failures": 1,
        "message": "Could not find Cypress test run results",
    }


@pytest.fixture
def attachment_loader() -> Callable[[str], bytes]:
    """Attachment loader returning fake image bytes derived from the path."""
    return lambda path: b"png:" + path.encode("utf-8")


# ---------------------------------------------------------------------------
# Option Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def options(tmp_path) -> Options:
    """Options for project CYP, writing diagnostics below tmp_path."""
    return Options(
        jira=JiraOptions(project_key="CYP", url="https://jira.example.com"),
        plugin=PluginOptions(log_directory=str(tmp_path / "logs"), heartbeat_interval_sec=5.0),
    )


# ---------------------------------------------------------------------------
# HTTP Fixtures
# ---------------------------------------------------------------------------


def build_response(
    status_code: int = 200,
    json_data: Any = None,
    content: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = "https://xray.cloud.getxray.app/api/v2/import/execution",
) -> requests.Response:
    """Build a ``requests.Response`` without any network access."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.reason = "OK" if status_code < 400 else "Bad Request"
    response.encoding = "utf-8"
    if json_data is not None:
        response._content = json.dumps(json_data).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = content or b""
    response.headers.update(headers or {})
    return response


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """Factory fixture for hand-built HTTP responses."""
    return build_response


@pytest.fixture
def session() -> MagicMock:
    """A fake ``requests.Session``; tests configure ``post``/``get``."""
    fake = MagicMock()
    fake.headers = {}
    return fake


# ---------------------------------------------------------------------------
# Logging Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def log_messages() -> Generator[List[str], None, None]:
    """Collect the text of every loguru message emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
