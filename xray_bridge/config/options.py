"""
Option Model.

Typed option groups consumed by the conversion engine, the Xray clients
and the upload orchestrator. Options are built from a mapping (see
``ConfigLoader``) and are never mutated after the run has started.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class JiraOptions:
    """
    Jira-side options.

    Attributes:
        project_key: Jira project key (e.g., "CYP").
        url: Base URL of the Jira instance (informational for server setups).
        test_execution_issue_key: Existing Test Execution to attach results to.
        test_execution_issue_summary: Explicit summary override.
        test_execution_issue_description: Explicit description override.
        test_plan_issue_key: Test Plan to attach the execution to.
    """

    project_key: str = ""
    url: str = ""
    test_execution_issue_key: Optional[str] = None
    test_execution_issue_summary: Optional[str] = None
    test_execution_issue_description: Optional[str] = None
    test_plan_issue_key: Optional[str] = None


@dataclass
class StatusOptions:
    """Custom Xray status names, e.g. for translated Xray setups."""

    passed: Optional[str] = None
    failed: Optional[str] = None
    pending: Optional[str] = None
    skipped: Optional[str] = None

    def as_mapping(self) -> Dict[str, str]:
        """Return only the configured names, keyed by canonical status."""
        return {
            f.name.upper(): getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name)
        }


@dataclass
class XrayOptions:
    """
    Xray-side options.

    Attributes:
        upload_results: Turns execution results upload on or off.
        upload_screenshots: Turns screenshot evidence upload on or off.
        test_environments: Test environments for the execution issue.
        status: Custom status names.
    """

    upload_results: bool = True
    upload_screenshots: bool = True
    test_environments: Optional[List[str]] = None
    status: StatusOptions = field(default_factory=StatusOptions)


@dataclass
class PluginOptions:
    """
    General behaviour switches.

    Attributes:
        enabled: Disables every upload and import when False.
        debug: Enables debug logging and a log file in log_directory.
        log_directory: Directory receiving logs and diagnostics artifacts.
        normalize_screenshot_names: Restrict evidence names to [a-zA-Z0-9.].
        timeout_sec: Deadline of every Xray request.
        heartbeat_interval_sec: Interval of "still working" notices.
    """

    enabled: bool = True
    debug: bool = False
    log_directory: str = "logs"
    normalize_screenshot_names: bool = False
    timeout_sec: float = 30.0
    heartbeat_interval_sec: float = 5.0


@dataclass
class CucumberOptions:
    """Feature file synchronization options."""

    feature_file_extension: str = ".feature"
    upload_features: bool = False


@dataclass
class OpenSSLOptions:
    """TLS options; root_ca_path is passed to requests as ``verify``."""

    root_ca_path: Optional[str] = None

    @property
    def verify(self) -> Any:
        return self.root_ca_path or True


@dataclass
class Options:
    """All option groups of a single invocation."""

    jira: JiraOptions = field(default_factory=JiraOptions)
    xray: XrayOptions = field(default_factory=XrayOptions)
    plugin: PluginOptions = field(default_factory=PluginOptions)
    cucumber: CucumberOptions = field(default_factory=CucumberOptions)
    openssl: OpenSSLOptions = field(default_factory=OpenSSLOptions)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Options":
        """
        Build options from a (validated) configuration mapping.

        Unknown keys inside a group are ignored; missing groups fall back
        to their defaults.
        """
        xray_data = dict(data.get("xray") or {})
        status = StatusOptions(**_known(StatusOptions, xray_data.pop("status", None) or {}))
        xray = XrayOptions(status=status, **_known(XrayOptions, xray_data))
        if xray.test_environments is not None:
            xray.test_environments = [str(env) for env in xray.test_environments]

        return cls(
            jira=JiraOptions(**_known(JiraOptions, data.get("jira") or {})),
            xray=xray,
            plugin=PluginOptions(**_known(PluginOptions, data.get("plugin") or {})),
            cucumber=CucumberOptions(**_known(CucumberOptions, data.get("cucumber") or {})),
            openssl=OpenSSLOptions(**_known(OpenSSLOptions, data.get("openssl") or {})),
        )


def _known(cls: type, data: Mapping[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls) if f.name != "status"}
    return {key: value for key, value in data.items() if key in names}
