"""
Xray Bridge - CI Results to Jira Xray.

This package contains the core logic for:
- Conversion: Cypress run results (v12/v13) to Xray execution reports.
- Credentials: JWT, personal access token and basic auth selection.
- Client: Xray cloud/server upload, feature import and feature export.
- Orchestrator: run-completion upload decisions.
- Configuration: option files, environment overrides and validation.
"""

__version__ = "0.1.0"
