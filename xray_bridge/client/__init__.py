"""
Xray Client Module.

Provides the two dialects of the Xray REST API behind one interface:
- CloudClient: Xray cloud, JWT authentication.
- ServerClient: Xray server/DC, personal access token or basic auth.

The factory function `create_client()` returns the dialect matching the
resolved credentials.
"""

from xray_bridge.client.base import (
    MalformedResponseError,
    OperationState,
    TransportError,
    XrayClient,
    parse_content_disposition,
)
from xray_bridge.client.cloud import CloudClient
from xray_bridge.client.factory import create_client, create_client_from_env
from xray_bridge.client.responses import ExportResult, ItemError, Skipped, UploadOutcome
from xray_bridge.client.server import ServerClient

__all__ = [
    "CloudClient",
    "ExportResult",
    "ItemError",
    "MalformedResponseError",
    "OperationState",
    "ServerClient",
    "Skipped",
    "TransportError",
    "UploadOutcome",
    "XrayClient",
    "create_client",
    "create_client_from_env",
    "parse_content_disposition",
]
