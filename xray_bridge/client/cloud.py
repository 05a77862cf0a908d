"""
Xray Cloud Client.

Talks to the hosted Xray API. Requests are authorized with a JSON web
token obtained from the ``/authenticate`` endpoint.
"""

from __future__ import annotations

from typing import Optional

from xray_bridge.client.base import XrayClient
from xray_bridge.conversion.models import CLOUD


class CloudClient(XrayClient):
    """Client for Xray cloud (API v2)."""

    DIALECT = CLOUD

    # API v1 would also work, v2 is the current one.
    URL = "https://xray.cloud.getxray.app/api/v2"

    @property
    def base_url(self) -> str:
        return self.URL

    @property
    def authentication_url(self) -> Optional[str]:
        return f"{self.URL}/authenticate"
