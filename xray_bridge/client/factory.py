"""
Client Factory.

Creates the Xray client matching the resolved credentials.

JWT credentials select the cloud dialect; PAT and basic auth select the
server dialect at ``XRAY_API_URL``.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from loguru import logger

from xray_bridge import constants, credentials as credentials_module
from xray_bridge.client.base import XrayClient
from xray_bridge.client.cloud import CloudClient
from xray_bridge.client.server import ServerClient
from xray_bridge.config.options import Options
from xray_bridge.credentials import Credentials, JWTCredentials


def create_client(
    credentials: Credentials,
    options: Options,
    api_url: Optional[str] = None,
    **kwargs: Any,
) -> XrayClient:
    """
    Factory function to create the correct Xray client.

    Args:
        credentials: Resolved credentials.
        options: Invocation options (timeouts, log directory, TLS).
        api_url: Jira base URL, required for the server dialect.
        **kwargs: Extra client arguments (e.g. ``session``, ``notify``).

    Returns:
        A CloudClient or ServerClient.

    Raises:
        ValueError: If the server dialect is selected without a URL.
    """
    settings = dict(
        timeout_sec=options.plugin.timeout_sec,
        log_directory=options.plugin.log_directory,
        heartbeat_interval_sec=options.plugin.heartbeat_interval_sec,
        verify=options.openssl.verify,
    )
    settings.update(kwargs)

    if isinstance(credentials, JWTCredentials):
        logger.info("Creating Xray cloud client")
        return CloudClient(credentials, **settings)

    url = api_url or options.jira.url
    logger.info(f"Creating Xray server client for {url}")
    return ServerClient(url, credentials, **settings)


def create_client_from_env(
    env: Mapping[str, Any],
    options: Options,
    **kwargs: Any,
) -> XrayClient:
    """
    Resolve credentials from the environment and create the client.

    Raises:
        NoViableCredentialsError: If no complete credential set is present.
    """
    resolved = credentials_module.resolve(env)
    return create_client(
        resolved,
        options,
        api_url=str(env.get(constants.ENV_XRAY_API_URL) or "") or None,
        **kwargs,
    )
