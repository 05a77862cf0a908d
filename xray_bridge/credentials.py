"""
Credentials Module.

Xray supports three authentication schemes:
- JWT: client id/secret exchanged for a bearer token (Xray cloud).
- PAT: Jira personal access token sent as bearer token (Xray server).
- Basic: Jira username and password (Xray server).

``resolve`` selects exactly one scheme from the environment. Credentials
are resolved once per run, reused for every request and never persisted.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import requests
from loguru import logger

from xray_bridge import constants

HTTPHeader = Dict[str, str]


class NoViableCredentialsError(Exception):
    """Raised when the environment holds no complete credential set."""

    pass


class AuthenticationError(Exception):
    """Raised when an authorization header cannot be obtained."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class Credentials(ABC):
    """An authentication scheme able to produce an HTTP authorization header."""

    #: Short scheme name used in logs.
    kind: str = ""

    @abstractmethod
    def get_authentication_header(
        self,
        session: Optional[requests.Session] = None,
        authentication_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HTTPHeader:
        """
        Return the authorization header.

        Raises:
            AuthenticationError: If the header cannot be obtained.
        """


class BasicAuthCredentials(Credentials):
    """Jira username/password."""

    kind = "basic"

    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self._password = password

    def get_authentication_header(
        self,
        session: Optional[requests.Session] = None,
        authentication_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HTTPHeader:
        token = base64.b64encode(f"{self.username}:{self._password}".encode("utf-8"))
        return {"Authorization": f"Basic {token.decode('ascii')}"}

    def __repr__(self) -> str:
        return f"BasicAuthCredentials(username={self.username!r})"


class PATCredentials(Credentials):
    """Jira personal access token."""

    kind = "pat"

    def __init__(self, token: str) -> None:
        self._token = token

    def get_authentication_header(
        self,
        session: Optional[requests.Session] = None,
        authentication_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HTTPHeader:
        return {"Authorization": f"Bearer {self._token}"}

    def __repr__(self) -> str:
        return "PATCredentials(token=***)"


class JWTCredentials(Credentials):
    """
    Xray cloud client id/secret.

    The first call exchanges the pair for a JSON web token at the
    authentication URL; the token is reused for the rest of the run.
    """

    kind = "jwt"

    def __init__(self, client_id: str, client_secret: str) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self._token: Optional[str] = None

    def get_authentication_header(
        self,
        session: Optional[requests.Session] = None,
        authentication_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HTTPHeader:
        if self._token is None:
            self._token = self._exchange(session, authentication_url, timeout)
        return {"Authorization": f"Bearer {self._token}"}

    def _exchange(
        self,
        session: Optional[requests.Session],
        authentication_url: Optional[str],
        timeout: Optional[float],
    ) -> str:
        if not authentication_url:
            raise AuthenticationError("JWT credentials require an authentication URL")

        logger.info("Authenticating to Xray...")
        http = session or requests.Session()
        try:
            response = http.post(
                authentication_url,
                json={"client_id": self.client_id, "client_secret": self._client_secret},
                timeout=timeout,
            )
            response.raise_for_status()
            token = response.json()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.error(f"Failed to authenticate to Xray: {e} (status={status_code})")
            raise AuthenticationError(
                f"Failed to authenticate to Xray: {e}", status_code=status_code
            ) from e
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Failed to authenticate to Xray: {e}")
            raise AuthenticationError(f"Failed to authenticate to Xray: {e}") from e

        if not isinstance(token, str) or not token:
            raise AuthenticationError(
                f"Xray authentication returned no token: {str(token)[:100]!r}"
            )
        logger.success("Authenticated to Xray")
        return token

    def __repr__(self) -> str:
        return f"JWTCredentials(client_id={self.client_id!r})"


def resolve(env: Mapping[str, Any]) -> Credentials:
    """
    Select exactly one credential set from the environment.

    Priority: JWT pair, then PAT + URL, then Basic + URL. The first complete
    set wins; incomplete sets are ignored.

    Raises:
        NoViableCredentialsError: If no set is complete.
    """

    def value(key: str) -> str:
        return str(env.get(key) or "").strip()

    client_id = value(constants.ENV_XRAY_CLIENT_ID)
    client_secret = value(constants.ENV_XRAY_CLIENT_SECRET)
    api_token = value(constants.ENV_XRAY_API_TOKEN)
    api_url = value(constants.ENV_XRAY_API_URL)
    username = value(constants.ENV_XRAY_USERNAME)
    password = value(constants.ENV_XRAY_PASSWORD)

    credentials: Credentials
    if client_id and client_secret:
        credentials = JWTCredentials(client_id, client_secret)
    elif api_token and api_url:
        credentials = PATCredentials(api_token)
    elif username and password and api_url:
        credentials = BasicAuthCredentials(username, password)
    else:
        raise NoViableCredentialsError(
            "Failed to configure the Xray client: no viable Xray configuration was found.\n"
            "Provide one of the following sets:\n"
            f"  - {constants.ENV_XRAY_CLIENT_ID} and {constants.ENV_XRAY_CLIENT_SECRET} (Xray cloud)\n"
            f"  - {constants.ENV_XRAY_API_TOKEN} and {constants.ENV_XRAY_API_URL} (Xray server)\n"
            f"  - {constants.ENV_XRAY_USERNAME}, {constants.ENV_XRAY_PASSWORD} and "
            f"{constants.ENV_XRAY_API_URL} (Xray server)"
        )

    logger.info(f"Using {credentials.kind} credentials for Xray")
    return credentials
