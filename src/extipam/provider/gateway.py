"""
Provider Gateway.

Executes authenticated requests against the external IPAM REST endpoint.
The gateway owns the session token and the HTTP client, and nothing else:
it holds no allocation state.

Failure model:
    - Network, TLS and timeout failures raise ``TransportError``.
    - An authentication-failure status triggers exactly one
      re-authenticate-and-retry cycle. If the retried request is rejected
      again, ``AuthenticationError`` is raised.
    - Every other status is returned to the caller, which decides whether it
      is an application error.
"""

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from extipam.exceptions import AuthenticationError, MalformedResponse, TransportError
from extipam.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderResponse:
    """Status and raw body of a provider answer."""

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """
        Decode the body as JSON.

        An empty body decodes to None.

        Raises:
            MalformedResponse: If the body is not JSON.
        """
        if not self.body.strip():
            return None
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise MalformedResponse(f"Provider returned invalid JSON: {e}")


class ProviderGateway:
    """
    Authenticated HTTP access to the provider's REST surface.

    Paths passed to ``request`` are relative to ``base_url``; scheme, host and
    API prefix are bound here once.
    """

    def __init__(
        self,
        base_url: str,
        authenticator: Callable[[], str],
        auth_header: str = "Authorization",
        verify: bool = True,
        timeout: float = 30.0,
        auth_failure_status: int = 401,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: REST base URL ending in ``/``.
            authenticator: Callable returning a fresh session token.
            auth_header: Header carrying the token.
            verify: Verify the provider's TLS certificate.
            timeout: Per-request timeout in seconds.
            auth_failure_status: Status meaning "session no longer valid".
            transport: Alternate httpx transport (tests).
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.auth_header = auth_header
        self.auth_failure_status = auth_failure_status
        self._authenticator = authenticator
        self._client = httpx.Client(
            base_url=self.base_url,
            verify=verify,
            timeout=timeout,
            transport=transport,
        )
        self._token: str | None = None
        self._auth_lock = threading.Lock()

    # =========================================================================
    # Authentication
    # =========================================================================

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def login(self) -> None:
        """Obtain a session token (called once at startup)."""
        with self._auth_lock:
            self._token = self._authenticator()

    def _refresh_token(self, stale: str | None) -> str:
        """
        Re-authenticate unless another thread already replaced ``stale``.

        Concurrent requests failing with the same token trigger one login.
        """
        with self._auth_lock:
            if self._token is None or self._token == stale:
                logger.info("Session token rejected, re-authenticating")
                self._token = self._authenticator()
            return self._token

    # =========================================================================
    # Requests
    # =========================================================================

    def _send(
        self,
        method: str,
        path: str,
        token: str,
        params: dict | None,
        body: Any,
    ) -> httpx.Response:
        headers = {self.auth_header: token, "Accept": "application/json"}
        try:
            return self._client.request(
                method.upper(),
                path,
                params=params,
                json=body,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error(f"{method.upper()} {path} timed out: {e}")
            raise TransportError(f"Timed out talking to External IPAM: {e}")
        except httpx.RequestError as e:
            logger.error(f"{method.upper()} {path} failed: {e}")
            raise TransportError(f"Cannot reach External IPAM: {e}")

    def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        body: Any = None,
    ) -> ProviderResponse:
        """
        Execute a request against the provider.

        Args:
            method: GET, POST or DELETE.
            path: Path relative to the REST base (no scheme or host).
            params: Query parameters.
            body: JSON body (POST only).

        Returns:
            ProviderResponse with status and raw body.

        Raises:
            TransportError: Provider unreachable or timed out.
            AuthenticationError: Session rejected twice in a row.
        """
        if "://" in path:
            raise ValueError(f"Gateway paths must be relative, got '{path}'")
        path = path.lstrip("/")

        token = self._token
        if token is None:
            token = self._refresh_token(None)

        response = self._send(method, path, token, params, body)

        if response.status_code == self.auth_failure_status:
            token = self._refresh_token(token)
            response = self._send(method, path, token, params, body)
            if response.status_code == self.auth_failure_status:
                logger.error(f"{method.upper()} {path} rejected after re-authentication")
                raise AuthenticationError(
                    "External IPAM rejected the session after re-authentication"
                )

        logger.debug(f"{method.upper()} {path} -> HTTP {response.status_code}")
        return ProviderResponse(status_code=response.status_code, body=response.text)

    def get(self, path: str, params: dict | None = None) -> ProviderResponse:
        return self.request("GET", path, params=params)

    def post(self, path: str, params: dict | None = None, body: Any = None) -> ProviderResponse:
        return self.request("POST", path, params=params, body=body)

    def delete(self, path: str, params: dict | None = None) -> ProviderResponse:
        return self.request("DELETE", path, params=params)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
