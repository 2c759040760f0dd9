"""
HTTP transport used by queries and mutations to reach the console backend.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from shared.errors import AuthenticationRequiredError, NetworkError, ServerError
from shared.logging import get_logger, set_request_id
from shared.retry import RetryConfig, call_with_retry


@dataclass(frozen=True)
class HttpResponse:
    """Successful response: status code and decoded body."""
    status: int
    data: Any


class HttpTransport:
    """Thin async client over the backend REST API.

    Non-2xx responses raise ServerError and transport failures raise
    NetworkError. Only GET requests are retried.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        token: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.logger = get_logger("console.http")
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.retry_config = retry_config or RetryConfig(max_attempts=1)
        self._token = token

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def set_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None

    def accept_redirect_token(self, url: str) -> str:
        """Take a ``token`` query parameter from a login redirect URL.

        The token is stored for subsequent requests and the URL is returned
        without it.
        """
        parts = urlsplit(url)
        params = parse_qsl(parts.query, keep_blank_values=True)
        remaining = [(name, value) for name, value in params if name != "token"]
        tokens = [value for name, value in params if name == "token" and value]

        if tokens:
            self.set_token(tokens[-1])
            self.logger.info("Accepted token from redirect URL", path=parts.path)

        return urlunsplit(parts._replace(query=urlencode(remaining)))

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        requires_auth: bool = False,
    ) -> HttpResponse:
        """Send one request; raises NetworkError or ServerError on failure."""
        if requires_auth and not self._token:
            raise AuthenticationRequiredError(details={"path": path})

        method = method.upper()
        if method == "GET":
            return await call_with_retry(
                self._send, method, path, params, body,
                exceptions=(NetworkError,),
                config=self.retry_config,
            )
        return await self._send(method, path, params, body)

    async def _send(self, method: str, path: str, params: Optional[Dict[str, Any]], body: Any) -> HttpResponse:
        request_id = set_request_id()
        headers = {"X-Request-ID": request_id}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await self.client.request(
                method,
                path,
                params=params,
                json=body,
                headers=headers,
            )
        except httpx.TransportError as e:
            self.logger.error("Backend request failed", method=method, path=path, error=str(e))
            error = NetworkError(
                f"{method} {path} failed: {e}",
                details={"method": method, "path": path}
            )
            error.request_id = request_id
            raise error from e

        data = self._decode(response)
        if not response.is_success:
            self.logger.warning(
                "Backend returned error status",
                method=method,
                path=path,
                status_code=response.status_code
            )
            error = ServerError(response.status_code, data)
            error.request_id = request_id
            raise error

        self.logger.debug("Backend request succeeded", method=method, path=path, status_code=response.status_code)
        return HttpResponse(status=response.status_code, data=data)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def aclose(self) -> None:
        await self.client.aclose()
