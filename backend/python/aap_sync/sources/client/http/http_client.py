import logging
from typing import Optional

import httpx  # type: ignore

from aap_sync.sources.client.http.http_request import HTTPRequest
from aap_sync.sources.client.http.http_response import HTTPResponse
from aap_sync.sources.client.iclient import IClient


class HTTPClient(IClient):
    """
    HTTP client with authentication.

    Features:
    - Automatic Authorization header injection (skipped when no token is given)
    - TLS verification switch
    - Pluggable httpx transport, used by tests to stub the remote service

    The client never retries. Retry policy belongs to the callers.

    Args:
        token: Authentication token, empty to send no default Authorization header
        token_type: Token type for Authorization header (default: "Bearer")
        timeout: Request timeout in seconds (default: 30.0)
        follow_redirects: Whether to follow HTTP redirects (default: True)
        verify_ssl: Whether to verify TLS certificates (default: True)
        transport: Optional httpx transport
        logger: Optional logger instance
    """
    def __init__(
        self,
        token: str,
        token_type: str = "Bearer",
        timeout: float = 30.0,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None
    ) -> None:
        self.headers = {"Authorization": f"{token_type} {token}"} if token else {}
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)
        self.client: Optional[httpx.AsyncClient] = None

    def get_client(self) -> "HTTPClient":
        """Get the client"""
        return self

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure client is created and available."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                verify=self.verify_ssl,
                transport=self.transport,
            )
        return self.client

    async def execute(self, request: HTTPRequest, **kwargs) -> HTTPResponse:
        """Execute an HTTP request
        Args:
            request: The HTTP request to execute
            kwargs: Additional keyword arguments to pass to the request
        Returns:
            A HTTPResponse object containing the response from the server
        """
        client = await self._ensure_client()

        # Request headers take precedence over client headers
        merged_headers = {**self.headers, **request.headers}
        request_kwargs = {
            "params": request.query_params or None,
            "headers": merged_headers,
            **kwargs
        }

        if isinstance(request.body, dict):
            content_type = merged_headers.get("Content-Type", "").lower()
            if "application/x-www-form-urlencoded" in content_type:
                request_kwargs["data"] = request.body
            else:
                request_kwargs["json"] = request.body

        response = await client.request(request.method, request.url, **request_kwargs)
        return HTTPResponse(response)

    async def close(self) -> None:
        """Close the client"""
        if self.client:
            await self.client.aclose()
            self.client = None

