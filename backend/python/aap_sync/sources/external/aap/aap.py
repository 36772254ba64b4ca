"""AAP Data Source - transport layer for the automation platform REST API.

Every call goes through :meth:`AAPDataSource._execute`, which joins the path to
the configured base URL, attaches the bearer token, logs the dispatch and turns
failures into the exceptions of :mod:`aap_sync.exceptions.aap_exceptions`:

- network failure -> ``TransportError``
- HTTP 403 -> ``PermissionDeniedError``
- non-2xx JSON body -> ``RequestValidationError``
- anything else -> ``RequestFailedError``

Calls are never retried.
"""

import logging
from typing import Any, Dict, Optional

import httpx  # type: ignore

from aap_sync.config.constants.http_status_code import HttpStatusCode
from aap_sync.exceptions.aap_exceptions import (
    PermissionDeniedError,
    RequestFailedError,
    RequestValidationError,
    TransportError,
)
from aap_sync.sources.client.aap.aap import AAPClient
from aap_sync.sources.client.http.http_request import HTTPRequest
from aap_sync.sources.client.http.http_response import HTTPResponse


class AAPDataSource:
    """AAP REST API DataSource

    Example:
        >>> client = AAPClient.build_with_config(AAPTokenConfig(base_url=url, token=token))
        >>> ds = AAPDataSource(client, logger)
        >>> response = await ds.get("api/controller/v2/projects/")
        >>> response.json()["results"]
    """

    def __init__(self, client: AAPClient, logger: Optional[logging.Logger] = None) -> None:
        self.client = client
        self.http = client.get_client()
        self.base_url = client.get_base_url()
        self.logger = logger or logging.getLogger(__name__)

    def build_url(self, path: str, url_override: Optional[str] = None) -> str:
        """Join a relative path to the base URL; absolute overrides are used verbatim"""
        if url_override:
            if url_override.startswith(("http://", "https://")):
                return url_override
            path = url_override
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get(
        self,
        path: str,
        token: Optional[str] = None,
        url_override: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> HTTPResponse:
        """Execute a GET request
        Args:
            path: Path relative to the base URL
            token: Bearer token, the client token when omitted
            url_override: Server supplied URL (e.g. a ``next`` cursor) used instead of path
            params: Optional query parameters
        """
        request = HTTPRequest(
            url=self.build_url(path, url_override),
            method="GET",
            headers=self._headers(token),
            query=params or {},
        )
        return await self._execute(request)

    async def get_text(self, path: str, token: Optional[str] = None) -> str:
        """Execute a GET request and return the plain-text body"""
        response = await self.get(path, token)
        return response.text()

    async def post(
        self,
        path: str,
        token: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
        form_auth: bool = False,
    ) -> HTTPResponse:
        """Execute a POST request
        Args:
            path: Path relative to the base URL
            token: Bearer token, the client token when omitted
            body: Payload, sent as JSON or as a URL-encoded form
            form_auth: Send a URL-encoded form without Authorization header when no token is given
        """
        if form_auth and not token:
            headers = {"Content-Type": "application/x-www-form-urlencoded"}
        else:
            headers = self._headers(token)
        request = HTTPRequest(
            url=self.build_url(path),
            method="POST",
            headers=headers,
            body=body or {},
        )
        return await self._execute(request)

    async def delete(self, path: str, token: Optional[str] = None) -> HTTPResponse:
        """Execute a DELETE request"""
        request = HTTPRequest(
            url=self.build_url(path),
            method="DELETE",
            headers=self._headers(token),
        )
        return await self._execute(request)

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token or self.http.token}",
        }

    async def _execute(self, request: HTTPRequest) -> HTTPResponse:
        self.logger.info(f"Executing {request.method} request to {request.url}.")
        try:
            response = await self.http.execute(request)
        except httpx.RequestError as e:
            self.logger.error(f"Failed to send {request.method} request to {request.url}: {e}")
            raise TransportError(
                f"Failed to send {request.method} request: {e}",
                {"url": request.url, "method": request.method},
            ) from e

        if not response.is_success:
            self.logger.error(
                f"{request.method} request to {request.url} failed: {response.status} {response.reason}"
            )
            raise self._classify_failure(response)
        return response

    def _classify_failure(self, response: HTTPResponse) -> Exception:
        details = {"url": response.url, "status_code": response.status}
        if response.status == HttpStatusCode.FORBIDDEN.value:
            return PermissionDeniedError(details=details)

        try:
            error_body = response.json()
        except ValueError:
            error_body = None

        if isinstance(error_body, dict) and error_body:
            self.logger.error(f"Error: {error_body}")
            all_errors = error_body.get("__all__")
            if isinstance(all_errors, list) and all_errors:
                return RequestValidationError(" ".join(str(e) for e in all_errors), details)
            return RequestValidationError(
                " ".join(_flatten(value) for value in error_body.values()),
                details,
            )

        return RequestFailedError(
            f"Request failed with status {response.status}",
            status_code=response.status,
            details=details,
        )


def _flatten(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(str(item) for item in value)
    return str(value)
