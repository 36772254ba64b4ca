import logging
import ssl
from typing import Any, Dict, Optional

import httpx  # type: ignore

from aap_sync.config.constants.aap import VALID_LICENSE_TYPES, AAPEndpoint
from aap_sync.config.constants.http_status_code import HttpStatusCode
from aap_sync.exceptions.aap_exceptions import AAPError, TransportError
from aap_sync.models.entities import SubscriptionCheck
from aap_sync.sources.external.aap.aap import AAPDataSource


def _is_certificate_error(error: BaseException) -> bool:
    current: Optional[BaseException] = error
    while current is not None:
        if isinstance(current, ssl.SSLCertVerificationError):
            return True
        if "CERTIFICATE_VERIFY_FAILED" in str(current) or "certificate has expired" in str(current):
            return True
        current = current.__cause__ or current.__context__
    return False


def subscription_error_status(error: AAPError) -> int:
    """Map a failed subscription check to the status reported to callers"""
    if isinstance(error, TransportError):
        if _is_certificate_error(error):
            return HttpStatusCode.SSL_CERTIFICATE_ERROR.value
        if isinstance(error.__cause__, (httpx.ConnectError, httpx.ConnectTimeout)):
            return HttpStatusCode.NOT_FOUND.value
    status_code = getattr(error, "status_code", None) or error.details.get("status_code")
    if isinstance(status_code, int) and 100 <= status_code < 600:
        return status_code
    return HttpStatusCode.INTERNAL_SERVER_ERROR.value


class AAPPlatformService:
    """Gateway ping, subscription check and OAuth token exchange"""

    def __init__(self, data_source: AAPDataSource, logger: logging.Logger) -> None:
        self.data_source = data_source
        self.logger = logger

    async def ping(self, token: Optional[str] = None) -> bool:
        """True when the platform gateway answers, i.e. the instance is AAP 2.5 or later"""
        try:
            self.logger.info(f"Pinging api gateway at {self.data_source.build_url(AAPEndpoint.PING.value)}")
            response = await self.data_source.get(AAPEndpoint.PING.value, token)
            return response.is_success
        except AAPError as e:
            self.logger.error(f"Error checking AAP version: {e}")
            return False

    async def check_subscription(self, token: Optional[str] = None) -> SubscriptionCheck:
        try:
            is_gateway = await self.ping(token)
            endpoint = AAPEndpoint.CONTROLLER_CONFIG if is_gateway else AAPEndpoint.LEGACY_CONFIG
            self.logger.info(f"Checking AAP subscription at {self.data_source.build_url(endpoint.value)}")

            response = await self.data_source.get(endpoint.value, token)
            license_info = (response.json() or {}).get("license_info") or {}
            result = SubscriptionCheck(
                status=response.status,
                is_valid=license_info.get("license_type") in VALID_LICENSE_TYPES,
                is_compliant=bool(license_info.get("compliant", False)),
            )
            if result.is_valid and result.is_compliant:
                self.logger.info("AAP Subscription Check complete. Subscription is Valid.")
            return result
        except AAPError as e:
            self.logger.error(f"AAP subscription check failed: {e}")
            return SubscriptionCheck(status=subscription_error_status(e), is_valid=False, is_compliant=False)

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> Dict[str, Any]:
        """Exchange an authorization code for tokens at o/token/"""
        response = await self.data_source.post(
            AAPEndpoint.OAUTH_TOKEN.value,
            body={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
            },
            form_auth=True,
        )
        return response.json()

    async def refresh_token(self, refresh_token: str, client_id: str, client_secret: str) -> Dict[str, Any]:
        response = await self.data_source.post(
            AAPEndpoint.OAUTH_TOKEN.value,
            body={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            form_auth=True,
        )
        return response.json()
