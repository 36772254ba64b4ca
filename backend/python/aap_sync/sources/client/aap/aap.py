from typing import Any, Dict, Optional

import httpx  # type: ignore
from pydantic import BaseModel  # type: ignore

from aap_sync.config.configuration_service import ConfigurationService
from aap_sync.sources.client.http.http_client import HTTPClient
from aap_sync.sources.client.iclient import IClient


class AAPRESTClientViaToken(HTTPClient):
    """AAP REST client via bearer token
    The token is attached per request by the data source, because the OAuth
    token endpoint must be called without any Authorization header.
        base_url: The base URL of the AAP instance
        token: The default API token
        check_ssl: Whether to verify TLS certificates
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        check_ssl: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__("", timeout=timeout, verify_ssl=check_ssl, transport=transport)
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.headers.update({
            "Accept": "application/json"
        })

    def get_base_url(self) -> str:
        """Get the base URL"""
        return self.base_url


class AAPTokenConfig(BaseModel):
    """Configuration for AAP REST client via token
    Args:
        base_url: The base URL of the AAP instance
        token: The API token
        check_ssl: Whether to verify TLS certificates (default: True)
    """
    base_url: str
    token: str = ""
    check_ssl: bool = True
    timeout: float = 30.0

    def create_client(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> AAPRESTClientViaToken:
        """Create an AAP client"""
        return AAPRESTClientViaToken(
            self.base_url,
            self.token,
            check_ssl=self.check_ssl,
            timeout=self.timeout,
            transport=transport,
        )

    def to_dict(self) -> dict:
        """Convert the configuration to a dictionary"""
        return self.model_dump()


class AAPClient(IClient):
    """Builder class for AAP clients with different construction methods"""

    def __init__(self, client: AAPRESTClientViaToken) -> None:
        """Initialize with an AAP client object"""
        self.client = client

    def get_client(self) -> AAPRESTClientViaToken:
        """Return the AAP client object"""
        return self.client

    def get_base_url(self) -> str:
        """Get the base URL"""
        return self.client.get_base_url()

    @classmethod
    def build_with_config(
        cls,
        config: AAPTokenConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AAPClient":
        """Build AAPClient with configuration
        Args:
            config: AAPTokenConfig instance
            transport: Optional httpx transport
        Returns:
            AAPClient instance
        """
        return cls(config.create_client(transport))

    @classmethod
    async def build_from_services(
        cls,
        config_service: ConfigurationService,
    ) -> "AAPClient":
        """Build AAPClient using configuration service
        Args:
            config_service: Configuration service instance
        Returns:
            AAPClient instance
        """
        config = await cls._get_ansible_config(config_service)
        if not config or not config.get("baseUrl"):
            raise ValueError("AAP configuration not found")

        return cls.build_with_config(
            AAPTokenConfig(
                base_url=config["baseUrl"],
                token=config.get("token") or "",
                check_ssl=config.get("checkSSL", True),
            )
        )

    @staticmethod
    async def _get_ansible_config(config_service: ConfigurationService) -> Dict[str, Any]:
        """Get the ansible.rhaap section from config service"""
        try:
            return await config_service.get_config("ansible.rhaap")
        except Exception as e:
            raise ValueError(f"Failed to get AAP configuration: {str(e)}")
