from typing import Any, Dict, Optional, Type, TypeVar

from dependency_injector import containers, providers  # type: ignore

from aap_sync.config.aap_config import read_ansible_config
from aap_sync.config.configuration_service import ConfigurationService
from aap_sync.connectors.core.base.connection.in_memory_connection import (
    InMemoryEntityProviderConnection,
)
from aap_sync.connectors.sources.aap.connector import AAPEntityConnector
from aap_sync.connectors.sources.aap.directory import AAPDirectoryService
from aap_sync.services.aap.job_service import JobExecutionService
from aap_sync.services.aap.platform_service import AAPPlatformService
from aap_sync.services.aap.resource_service import AAPResourceService
from aap_sync.sources.client.aap.aap import AAPClient, AAPTokenConfig
from aap_sync.sources.external.aap.aap import AAPDataSource
from aap_sync.sources.external.aap.pagination import Paginator
from aap_sync.utils.logger import create_logger

T = TypeVar("T", bound="AAPSyncContainer")


class AAPSyncContainer(containers.DeclarativeContainer):
    """Wires the AAP client, services and catalog connectors from one configuration mapping."""

    logger = providers.Singleton(create_logger, "aap_sync")

    # Raw configuration mapping, replaced by init() and initialize_container()
    app_config = providers.Object({})
    # Override with an httpx.MockTransport in tests
    transport = providers.Object(None)

    config_service = providers.Singleton(ConfigurationService, logger=logger, store=app_config)
    ansible_config = providers.Singleton(read_ansible_config, app_config)

    aap_client = providers.Singleton(
        AAPClient.build_with_config,
        config=providers.Factory(
            AAPTokenConfig,
            base_url=ansible_config.provided.base_url,
            token=ansible_config.provided.token,
            check_ssl=ansible_config.provided.check_ssl,
        ),
        transport=transport,
    )
    data_source = providers.Singleton(AAPDataSource, client=aap_client, logger=logger)
    paginator = providers.Singleton(Paginator, data_source=data_source, logger=logger)

    directory_service = providers.Singleton(
        AAPDirectoryService, data_source=data_source, paginator=paginator, logger=logger
    )
    resource_service = providers.Singleton(
        AAPResourceService, data_source=data_source, logger=logger, ansible_config=ansible_config
    )
    job_service = providers.Singleton(
        JobExecutionService,
        data_source=data_source,
        paginator=paginator,
        logger=logger,
        base_url=ansible_config.provided.base_url,
    )
    platform_service = providers.Singleton(AAPPlatformService, data_source=data_source, logger=logger)

    entity_connection = providers.Singleton(InMemoryEntityProviderConnection, logger=logger)
    entity_connectors = providers.Singleton(
        AAPEntityConnector.from_config,
        config=app_config,
        directory_service=directory_service,
        logger=logger,
    )

    @classmethod
    def init(cls: Type[T], service_name: str, app_config: Optional[Dict[str, Any]] = None) -> T:
        """Initialize the container with the given service name."""
        container = cls()
        if app_config is not None:
            container.app_config.override(providers.Object(app_config))
        container.logger().info(f"🚀 Initializing {cls.__name__} for {service_name}")
        return container


async def initialize_container(container: AAPSyncContainer) -> None:
    """Apply environment fallbacks to the configuration and connect every entity connector"""
    logger = container.logger()
    root_config = await container.config_service().get_root_config()
    container.app_config.override(providers.Object(root_config))

    connection = container.entity_connection()
    for connector in container.entity_connectors():
        await connector.connect(connection)
        logger.info(f"✅ Connected {connector.get_provider_name()}")
