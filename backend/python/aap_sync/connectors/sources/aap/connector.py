import asyncio
import logging
from typing import Any, Dict, List, Optional

from aap_sync.config.aap_config import AapConfig, read_aap_entity_configs
from aap_sync.config.constants.aap import DEFAULT_BATCH_SIZE
from aap_sync.connectors.core.interfaces.connection.iconnection import (
    DeferredEntity,
    DeltaMutation,
    FullMutation,
    IEntityProviderConnection,
)
from aap_sync.connectors.sources.aap.directory import AAPDirectoryService
from aap_sync.connectors.sources.aap.entity_parser import (
    create_aap_admins_group,
    organization_parser,
    team_parser,
    user_parser,
)
from aap_sync.exceptions.aap_exceptions import (
    AAPError,
    NotInitializedError,
    ReconciliationRejectedError,
)
from aap_sync.models.entities import OrganizationDetails, RoleAssignments, User

NAMESPACE = "default"


class AAPEntityConnector:
    """Synchronizes AAP organizations, teams and users into the catalog.

    ``run`` rebuilds every entity of the provider and applies a full mutation.
    ``create_single_user`` reconciles one user and applies a delta mutation.
    Both require a connection attached through ``connect``.
    """

    SYNC_ENTITY = "orgsUsersTeams"

    def __init__(
        self,
        logger: logging.Logger,
        provider_config: AapConfig,
        directory_service: AAPDirectoryService,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.logger = logger
        self.provider_config = provider_config
        self.directory = directory_service
        self.base_url = provider_config.base_url
        self.orgs = [org.lower() for org in provider_config.organizations]
        self.batch_size = batch_size
        self.connection: Optional[IEntityProviderConnection] = None

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        directory_service: AAPDirectoryService,
        logger: logging.Logger,
    ) -> List["AAPEntityConnector"]:
        """Create one connector per enabled catalog.providers.rhaap entry"""
        logger.info("Init AAP entity provider from config.")
        return [
            cls(logger, provider_config, directory_service)
            for provider_config in read_aap_entity_configs(config, cls.SYNC_ENTITY)
        ]

    def get_provider_name(self) -> str:
        return f"AapEntityProvider:{self.provider_config.id}"

    async def connect(self, connection: IEntityProviderConnection) -> None:
        self.connection = connection

    def _deferred(self, entity: Dict[str, Any]) -> DeferredEntity:
        return DeferredEntity(entity=entity, location_key=self.get_provider_name())

    async def run(self) -> bool:
        """Run a full synchronization

        Returns:
            True when the full mutation was applied, False when fetching failed
        """
        if not self.connection:
            raise NotInitializedError()

        orgs_details: List[OrganizationDetails] = []
        role_assignments: RoleAssignments = {}
        system_users: List[User] = []
        error = False

        try:
            orgs_details = await self.directory.get_organizations(self.orgs, True, self.provider_config.token)
            self.logger.info(f"Fetched {len(orgs_details)} organizations.")
        except Exception as e:
            self.logger.error(f"Error while fetching organizations. {e}", exc_info=True)
            error = True

        try:
            role_assignments = await self.directory.get_user_role_assignments(self.provider_config.token)
            self.logger.info(f"Fetched {len(role_assignments)} user role assignments.")
        except Exception as e:
            self.logger.error(f"Error while fetching user role assignments. {e}", exc_info=True)
            error = True

        try:
            system_users = await self.directory.list_system_users(self.provider_config.token)
            self.logger.info(f"Fetched {len(system_users)} system users.")
        except Exception as e:
            self.logger.error(f"Error while fetching system users. {e}", exc_info=True)
            error = True

        if error:
            return False

        entities: List[Dict[str, Any]] = []
        group_count = 0
        for details in orgs_details:
            org_members = [user.username for user in details.users if user.is_orguser is not False]
            entities.append(
                organization_parser(
                    self.base_url,
                    NAMESPACE,
                    details.organization,
                    org_members,
                    [team.group_name for team in details.teams],
                )
            )
            group_count += 1
            for team in details.teams:
                entities.append(team_parser(self.base_url, NAMESPACE, team))
                group_count += 1

        all_users: List[User] = []
        seen_ids = set()
        for user in [user for details in orgs_details for user in details.users] + system_users:
            if user.id in seen_ids:
                continue
            seen_ids.add(user.id)
            all_users.append(user)

        user_entities = await self._build_user_entities(all_users, orgs_details)
        entities.extend(user_entities)
        entities.append(create_aap_admins_group(system_users, self.get_provider_name(), NAMESPACE))

        await self.connection.apply_mutation(
            FullMutation(entities=[self._deferred(entity) for entity in entities])
        )
        self.logger.info(f"Refreshed {self.get_provider_name()}: {group_count} groups added.")
        self.logger.info(f"Refreshed {self.get_provider_name()}: {len(user_entities)} users added.")
        return True

    async def _build_user_entities(
        self, users: List[User], orgs_details: List[OrganizationDetails]
    ) -> List[Dict[str, Any]]:
        team_groups = {team.id: team.group_name for details in orgs_details for team in details.teams}
        org_groups = {details.organization.id: details.organization.namespace for details in orgs_details}

        async def build(user: User) -> Optional[Dict[str, Any]]:
            try:
                user_teams = await self.directory.get_teams_by_user_id(user.id, self.provider_config.token)
                memberships = []
                for team in user_teams:
                    if team.id in team_groups:
                        memberships.append(team_groups[team.id])
                    elif org_groups.get(team.org_id):
                        memberships.append(org_groups[team.org_id])
                return user_parser(
                    self.base_url,
                    NAMESPACE,
                    user,
                    memberships,
                    self.provider_config.max_group_memberships,
                )
            except Exception as e:
                self.logger.warning(f"Failed to process user {user.username} (ID: {user.id}): {e}")
                return None

        self.logger.info(f"Processing {len(users)} users in batches of {self.batch_size}")
        entities: List[Dict[str, Any]] = []
        for start in range(0, len(users), self.batch_size):
            batch = users[start:start + self.batch_size]
            self.logger.debug(
                f"Processing batch {start // self.batch_size + 1}/{(len(users) + self.batch_size - 1) // self.batch_size}"
            )
            results = await asyncio.gather(*[build(user) for user in batch])
            entities.extend(entity for entity in results if entity is not None)
        return entities

    async def create_single_user(self, username: str, user_id: int) -> bool:
        """Reconcile one user into the catalog

        Raises:
            NotInitializedError: If no connection is attached
            ReconciliationRejectedError: If the user is outside every configured organization
                and is not a superuser, or has no valid username
        """
        if not self.connection:
            raise NotInitializedError()

        try:
            self.logger.info(f"Checking for user {user_id} in configured organizations")
            try:
                found_user, user_orgs, user_teams = await self.directory.get_user_memberships(
                    user_id, self.provider_config.token
                )
                self.logger.info(f"User {username} details fetched successfully")
            except Exception as e:
                raise AAPError(
                    f"Failed to fetch user details for {username} (ID: {user_id}): {e}",
                    {"username": username, "user_id": user_id},
                ) from e

            if not found_user.username or not found_user.username.strip():
                raise ReconciliationRejectedError(
                    f"User {username} (ID: {user_id}) has invalid username: '{found_user.username}'",
                    username=username,
                    user_id=user_id,
                )

            is_superuser = found_user.is_superuser
            matching_orgs = [org.group_name for org in user_orgs if org.name.lower() in self.orgs]
            teams_in_configured_orgs = [
                team.group_name for team in user_teams if team.org_name.lower() in self.orgs
            ]

            if not matching_orgs and not teams_in_configured_orgs and not is_superuser:
                raise ReconciliationRejectedError(
                    f"User {username} (ID: {user_id}) does not belong to any configured organizations: "
                    f"{', '.join(self.orgs)}, is not a member of any teams in those organizations, "
                    "and is not a system user.",
                    username=username,
                    user_id=user_id,
                )

            memberships = teams_in_configured_orgs + matching_orgs
            if matching_orgs:
                self.logger.info(f"User {username} found in organizations: {', '.join(matching_orgs)}")
            elif teams_in_configured_orgs:
                self.logger.info(
                    f"User {username} not in configured organizations but found in teams: "
                    f"{', '.join(teams_in_configured_orgs)}"
                )
            else:
                self.logger.info(f"User {username} not in configured organizations or teams but found as system user")

            added = [
                self._deferred(
                    user_parser(
                        self.base_url,
                        NAMESPACE,
                        found_user,
                        memberships,
                        self.provider_config.max_group_memberships,
                    )
                )
            ]
            if is_superuser:
                self.logger.info(f"User {username} is a superuser - added to aap-admins group")
                admins_group = await self._refresh_aap_admins_group(username)
                if admins_group:
                    added.append(self._deferred(admins_group))

            await self.connection.apply_mutation(DeltaMutation(added=added, removed=[]))
            self.logger.info(f"Created user {username} with groups: {', '.join(memberships)}")
        except Exception as e:
            self.logger.error(f"Error creating user {username}. {e}")
            raise

        return True

    async def _refresh_aap_admins_group(self, username: str) -> Optional[Dict[str, Any]]:
        try:
            superusers = await self.directory.list_system_users(self.provider_config.token)
        except Exception as e:
            self.logger.warning(f"Failed to update aap-admins group for {username}: {e}")
            return None
        self.logger.info(f"Updated aap-admins group to include new superuser for {username}")
        return create_aap_admins_group(superusers, self.get_provider_name(), NAMESPACE)
