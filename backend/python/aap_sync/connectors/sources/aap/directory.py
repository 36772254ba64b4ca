import logging
from typing import Any, Dict, List, Optional, Tuple

from aap_sync.config.constants.aap import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PAGE_SIZE,
    AAPEndpoint,
)
from aap_sync.exceptions.aap_exceptions import AggregationError
from aap_sync.models.entities import (
    Organization,
    OrganizationDetails,
    RoleAssignments,
    Team,
    User,
    UserOrganization,
    UserTeam,
)
from aap_sync.sources.external.aap.aap import AAPDataSource
from aap_sync.sources.external.aap.pagination import Paginator
from aap_sync.utils.concurrency import gather_or_cancel
from aap_sync.utils.naming import to_slug


def dedupe_by_id(items: List[Any]) -> List[Any]:
    """Keep the first occurrence of every id, preserving order"""
    seen = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def fold_role_assignments(assignments: List[Dict[str, Any]]) -> RoleAssignments:
    """Fold role_user_assignments records into user -> role name -> object ids"""
    folded: RoleAssignments = {}
    for assignment in assignments:
        user_id = assignment.get("user")
        role_name = (
            ((assignment.get("summary_fields") or {}).get("role_definition") or {}).get("name")
        )
        if user_id is None or role_name is None:
            continue
        roles = folded.setdefault(user_id, {})
        object_ids = roles.setdefault(role_name, [])
        object_id = assignment.get("object_id")
        if object_id is not None:
            object_ids.append(int(object_id) if str(object_id).isdigit() else object_id)
    return folded


class AAPDirectoryService:
    """Reads organizations, teams, users and role assignments from the platform gateway"""

    def __init__(
        self,
        data_source: AAPDataSource,
        paginator: Paginator,
        logger: logging.Logger,
        team_batch_size: int = DEFAULT_BATCH_SIZE,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.data_source = data_source
        self.paginator = paginator
        self.logger = logger
        self.team_batch_size = team_batch_size
        self.page_size = page_size

    def _organization_params(self, org_names: Optional[List[str]]) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page_size": self.page_size}
        names = [name for name in (org_names or []) if name]
        if len(names) == 1:
            params["name__iexact"] = names[0]
        elif len(names) > 1:
            params["or__name__iexact"] = names
        return params

    async def get_organizations(
        self,
        org_names: Optional[List[str]] = None,
        user_and_team_details: bool = False,
        token: Optional[str] = None,
    ) -> List[OrganizationDetails]:
        """Build the membership graph of the selected organizations

        In shallow mode every organization comes back with empty teams and users.

        Raises:
            AggregationError: If any request of the aggregation fails
        """
        endpoint = AAPEndpoint.ORGANIZATIONS.value
        try:
            raw_orgs = await self.paginator.collect(endpoint, token, params=self._organization_params(org_names))
            self.logger.info(f"Fetched {len(raw_orgs)} organizations.")
            if not user_and_team_details:
                return [OrganizationDetails(organization=Organization.model_validate(org)) for org in raw_orgs]

            return await gather_or_cancel(*[self._organization_details(org, token) for org in raw_orgs])
        except AggregationError:
            raise
        except Exception as e:
            self.logger.error(f"Error while fetching organizations from {endpoint}: {e}", exc_info=True)
            raise AggregationError(f"Failed to fetch organizations: {e}", endpoint) from e

    async def _organization_details(self, raw_org: Dict[str, Any], token: Optional[str]) -> OrganizationDetails:
        organization = Organization.model_validate(raw_org)
        related = raw_org.get("related") or {}

        teams_url = related.get("teams")
        users_url = related.get("users")
        raw_teams, raw_users = await gather_or_cancel(
            self._collect_related(teams_url, token),
            self._collect_related(users_url, token),
        )

        teams = [Team.model_validate(team) for team in raw_teams]
        direct_users = [User.model_validate({**user, "is_orguser": True}) for user in raw_users]
        direct_ids = {user.id for user in direct_users}

        team_members: List[User] = []
        for start in range(0, len(raw_teams), self.team_batch_size):
            batch = raw_teams[start:start + self.team_batch_size]
            batch_members = await gather_or_cancel(*[self._team_members(team, token) for team in batch])
            for members in batch_members:
                for member in members:
                    if member["id"] in direct_ids:
                        continue
                    team_members.append(User.model_validate({**member, "is_orguser": False}))

        users = dedupe_by_id(direct_users + team_members)
        self.logger.debug(
            f"Organization {organization.name}: {len(teams)} teams, {len(users)} users."
        )
        return OrganizationDetails(organization=organization, teams=teams, users=users)

    async def _collect_related(self, url: Optional[str], token: Optional[str]) -> List[Dict[str, Any]]:
        if not url:
            return []
        return await self.paginator.collect(url, token, params={"page_size": self.page_size})

    async def _team_members(self, raw_team: Dict[str, Any], token: Optional[str]) -> List[Dict[str, Any]]:
        users_url = (raw_team.get("related") or {}).get("users") or f"{AAPEndpoint.TEAMS.value}{raw_team['id']}/users/"
        return await self.paginator.collect(users_url, token, params={"page_size": self.page_size})

    async def get_user_role_assignments(self, token: Optional[str] = None) -> RoleAssignments:
        assignments = await self.paginator.collect(
            AAPEndpoint.ROLE_USER_ASSIGNMENTS.value, token, params={"page_size": self.page_size}
        )
        return fold_role_assignments(assignments)

    async def list_system_users(self, token: Optional[str] = None) -> List[User]:
        raw_users = await self.paginator.collect(
            AAPEndpoint.USERS.value, token, params={"is_superuser": "true", "page_size": self.page_size}
        )
        return [User.model_validate(user) for user in raw_users]

    async def get_teams_by_user_id(self, user_id: int, token: Optional[str] = None) -> List[UserTeam]:
        raw_teams = await self.paginator.collect(AAPEndpoint.USER_TEAMS.value.format(id=user_id), token)
        teams = []
        for team in raw_teams:
            org_summary = (team.get("summary_fields") or {}).get("organization") or {}
            teams.append(
                UserTeam(
                    id=team["id"],
                    name=team["name"],
                    groupName=to_slug(team["name"]),
                    orgId=team.get("organization", org_summary.get("id")),
                    orgName=org_summary.get("name", ""),
                )
            )
        return teams

    async def get_orgs_by_user_id(self, user_id: int, token: Optional[str] = None) -> List[UserOrganization]:
        raw_orgs = await self.paginator.collect(AAPEndpoint.USER_ORGANIZATIONS.value.format(id=user_id), token)
        return [
            UserOrganization(id=org.get("id"), name=org["name"], groupName=to_slug(org["name"]))
            for org in raw_orgs
        ]

    async def get_user_info_by_id(self, user_id: int, token: Optional[str] = None) -> User:
        response = await self.data_source.get(f"{AAPEndpoint.USERS.value}{user_id}/", token)
        return User.model_validate(response.json())

    async def get_user_memberships(
        self, user_id: int, token: Optional[str] = None
    ) -> Tuple[User, List[UserOrganization], List[UserTeam]]:
        """Fetch user info, organizations and teams of one user concurrently"""
        return await gather_or_cancel(
            self.get_user_info_by_id(user_id, token),
            self.get_orgs_by_user_id(user_id, token),
            self.get_teams_by_user_id(user_id, token),
        )
