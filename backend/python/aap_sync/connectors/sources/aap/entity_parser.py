import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from aap_sync.config.constants.aap import (
    AAP_ADMINS_GROUP,
    DEFAULT_MAX_GROUP_MEMBERSHIPS,
    AAPPortalPath,
)
from aap_sync.models.entities import Organization, Team, User
from aap_sync.utils.naming import to_slug

logger = logging.getLogger(__name__)

API_VERSION = "backstage.io/v1alpha1"
ANNOTATION_LOCATION = "backstage.io/managed-by-location"
ANNOTATION_ORIGIN_LOCATION = "backstage.io/managed-by-origin-location"
ANNOTATION_IS_SUPERUSER = "aap.platform/is_superuser"


def _location_annotations(base_url: str, path: AAPPortalPath, resource_id: Any) -> Dict[str, str]:
    location = f"url:{base_url}/{path.value.format(id=resource_id)}"
    return {
        ANNOTATION_LOCATION: location,
        ANNOTATION_ORIGIN_LOCATION: location,
    }


def organization_parser(
    base_url: str,
    namespace: str,
    org: Organization,
    org_members: List[str],
    teams: List[str],
) -> Dict[str, Any]:
    return {
        "apiVersion": API_VERSION,
        "kind": "Group",
        "metadata": {
            "namespace": namespace,
            "name": org.namespace or to_slug(org.name),
            "title": org.name,
            "annotations": _location_annotations(base_url, AAPPortalPath.ORGANIZATION, org.id),
        },
        "spec": {
            "type": "organization",
            "children": teams,
            "members": org_members,
        },
    }


def team_parser(
    base_url: str,
    namespace: str,
    team: Team,
    team_members: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "apiVersion": API_VERSION,
        "kind": "Group",
        "metadata": {
            "namespace": namespace,
            "name": team.group_name,
            "title": team.name,
            "description": team.description or "",
            "annotations": _location_annotations(base_url, AAPPortalPath.TEAM, team.id),
        },
        "spec": {
            "type": "team",
            "children": [],
            "members": team_members or [],
        },
    }


def limit_group_memberships(
    username: str,
    memberships: List[str],
    max_group_memberships: int = DEFAULT_MAX_GROUP_MEMBERSHIPS,
) -> List[str]:
    """Cap memberships at max_group_memberships, always keeping aap-admins first"""
    if len(memberships) <= max_group_memberships:
        return memberships

    important = [AAP_ADMINS_GROUP] if AAP_ADMINS_GROUP in memberships else []
    others = [group for group in memberships if group != AAP_ADMINS_GROUP]
    remaining_slots = max(max_group_memberships - len(important), 0)
    logger.warning(
        f"User {username} has {len(memberships)} group memberships, "
        f"limiting to {max_group_memberships}. "
        f"Excluded groups: {', '.join(others[remaining_slots:])}"
    )
    return important + others[:remaining_slots]


def user_parser(
    base_url: str,
    namespace: str,
    user: User,
    group_memberships: List[str],
    max_group_memberships: int = DEFAULT_MAX_GROUP_MEMBERSHIPS,
) -> Dict[str, Any]:
    memberships = list(group_memberships)
    if user.is_superuser:
        memberships.append(AAP_ADMINS_GROUP)
    memberships = limit_group_memberships(user.username, memberships, max_group_memberships)

    if user.first_name or user.last_name:
        display_name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    else:
        display_name = user.username

    annotations = _location_annotations(base_url, AAPPortalPath.USER, user.id)
    annotations[ANNOTATION_IS_SUPERUSER] = str(user.is_superuser).lower()

    return {
        "apiVersion": API_VERSION,
        "kind": "User",
        "metadata": {
            "namespace": namespace,
            "name": user.username,
            "title": display_name,
            "annotations": annotations,
        },
        "spec": {
            "profile": {
                "username": user.username,
                "displayName": display_name,
                "email": user.email or " ",
            },
            "memberOf": memberships,
        },
    }


def create_aap_admins_group(users: List[User], provider_name: str, namespace: str = "default") -> Dict[str, Any]:
    """Group of every current superuser, rebuilt on each sync"""
    members = [f"user:{namespace}/{user.username}" for user in users if user.is_superuser]
    return {
        "apiVersion": API_VERSION,
        "kind": "Group",
        "metadata": {
            "name": AAP_ADMINS_GROUP,
            "namespace": namespace,
            "description": "Ansible Automation Platform Superusers - Dynamically managed",
            "annotations": {
                ANNOTATION_LOCATION: provider_name,
                ANNOTATION_ORIGIN_LOCATION: provider_name,
                "aap.platform/managed": "true",
                "aap.platform/last-sync": datetime.now(timezone.utc).isoformat(),
            },
        },
        "spec": {
            "type": "team",
            "profile": {
                "displayName": "AAP Administrators",
                "description": "Automatically assigned AAP superusers with RBAC admin access",
            },
            "children": [],
            "members": members,
        },
    }
