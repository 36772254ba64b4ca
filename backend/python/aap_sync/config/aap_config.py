from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field  # type: ignore

from aap_sync.config.constants.aap import DEFAULT_MAX_GROUP_MEMBERSHIPS


class AnsibleConfig(BaseModel):
    """Connection settings of the automation platform shared by every service
    Args:
        base_url: The base URL of the AAP instance
        token: The service token used for catalog synchronization
        check_ssl: Whether to verify TLS certificates
        github_token: GitHub integration token embedded in SCM use-case URLs
        gitlab_token: GitLab integration token embedded in SCM use-case URLs
    """
    base_url: str
    token: str = ""
    check_ssl: bool = True
    github_token: Optional[str] = None
    gitlab_token: Optional[str] = None

    def scm_token(self, scm_type: Optional[str]) -> Optional[str]:
        if scm_type == "Github":
            return self.github_token
        if scm_type == "Gitlab":
            return self.gitlab_token
        return None


class AapConfig(BaseModel):
    """Settings of one catalog provider"""
    id: str
    base_url: str
    token: str = ""
    check_ssl: bool = True
    organizations: List[str] = Field(default_factory=list)
    survey_enabled: Optional[bool] = None
    job_template_labels: List[str] = Field(default_factory=list)
    max_group_memberships: int = DEFAULT_MAX_GROUP_MEMBERSHIPS


def _get_path(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    node: Any = config
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _integration_token(config: Dict[str, Any], kind: str) -> Optional[str]:
    integrations = _get_path(config, f"integrations.{kind}", [])
    if isinstance(integrations, dict):
        integrations = [integrations]
    for integration in integrations or []:
        if isinstance(integration, dict) and integration.get("token"):
            return integration["token"]
    return None


def _parse_organizations(orgs: Union[str, List[str], None]) -> List[str]:
    if not orgs:
        return []
    if isinstance(orgs, str):
        orgs = orgs.split(",")
    return [org.strip().lower() for org in orgs if org and org.strip()]


def read_ansible_config(config: Dict[str, Any]) -> AnsibleConfig:
    """Read the ansible.rhaap section plus the SCM integration tokens

    Raises:
        ValueError: If ansible.rhaap.baseUrl is missing
    """
    rhaap = _get_path(config, "ansible.rhaap", {}) or {}
    base_url = rhaap.get("baseUrl")
    if not base_url:
        raise ValueError("Missing required config value at 'ansible.rhaap.baseUrl'")

    check_ssl = rhaap.get("checkSSL")
    return AnsibleConfig(
        base_url=base_url.rstrip("/"),
        token=rhaap.get("token") or "",
        check_ssl=True if check_ssl is None else bool(check_ssl),
        github_token=_integration_token(config, "github"),
        gitlab_token=_integration_token(config, "gitlab"),
    )


def read_aap_entity_configs(config: Dict[str, Any], sync_entity: str) -> List[AapConfig]:
    """Read every catalog.providers.rhaap.<id> block enabled for sync_entity"""
    providers = _get_path(config, "catalog.providers.rhaap")
    if not providers:
        return []

    ansible_config = read_ansible_config(config)
    configs = []
    for provider_id, provider in providers.items():
        provider = provider or {}
        sync = _get_path(provider, f"sync.{sync_entity}", {}) or {}
        if "enabled" in sync and not sync["enabled"]:
            continue

        aap_config = AapConfig(
            id=provider_id,
            base_url=ansible_config.base_url,
            token=ansible_config.token,
            check_ssl=ansible_config.check_ssl,
            organizations=_parse_organizations(provider.get("orgs")),
        )
        if sync_entity == "jobTemplates":
            aap_config.survey_enabled = sync.get("surveyEnabled")
            aap_config.job_template_labels = list(sync.get("labels") or [])
        if sync_entity == "orgsUsersTeams" and sync.get("maxGroupMemberships") is not None:
            aap_config.max_group_memberships = int(sync["maxGroupMemberships"])
        configs.append(aap_config)
    return configs
