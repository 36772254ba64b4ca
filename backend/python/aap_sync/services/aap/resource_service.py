import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional, Union

import yaml

from aap_sync.config.aap_config import AnsibleConfig
from aap_sync.config.constants.aap import (
    DEFAULT_POLL_INTERVAL,
    FAILED_STATUSES,
    WAIT_STATUSES,
    AAPEndpoint,
    AAPPortalPath,
)
from aap_sync.exceptions.aap_exceptions import (
    JobTemplateNotFoundError,
    ResourceCreationError,
)
from aap_sync.models.entities import (
    CleanUp,
    ExecutionEnvironment,
    JobTemplate,
    Organization,
    Project,
    ResourceRef,
)
from aap_sync.sources.external.aap.aap import AAPDataSource
from aap_sync.utils.cancellation import CancellationToken


def embed_scm_credentials(
    extra_vars: Dict[str, Any],
    username: Optional[str],
    password: Optional[str],
) -> Dict[str, Any]:
    """Return a copy of extra_vars with every ``usecases[].url`` carrying basic auth"""
    rewritten = copy.deepcopy(extra_vars)
    usecases = rewritten.get("usecases") or []
    rewritten["usecases"] = [
        {
            **usecase,
            "url": usecase.get("url", "").replace("https://", f"https://{username}:{password}@", 1),
        }
        for usecase in usecases
    ]
    return rewritten


def _ref_id(value: Union[Organization, ResourceRef, int, None]) -> Optional[int]:
    if value is None or isinstance(value, int):
        return value
    return value.id


class AAPResourceService:
    """Idempotent create / delete of projects, execution environments and job templates.

    Every delete-if-exists lookup is scoped by (organization, name). A single
    match is deleted, no match is a no-op and several matches are left in
    place with a warning, since the platform does not guarantee uniqueness.
    """

    def __init__(
        self,
        data_source: AAPDataSource,
        logger: logging.Logger,
        ansible_config: AnsibleConfig,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.data_source = data_source
        self.logger = logger
        self.ansible_config = ansible_config
        self.base_url = ansible_config.base_url
        self.poll_interval = poll_interval

    def _portal_url(self, path: AAPPortalPath, resource_id: Any) -> str:
        return f"{self.base_url}/{path.value.format(id=resource_id)}"

    async def _delete_single_match(
        self,
        endpoint: AAPEndpoint,
        kind: str,
        name: str,
        organization: Organization,
        token: Optional[str],
    ) -> bool:
        self.logger.info(f"Check if {kind} with name {name} exist in organization {organization.name}.")
        response = await self.data_source.get(
            endpoint.value,
            token,
            params={"organization": organization.id, "name": name},
        )
        matches = response.json().get("results") or []
        if len(matches) > 1:
            self.logger.warning(
                f"Found {len(matches)} {kind}s named {name} in organization {organization.name}, "
                "none of them will be deleted."
            )
            return False
        if not matches:
            return False

        resource_id = matches[0]["id"]
        self.logger.info(f"Delete {kind} with id: {resource_id}.")
        await self.data_source.delete(f"{endpoint.value}{resource_id}/", token)
        self.logger.info(f"End delete {kind} with id: {resource_id}.")
        return True

    # ==================== PROJECTS ====================

    async def get_project(self, project_id: int, token: Optional[str] = None) -> Project:
        response = await self.data_source.get(f"{AAPEndpoint.PROJECTS.value}{project_id}/", token)
        return Project.model_validate(response.json())

    async def delete_project(self, project_id: int, token: Optional[str] = None) -> None:
        await self.data_source.delete(f"{AAPEndpoint.PROJECTS.value}{project_id}/", token)

    async def delete_project_if_exists(
        self, name: str, organization: Organization, token: Optional[str] = None
    ) -> bool:
        return await self._delete_single_match(AAPEndpoint.PROJECTS, "project", name, organization, token)

    async def create_project(
        self,
        payload: Project,
        delete_if_exist: bool = False,
        token: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Project:
        """Create a project and wait until its initial SCM update settles

        Raises:
            ResourceCreationError: If the project update ends failed, errored or canceled
        """
        organization = payload.organization
        if delete_if_exist:
            await self.delete_project_if_exists(payload.project_name, organization, token)

        data = {
            "name": payload.project_name,
            "description": payload.project_description or "",
            "organization": _ref_id(organization),
            "scm_type": "git",
            "scm_url": payload.scm_url,
            "scm_branch": payload.scm_branch or "",
            "credential": payload.credentials.id if payload.credentials else None,
            "scm_update_on_launch": payload.scm_update_on_launch,
        }
        self.logger.info(f"Begin creating project {payload.project_name}.")
        response = await self.data_source.post(AAPEndpoint.PROJECTS.value, token, data)
        self.logger.info(f"End creating project {payload.project_name}.")
        project = Project.model_validate(response.json())

        self.logger.info("Waiting for the project to be ready.")
        while (project.status or "").lower() in WAIT_STATUSES:
            if cancellation:
                await cancellation.sleep(self.poll_interval)
            else:
                await asyncio.sleep(self.poll_interval)
            project = await self.get_project(project.id, token)

        if (project.status or "").lower() in FAILED_STATUSES:
            self.logger.error(f"Error creating project: {project.status}")
            reason = await self._project_failure_reason(project, token)
            self.logger.error(f"Error: {reason}")
            raise ResourceCreationError(
                "Failed to create project",
                {"project_id": project.id, "status": project.status, "reason": reason},
            )

        self.logger.info("The project is ready.")
        project.url = self._portal_url(AAPPortalPath.PROJECT, project.id)
        return project

    async def _project_failure_reason(self, project: Project, token: Optional[str]) -> Optional[str]:
        last_job = project.related.get("last_job")
        if not last_job:
            return None
        events_url = f"{last_job}events"
        response = await self.data_source.get(events_url, token, url_override=events_url)
        for event in response.json().get("results") or []:
            msg = ((event.get("event_data") or {}).get("res") or {}).get("msg")
            if msg:
                return msg
        return None

    # ==================== EXECUTION ENVIRONMENTS ====================

    async def delete_execution_environment(self, environment_id: int, token: Optional[str] = None) -> None:
        await self.data_source.delete(f"{AAPEndpoint.EXECUTION_ENVIRONMENTS.value}{environment_id}/", token)

    async def delete_execution_environment_if_exists(
        self, name: str, organization: Organization, token: Optional[str] = None
    ) -> bool:
        return await self._delete_single_match(
            AAPEndpoint.EXECUTION_ENVIRONMENTS, "execution environment", name, organization, token
        )

    async def create_execution_environment(
        self,
        payload: ExecutionEnvironment,
        delete_if_exist: bool = False,
        token: Optional[str] = None,
    ) -> ExecutionEnvironment:
        if delete_if_exist:
            await self.delete_execution_environment_if_exists(
                payload.environment_name, payload.organization, token
            )

        data = {
            "name": payload.environment_name,
            "description": payload.environment_description or "",
            "organization": _ref_id(payload.organization),
            "image": payload.image,
            "pull": payload.pull,
        }
        self.logger.info(f"Begin creating execution environment {payload.environment_name}.")
        response = await self.data_source.post(AAPEndpoint.EXECUTION_ENVIRONMENTS.value, token, data)
        self.logger.info(f"End creating execution environment {payload.environment_name}.")
        environment = ExecutionEnvironment.model_validate(response.json())
        environment.url = self._portal_url(AAPPortalPath.EXECUTION_ENVIRONMENT, environment.id)
        return environment

    # ==================== JOB TEMPLATES ====================

    async def delete_job_template(self, template_id: int, token: Optional[str] = None) -> None:
        await self.data_source.delete(f"{AAPEndpoint.JOB_TEMPLATES.value}{template_id}/", token)

    async def delete_job_template_if_exists(
        self, name: str, organization: Organization, token: Optional[str] = None
    ) -> bool:
        return await self._delete_single_match(AAPEndpoint.JOB_TEMPLATES, "job template", name, organization, token)

    def build_job_template_extra_vars(self, payload: JobTemplate) -> Optional[Dict[str, Any]]:
        if payload.extra_variables is None:
            return None
        extra_vars = copy.deepcopy(payload.extra_variables)
        extra_vars["aap_validate_certs"] = self.ansible_config.check_ssl
        extra_vars["aap_hostname"] = self.base_url
        if payload.credentials and payload.credentials.kind == "scm":
            extra_vars = embed_scm_credentials(
                extra_vars,
                payload.credentials.inputs.get("username"),
                self.ansible_config.scm_token(payload.scm_type),
            )
        return extra_vars

    async def create_job_template(
        self,
        payload: JobTemplate,
        delete_if_exist: bool = False,
        token: Optional[str] = None,
    ) -> JobTemplate:
        if delete_if_exist:
            await self.delete_job_template_if_exists(payload.template_name, payload.organization, token)

        extra_vars = self.build_job_template_extra_vars(payload)
        data = {
            "name": payload.template_name,
            "description": payload.template_description or "",
            "job_type": "run",
            "inventory": _ref_id(payload.job_inventory),
            "project": _ref_id(payload.project),
            "playbook": payload.playbook,
            "execution_environment": _ref_id(payload.execution_environment) or "",
            "extra_vars": yaml.safe_dump(extra_vars, sort_keys=False) if extra_vars else "",
        }
        self.logger.info(f"Begin creating job template {payload.template_name}.")
        response = await self.data_source.post(AAPEndpoint.JOB_TEMPLATES.value, token, data)
        self.logger.info(f"End creating job template {payload.template_name}.")
        template = JobTemplate.model_validate(response.json())
        template.url = self._portal_url(AAPPortalPath.JOB_TEMPLATE, template.id)
        return template

    async def get_job_templates_by_name(
        self,
        template_names: List[str],
        organization: Organization,
        token: Optional[str] = None,
    ) -> List[ResourceRef]:
        """Look up templates of an organization by name

        Raises:
            JobTemplateNotFoundError: If none of the names exist
        """
        response = await self.data_source.get(
            AAPEndpoint.JOB_TEMPLATES.value,
            token,
            params={"organization": organization.id, "name__in": ",".join(template_names)},
        )
        results = response.json().get("results") or []
        if not results:
            raise JobTemplateNotFoundError("No job templates found.")
        return [ResourceRef(id=result["id"], name=result["name"]) for result in results]

    # ==================== MISC ====================

    async def clean_up(self, payload: CleanUp, token: Optional[str] = None) -> None:
        if payload.project and payload.project.id:
            self.logger.info(f"Delete project with id {payload.project.id}.")
            await self.delete_project(payload.project.id, token)
        if payload.template and payload.template.id:
            self.logger.info(f"Delete template with id {payload.template.id}.")
            await self.delete_job_template(payload.template.id, token)
        if payload.execution_environment and payload.execution_environment.id:
            self.logger.info(f"Delete execution environment with id {payload.execution_environment.id}.")
            await self.delete_execution_environment(payload.execution_environment.id, token)

    async def get_resource_data(self, resource: str, token: Optional[str] = None) -> Dict[str, Any]:
        """Raw listing of api/controller/v2/<resource>/"""
        response = await self.data_source.get(f"api/controller/v2/{resource}/", token)
        return response.json()
