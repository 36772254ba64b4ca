from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from aap_sync.utils.naming import to_slug

# user id -> role name -> object ids
RoleAssignments = Dict[int, Dict[str, List[Union[int, str]]]]


class AAPModel(BaseModel):
    """Base for records exchanged with the automation platform.

    Unknown response fields are kept so callers can read them back.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ResourceRef(AAPModel):
    """Reference to a remote resource by id and/or name"""
    id: Optional[int] = None
    name: Optional[str] = None


class Organization(AAPModel):
    id: int
    name: str
    namespace: Optional[str] = None

    @model_validator(mode="after")
    def _default_namespace(self) -> "Organization":
        if not self.namespace:
            self.namespace = to_slug(self.name)
        return self


class Team(AAPModel):
    id: int
    organization: Optional[int] = None
    name: str
    group_name: Optional[str] = Field(default=None, alias="groupName")
    description: Optional[str] = ""

    @model_validator(mode="after")
    def _derive_group_name(self) -> "Team":
        if not self.group_name:
            self.group_name = to_slug(self.name)
        return self


class User(AAPModel):
    id: int
    url: Optional[str] = None
    username: str = ""
    email: Optional[str] = None
    first_name: Optional[str] = ""
    last_name: Optional[str] = ""
    is_superuser: bool = False
    is_orguser: Optional[bool] = None


class UserTeam(AAPModel):
    """A team as seen from one of its members"""
    id: int
    name: str
    group_name: str = Field(alias="groupName")
    org_id: Optional[int] = Field(default=None, alias="orgId")
    org_name: str = Field(default="", alias="orgName")


class UserOrganization(AAPModel):
    id: Optional[int] = None
    name: str
    group_name: str = Field(alias="groupName")


class Credential(AAPModel):
    id: int
    name: Optional[str] = None
    kind: Optional[str] = None
    credential_type: Optional[int] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)
    summary_fields: Dict[str, Any] = Field(default_factory=dict)

    def credential_type_name(self) -> str:
        name = (self.summary_fields.get("credential_type") or {}).get("name")
        return name or str(self.credential_type)


class Project(AAPModel):
    """Desired state of a project plus the fields returned by the platform"""
    id: Optional[int] = None
    name: Optional[str] = None
    project_name: Optional[str] = Field(default=None, alias="projectName")
    project_description: Optional[str] = Field(default=None, alias="projectDescription")
    organization: Optional[Union[Organization, int]] = None
    scm_url: Optional[str] = Field(default=None, alias="scmUrl")
    scm_branch: Optional[str] = Field(default=None, alias="scmBranch")
    credentials: Optional[Credential] = None
    scm_update_on_launch: Optional[bool] = Field(default=None, alias="scmUpdateOnLaunch")
    status: Optional[str] = None
    related: Dict[str, Any] = Field(default_factory=dict)
    url: Optional[str] = None


class ExecutionEnvironment(AAPModel):
    id: Optional[int] = None
    name: Optional[str] = None
    environment_name: Optional[str] = Field(default=None, alias="environmentName")
    environment_description: Optional[str] = Field(default=None, alias="environmentDescription")
    organization: Optional[Union[Organization, int]] = None
    image: Optional[str] = None
    pull: Optional[str] = None
    url: Optional[str] = None


class JobTemplate(AAPModel):
    id: Optional[int] = None
    name: Optional[str] = None
    template_name: Optional[str] = Field(default=None, alias="templateName")
    template_description: Optional[str] = Field(default=None, alias="templateDescription")
    organization: Optional[Union[Organization, int]] = None
    job_inventory: Optional[ResourceRef] = Field(default=None, alias="jobInventory")
    project: Optional[Union[ResourceRef, int]] = None
    playbook: Optional[str] = None
    execution_environment: Optional[Union[ResourceRef, int]] = Field(default=None, alias="executionEnvironment")
    extra_variables: Optional[Dict[str, Any]] = Field(default=None, alias="extraVariables")
    credentials: Optional[Credential] = None
    scm_type: Optional[str] = Field(default=None, alias="scmType")
    url: Optional[str] = None


class Verbosity(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None


class LaunchJobTemplate(AAPModel):
    template: ResourceRef
    inventory: Optional[ResourceRef] = None
    job_type: Optional[str] = Field(default=None, alias="jobType")
    execution_environment: Optional[ResourceRef] = Field(default=None, alias="executionEnvironment")
    forks: Optional[int] = None
    limit: Optional[str] = None
    verbosity: Optional[Verbosity] = None
    job_slice_count: Optional[int] = Field(default=None, alias="jobSliceCount")
    timeout: Optional[int] = None
    diff_mode: Optional[bool] = Field(default=None, alias="diffMode")
    job_tags: Optional[str] = Field(default=None, alias="jobTags")
    skip_tags: Optional[str] = Field(default=None, alias="skipTags")
    extra_variables: Optional[Any] = Field(default=None, alias="extraVariables")
    credentials: List[Credential] = Field(default_factory=list)


class JobExecutionResult(BaseModel):
    id: int
    status: str
    events: List[Dict[str, Any]] = Field(default_factory=list)
    url: str


class OrganizationDetails(BaseModel):
    """Membership graph entry of one organization"""
    organization: Organization
    teams: List[Team] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)


class CleanUp(AAPModel):
    project: Optional[ResourceRef] = None
    template: Optional[ResourceRef] = None
    execution_environment: Optional[ResourceRef] = Field(default=None, alias="executionEnvironment")


class SubscriptionCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: int
    is_valid: bool = Field(alias="isValid")
    is_compliant: bool = Field(alias="isCompliant")
