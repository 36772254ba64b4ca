from enum import Enum


class AAPEndpoint(Enum):
    """Relative paths on the automation platform"""

    PROJECTS = "api/controller/v2/projects/"
    EXECUTION_ENVIRONMENTS = "api/controller/v2/execution_environments/"
    JOB_TEMPLATES = "api/controller/v2/job_templates/"
    JOB_TEMPLATE_LAUNCH = "api/controller/v2/job_templates/{id}/launch/"
    JOBS = "api/controller/v2/jobs/"
    JOB_EVENTS = "api/controller/v2/jobs/{id}/job_events/"
    JOB_STDOUT = "api/controller/v2/jobs/{id}/stdout/?format=txt"

    ORGANIZATIONS = "api/gateway/v1/organizations/"
    TEAMS = "api/gateway/v1/teams/"
    USERS = "api/gateway/v1/users/"
    USER_TEAMS = "api/gateway/v1/users/{id}/teams/"
    USER_ORGANIZATIONS = "api/gateway/v1/users/{id}/organizations/"
    ROLE_USER_ASSIGNMENTS = "api/gateway/v1/role_user_assignments/"

    PING = "api/gateway/v1/ping/"
    CONTROLLER_CONFIG = "api/controller/v2/config"
    LEGACY_CONFIG = "api/v2/config"
    OAUTH_TOKEN = "o/token/"


class AAPPortalPath(Enum):
    """UI paths stamped onto resources and catalog entities"""

    PROJECT = "execution/projects/{id}/details"
    EXECUTION_ENVIRONMENT = "execution/infrastructure/execution-environments/{id}/details"
    JOB_TEMPLATE = "execution/templates/job-template/{id}/details"
    JOB_OUTPUT = "execution/jobs/playbook/{id}/output"
    ORGANIZATION = "access/organizations/{id}/details"
    TEAM = "access/teams/{id}/details"
    USER = "access/users/{id}/details"


class JobStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    WAITING = "waiting"
    RUNNING = "running"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    ERROR = "error"
    CANCELED = "canceled"


WAIT_STATUSES = frozenset({
    JobStatus.NEW.value,
    JobStatus.PENDING.value,
    JobStatus.WAITING.value,
    JobStatus.RUNNING.value,
})
FAILED_STATUSES = frozenset({
    JobStatus.FAILED.value,
    JobStatus.ERROR.value,
    JobStatus.CANCELED.value,
})
TERMINAL_STATUSES = FAILED_STATUSES | {JobStatus.SUCCESSFUL.value}

VALID_LICENSE_TYPES = frozenset({"enterprise", "developer", "trial"})

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_GROUP_MEMBERSHIPS = 50
DEFAULT_PAGE_SIZE = 100

AAP_ADMINS_GROUP = "aap-admins"

INSUFFICIENT_PRIVILEGES_MESSAGE = "Insufficient privileges. Please contact your administrator."
UNDEFINED_ERROR_MESSAGE = "Undefined Error. Please check the portal for job execution logs."
