import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional

from aap_sync.config.constants.aap import (
    DEFAULT_POLL_INTERVAL,
    TERMINAL_STATUSES,
    UNDEFINED_ERROR_MESSAGE,
    AAPEndpoint,
    AAPPortalPath,
    JobStatus,
)
from aap_sync.exceptions.aap_exceptions import (
    DuplicateCredentialTypeError,
    JobExecutionError,
    JobPollTimeoutError,
    JobTemplateNotFoundError,
)
from aap_sync.models.entities import JobExecutionResult, LaunchJobTemplate
from aap_sync.sources.external.aap.aap import AAPDataSource
from aap_sync.sources.external.aap.pagination import Paginator
from aap_sync.utils.cancellation import CancellationToken

ERROR_MESSAGE_PATTERN = re.compile(r'"msg":\s*"([^"]+)"')


def build_launch_payload(payload: LaunchJobTemplate) -> Dict[str, Any]:
    """Translate a launch request into the body of job_templates/<id>/launch/

    Numeric and boolean options are included whenever they are set, so 0 and
    False are sent. String options are included only when non-empty.

    Raises:
        DuplicateCredentialTypeError: If two credentials share a credential type
    """
    data: Dict[str, Any] = {"extra_vars": payload.extra_variables if payload.extra_variables is not None else ""}

    if payload.inventory and payload.inventory.id is not None:
        data["inventory"] = payload.inventory.id
    if payload.job_type:
        data["job_type"] = payload.job_type
    if payload.execution_environment and payload.execution_environment.id is not None:
        data["execution_environment"] = payload.execution_environment.id
    if payload.forks is not None:
        data["forks"] = payload.forks
    if payload.limit:
        data["limit"] = payload.limit
    if payload.verbosity and payload.verbosity.id is not None:
        data["verbosity"] = payload.verbosity.id
    if payload.job_slice_count is not None:
        data["job_slice_count"] = payload.job_slice_count
    if payload.timeout is not None:
        data["timeout"] = payload.timeout
    if payload.diff_mode is not None:
        data["diff_mode"] = payload.diff_mode
    if payload.job_tags:
        data["job_tags"] = payload.job_tags
    if payload.skip_tags:
        data["skip_tags"] = payload.skip_tags

    if payload.credentials:
        seen = set()
        duplicates: List[str] = []
        for credential in payload.credentials:
            if credential.credential_type in seen:
                type_name = credential.credential_type_name()
                if type_name not in duplicates:
                    duplicates.append(type_name)
            seen.add(credential.credential_type)
        if duplicates:
            raise DuplicateCredentialTypeError(duplicates)
        data["credentials"] = [credential.id for credential in payload.credentials]

    return data


def extract_failure_message(stdout: str) -> Optional[str]:
    """Return the last ``"msg": "..."`` value of a job stdout, if any"""
    matches = ERROR_MESSAGE_PATTERN.findall(stdout or "")
    return matches[-1] if matches else None


class JobExecutionService:
    """Launches job templates and follows them to a terminal status.

    The flow is: resolve the template id by name when missing, validate and
    build the launch body, launch, poll the job detail, collect all job events
    and either return the result or diagnose the failure from the job stdout.
    """

    def __init__(
        self,
        data_source: AAPDataSource,
        paginator: Paginator,
        logger: logging.Logger,
        base_url: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_duration: Optional[float] = None,
    ) -> None:
        self.data_source = data_source
        self.paginator = paginator
        self.logger = logger
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_poll_duration = max_poll_duration

    async def resolve_template_id(self, payload: LaunchJobTemplate, token: Optional[str] = None) -> int:
        if payload.template.id is not None:
            return payload.template.id

        name = payload.template.name
        response = await self.data_source.get(AAPEndpoint.JOB_TEMPLATES.value, token, params={"name": name})
        templates = response.json().get("results") or []
        if not templates:
            raise JobTemplateNotFoundError(f"No job template found with name: {name}")
        if len(templates) > 1:
            self.logger.warning(f"Found {len(templates)} job templates named {name}, using the lowest id.")
        return min(template["id"] for template in templates)

    async def launch_job_template(
        self,
        payload: LaunchJobTemplate,
        token: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> JobExecutionResult:
        """Launch a job template and wait for its outcome

        Raises:
            JobTemplateNotFoundError: If the template name does not resolve
            DuplicateCredentialTypeError: If credentials share a type, before any request is sent
            JobExecutionError: If the job ends in a non-successful status
            JobPollTimeoutError: If the job outlives max_poll_duration
        """
        data = build_launch_payload(payload)
        template_id = await self.resolve_template_id(payload, token)

        self.logger.info("Start executing job template.")
        response = await self.data_source.post(
            AAPEndpoint.JOB_TEMPLATE_LAUNCH.value.format(id=template_id), token, data
        )
        job_id = response.json()["job"]
        self.logger.info("Waiting for result of the executed job template.")

        job = await self.wait_for_job(job_id, token, cancellation)
        events = await self.paginator.collect(
            AAPEndpoint.JOB_EVENTS.value.format(id=job_id), token, cancellation=cancellation
        )
        self.log_event_summary(events)

        status = str(job.get("status", ""))
        if status.lower() != JobStatus.SUCCESSFUL.value:
            diagnosis = await self.diagnose_failure(job_id, token)
            self.logger.error("Error while executing job template.")
            self.logger.error(f"Job failed: {diagnosis}")
            raise JobExecutionError(diagnosis, job_id=job_id, status=status)

        return JobExecutionResult(
            id=job_id,
            status=status,
            events=events,
            url=f"{self.base_url}/{AAPPortalPath.JOB_OUTPUT.value.format(id=job_id)}",
        )

    async def wait_for_job(
        self,
        job_id: int,
        token: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        endpoint = f"{AAPEndpoint.JOBS.value}{job_id}/"
        started = time.monotonic()
        while True:
            if self.max_poll_duration is not None and time.monotonic() - started > self.max_poll_duration:
                raise JobPollTimeoutError(
                    f"Job {job_id} did not finish within {self.max_poll_duration} seconds", job_id=job_id
                )
            if cancellation:
                await cancellation.sleep(self.poll_interval)
            else:
                await asyncio.sleep(self.poll_interval)

            response = await self.data_source.get(endpoint, token)
            job = response.json()
            if str(job.get("status", "")).lower() in TERMINAL_STATUSES:
                return job

    async def diagnose_failure(self, job_id: int, token: Optional[str] = None) -> str:
        try:
            stdout = await self.data_source.get_text(AAPEndpoint.JOB_STDOUT.value.format(id=job_id), token)
        except Exception as e:
            self.logger.error(f"Failed to fetch stdout of job {job_id}: {e}", exc_info=True)
            return UNDEFINED_ERROR_MESSAGE
        return extract_failure_message(stdout) or UNDEFINED_ERROR_MESSAGE

    def log_event_summary(self, events: List[Dict[str, Any]]) -> None:
        lines = [
            event["stdout"]
            for event in events
            if event.get("stdout") and event.get("event") != "verbose"
        ]
        if lines:
            self.logger.info("Job execution summary:\n" + "\n".join(lines))
