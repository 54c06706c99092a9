"""Cloud Run adapter for the coding-agent job.

One call submits one execution of the job, blocks until the execution
finishes and returns the text payload of every log line it produced.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from urllib.parse import parse_qs, unquote, urlparse

from google.cloud import logging as cloud_logging
from google.cloud import run_v2

from jrdev.core.config import settings
from jrdev.core.exceptions import JobRunnerError

logger = logging.getLogger(__name__)


@dataclass
class JobRequest:
    installation_id: int
    prompt: str
    clone_url: str
    branch_name: str
    files: List[str] = field(default_factory=list)

    def with_files(self, files: List[str]) -> "JobRequest":
        return JobRequest(
            installation_id=self.installation_id,
            prompt=self.prompt,
            clone_url=self.clone_url,
            branch_name=self.branch_name,
            files=list(files),
        )


def authenticated_clone_url(clone_url: str, token: str) -> str:
    parsed = urlparse(clone_url)
    return parsed._replace(netloc=f"x-access-token:{token}@{parsed.hostname}").geturl()


def files_argument(files: List[str]) -> str:
    return " ".join(f"--file {shlex.quote(path)}" for path in files)


def parse_log_uri(log_uri: str) -> tuple[str, str]:
    """Return (project, advanced filter) from an execution's console log link."""
    query = parse_qs(urlparse(log_uri).query)
    project = (query.get("project") or [""])[0]
    advanced_filter = unquote((query.get("advancedFilter") or [""])[0])
    if not project or not advanced_filter:
        raise JobRunnerError(f"Execution log URI is missing project or filter: {log_uri}")
    return project, advanced_filter


class CloudRunJobRunner:
    def __init__(
        self,
        token_provider: Callable[[int], str],
        jobs_client: Optional[run_v2.JobsClient] = None,
        logging_client_factory: Optional[Callable[[str], cloud_logging.Client]] = None,
        job_name: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.token_provider = token_provider
        self._jobs_client = jobs_client
        self._logging_client_factory = logging_client_factory or (
            lambda project: cloud_logging.Client(project=project)
        )
        self.job_name = job_name or settings.cloud_run_job_path
        self.timeout = timeout or settings.CLOUD_RUN_TIMEOUT_SECONDS

    @property
    def jobs_client(self) -> run_v2.JobsClient:
        if self._jobs_client is None:
            self._jobs_client = run_v2.JobsClient()
        return self._jobs_client

    def _overrides(self, request: JobRequest, token: str) -> run_v2.RunJobRequest.Overrides:
        env = [
            run_v2.EnvVar(name="PROMPT", value=request.prompt),
            run_v2.EnvVar(
                name="REPO_NAME", value=authenticated_clone_url(request.clone_url, token)
            ),
            run_v2.EnvVar(name="BRANCH_NAME", value=request.branch_name),
            run_v2.EnvVar(name="FILES", value=files_argument(request.files)),
        ]
        return run_v2.RunJobRequest.Overrides(
            container_overrides=[run_v2.RunJobRequest.Overrides.ContainerOverride(env=env)]
        )

    def run(self, request: JobRequest) -> str:
        logger.info(
            "Running job %s on branch %s with %d file hint(s)",
            self.job_name,
            request.branch_name,
            len(request.files),
        )
        try:
            token = self.token_provider(request.installation_id)
            operation = self.jobs_client.run_job(
                request=run_v2.RunJobRequest(
                    name=self.job_name, overrides=self._overrides(request, token)
                )
            )
            execution = operation.result(timeout=self.timeout)
            return self._collect_logs(execution.log_uri)
        except JobRunnerError:
            raise
        except Exception as exc:
            logger.error("Cloud Run job %s failed: %s", self.job_name, exc)
            raise JobRunnerError(f"Cloud Run job {self.job_name} failed: {exc}") from exc

    def _collect_logs(self, log_uri: str) -> str:
        project, advanced_filter = parse_log_uri(log_uri)
        client = self._logging_client_factory(project)
        entries = client.list_entries(
            resource_names=[f"projects/{project}"],
            filter_=advanced_filter,
            order_by=cloud_logging.ASCENDING,
        )
        lines = [entry.payload for entry in entries if isinstance(entry.payload, str) and entry.payload]
        return "\n".join(lines)
