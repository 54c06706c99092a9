"""Run the coding-agent job and retry once when the branch did not move."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Protocol

from jrdev.services.cost_extraction import CostExtractor
from jrdev.services.job_runner import JobRequest
from jrdev.services.llm_service import LLMService

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class BranchReader(Protocol):
    def get_branch_sha(self, full_name: str, branch: str) -> str: ...


class JobRunner(Protocol):
    def run(self, request: JobRequest) -> str: ...


class RunState(str, Enum):
    START = "start"
    RAN_ONCE = "ran_once"
    RETRYING = "retrying"
    DONE = "done"
    FINALIZED = "finalized"


@dataclass
class RunOutcome:
    changed: bool
    attempts: int
    log_text: str
    cost: float
    files: List[str]
    before_sha: str
    after_sha: str
    states: List[RunState] = field(default_factory=list)

    def mark_finalized(self) -> None:
        self.states.append(RunState.FINALIZED)


def merge_files(*groups: List[str]) -> List[str]:
    merged: List[str] = []
    for group in groups:
        for path in group:
            if path and path not in merged:
                merged.append(path)
    return merged


class ChangeOrchestrator:
    """
    START -> RAN_ONCE -> (RETRYING) -> DONE.

    A job that raises is never retried; only a run that leaves the branch
    head unchanged earns the single retry with extra file hints.
    """

    def __init__(
        self,
        github: BranchReader,
        job_runner: JobRunner,
        llm: LLMService,
        cost_extractor: CostExtractor,
    ):
        self.github = github
        self.job_runner = job_runner
        self.llm = llm
        self.cost_extractor = cost_extractor

    def run(self, full_name: str, request: JobRequest) -> RunOutcome:
        states = [RunState.START]
        before = self.github.get_branch_sha(full_name, request.branch_name)

        log_text = self.job_runner.run(request)
        attempts = 1
        cost = self.cost_extractor.extract(log_text)
        states.append(RunState.RAN_ONCE)
        after = self.github.get_branch_sha(full_name, request.branch_name)

        files = list(request.files)
        if after == before and attempts < MAX_ATTEMPTS:
            states.append(RunState.RETRYING)
            hints = self.llm.identify_missing_files(request.prompt, log_text)
            files = merge_files(files, hints)
            logger.info(
                "No commits on %s after first run; retrying with %d file hint(s)",
                request.branch_name,
                len(files),
            )
            log_text = self.job_runner.run(request.with_files(files))
            attempts += 1
            cost += self.cost_extractor.extract(log_text)
            after = self.github.get_branch_sha(full_name, request.branch_name)

        states.append(RunState.DONE)
        changed = after != before
        if not changed:
            logger.warning(
                "Branch %s unchanged after %d attempt(s) in %s", request.branch_name, attempts, full_name
            )
        return RunOutcome(
            changed=changed,
            attempts=attempts,
            log_text=log_text,
            cost=cost,
            files=files,
            before_sha=before,
            after_sha=after,
            states=states,
        )
