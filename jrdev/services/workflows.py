"""Webhook workflows: issue labeled, review submitted, PR closed, app installed."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from jrdev.core.config import settings
from jrdev.dtos.events import (
    GithubPullRequest,
    InstallationCreatedEvent,
    IssueLabeledEvent,
    PullRequestClosedEvent,
    ReviewSubmittedEvent,
)
from jrdev.repositories.github_installation import GithubInstallationRepository
from jrdev.repositories.installation_usage import InstallationUsageRepository
from jrdev.services.entitlement_service import AccountRef, EntitlementResolver
from jrdev.services.github.lifecycle import (
    ISSUE_ERROR_COMMENT,
    NO_CHANGES_ISSUE_COMMENT,
    NO_CHANGES_REVIEW_COMMENT,
    NO_ENTITLEMENT_COMMENT,
    REVIEW_ERROR_COMMENT,
    WORKING_COMMENT,
    PullRequestLifecycle,
    quota_exceeded_comment,
)
from jrdev.services.job_runner import JobRequest
from jrdev.services.orchestrator import ChangeOrchestrator
from jrdev.services.prompt import generate_issue_prompt, generate_review_prompt
from jrdev.services.quota_service import QuotaDecision, QuotaService, QuotaStatus

logger = logging.getLogger(__name__)


def _ignored(reason: str) -> Dict[str, Any]:
    return {"status": "ignored", "reason": reason}


def is_app_pull_request(
    pull_request: GithubPullRequest,
    watched_labels: Iterable[str],
    app_user_id: Optional[int],
) -> bool:
    authored_by_app = (
        app_user_id is not None
        and pull_request.user is not None
        and pull_request.user.id == app_user_id
    )
    return authored_by_app or pull_request.has_label(list(watched_labels))


def owner_account(repository, organization=None) -> AccountRef:
    aliases = (organization.login,) if organization else ()
    return AccountRef(login=repository.owner.login, id=repository.owner.id, aliases=aliases)


class IssueLabeledWorkflow:
    def __init__(
        self,
        quota: QuotaService,
        usage_repo: InstallationUsageRepository,
        lifecycle: PullRequestLifecycle,
        orchestrator: ChangeOrchestrator,
        watched_labels: Optional[Iterable[str]] = None,
    ):
        self.quota = quota
        self.usage_repo = usage_repo
        self.lifecycle = lifecycle
        self.orchestrator = orchestrator
        self.watched_labels = list(watched_labels or settings.WATCHED_LABELS)

    def handle(self, event: IssueLabeledEvent) -> Dict[str, Any]:
        if not event.installation_id or not event.label_name:
            return _ignored("missing_installation_or_label")
        if event.label_name not in self.watched_labels:
            return _ignored("label_not_watched")

        try:
            return self._process(event)
        except Exception as exc:
            self.handle_issue_error(event, exc)
            return {"status": "failed", "error": str(exc)}

    def _process(self, event: IssueLabeledEvent) -> Dict[str, Any]:
        repository, issue = event.repository, event.issue
        installation_id = event.installation_id

        decision = self.quota.check(installation_id, owner_account(repository, event.organization))
        if not decision.allowed:
            self._deny(event, decision)
            return {"status": "denied", "reason": decision.status.value}

        self.lifecycle.post_comment(repository.full_name, issue.number, WORKING_COMMENT)
        branch_name = self.lifecycle.ensure_branch(repository, issue)

        request = JobRequest(
            installation_id=installation_id,
            prompt=generate_issue_prompt(issue),
            clone_url=repository.clone_url,
            branch_name=branch_name,
        )
        outcome = self.orchestrator.run(repository.full_name, request)

        if not outcome.changed:
            # The label stays so the user can retry by re-applying it
            self.lifecycle.post_comment(repository.full_name, issue.number, NO_CHANGES_ISSUE_COMMENT)
            return {"status": "no_changes", "attempts": outcome.attempts, "branch": branch_name}

        pull_request = self.lifecycle.create_pull_request(
            repository, issue, branch_name, outcome.log_text
        )
        outcome.mark_finalized()
        pr_number = pull_request["number"]
        self._record_pull_request(
            installation_id,
            decision.entitlement.cycle_key,
            pr_number,
            outcome.cost,
            repository.full_name,
        )
        return {
            "status": "processed",
            "pull_request": pr_number,
            "attempts": outcome.attempts,
            "cost": outcome.cost,
        }

    def _deny(self, event: IssueLabeledEvent, decision: QuotaDecision) -> None:
        if decision.status == QuotaStatus.EXCEEDED:
            body = quota_exceeded_comment(decision.entitlement.renewal_date)
        else:
            body = NO_ENTITLEMENT_COMMENT
        self.lifecycle.post_comment(event.repository.full_name, event.issue.number, body)
        self.lifecycle.remove_label(
            event.repository.full_name, event.issue.number, event.label_name
        )

    def _record_pull_request(
        self,
        installation_id: int,
        cycle_key: str,
        pr_number: int,
        cost: float,
        repository: str,
    ) -> None:
        try:
            self.usage_repo.append_pull_request(
                installation_id, cycle_key, pr_number, cost, repository=repository
            )
        except Exception:
            logger.exception("Failed to record usage for PR #%s", pr_number)

    def handle_issue_error(self, event: IssueLabeledEvent, error: Exception) -> None:
        logger.error(
            "Error processing issue label event for %s#%s: %s",
            event.repository.full_name,
            event.issue.number,
            error,
            exc_info=error,
        )
        try:
            self.lifecycle.post_comment(
                event.repository.full_name, event.issue.number, ISSUE_ERROR_COMMENT
            )
            if event.label_name:
                self.lifecycle.remove_label(
                    event.repository.full_name, event.issue.number, event.label_name
                )
        except Exception:
            logger.exception("Failed to handle issue error gracefully")


class ReviewSubmittedWorkflow:
    def __init__(
        self,
        resolver: EntitlementResolver,
        usage_repo: InstallationUsageRepository,
        lifecycle: PullRequestLifecycle,
        orchestrator: ChangeOrchestrator,
        watched_labels: Optional[Iterable[str]] = None,
        app_user_id: Optional[int] = None,
    ):
        self.resolver = resolver
        self.usage_repo = usage_repo
        self.lifecycle = lifecycle
        self.orchestrator = orchestrator
        self.watched_labels = list(watched_labels or settings.WATCHED_LABELS)
        self.app_user_id = app_user_id if app_user_id is not None else settings.APP_USER_ID

    def handle(self, event: ReviewSubmittedEvent) -> Dict[str, Any]:
        if not event.installation_id:
            return _ignored("missing_installation")
        if event.review.state.lower() != "changes_requested":
            return _ignored("review_not_changes_requested")
        if not is_app_pull_request(event.pull_request, self.watched_labels, self.app_user_id):
            return _ignored("not_an_ai_pull_request")

        try:
            return self._process(event)
        except Exception as exc:
            self.handle_review_error(event, exc)
            return {"status": "failed", "error": str(exc)}

    def _process(self, event: ReviewSubmittedEvent) -> Dict[str, Any]:
        repository, pull_request = event.repository, event.pull_request

        entitlement = self.resolver.resolve(owner_account(repository, event.organization))
        if not entitlement.is_entitled:
            self.lifecycle.post_comment(
                repository.full_name, pull_request.number, NO_ENTITLEMENT_COMMENT
            )
            return {"status": "denied", "reason": "not_entitled"}

        prompt = generate_review_prompt(self.lifecycle.github, event)
        if not prompt:
            logger.warning(
                "No actionable feedback found in review %s. Skipping job run.", event.review.id
            )
            return _ignored("no_actionable_feedback")

        files = self.lifecycle.list_pull_request_files(repository, pull_request.number)
        request = JobRequest(
            installation_id=event.installation_id,
            prompt=prompt,
            clone_url=repository.clone_url,
            branch_name=pull_request.head.ref,
            files=files,
        )
        outcome = self.orchestrator.run(repository.full_name, request)

        self._record_session(event, entitlement.cycle_key, outcome.cost)

        if not outcome.changed:
            self.lifecycle.post_comment(
                repository.full_name, pull_request.number, NO_CHANGES_REVIEW_COMMENT
            )
            return {"status": "no_changes", "attempts": outcome.attempts}

        reviewer = event.review.user.login if event.review.user else None
        self.lifecycle.reset_review_request(repository, pull_request, reviewer)
        outcome.mark_finalized()
        return {"status": "processed", "attempts": outcome.attempts, "cost": outcome.cost}

    def _record_session(self, event: ReviewSubmittedEvent, cycle_key: str, cost: float) -> None:
        pr_number = event.pull_request.number
        try:
            self.usage_repo.append_session(
                event.installation_id,
                cycle_key,
                pr_number,
                cost,
                repository=event.repository.full_name,
            )
        except Exception:
            logger.exception("Failed to record review session usage for PR #%s", pr_number)

    def handle_review_error(self, event: ReviewSubmittedEvent, error: Exception) -> None:
        logger.error(
            "Error processing review submission for %s#%s: %s",
            event.repository.full_name,
            event.pull_request.number,
            error,
            exc_info=error,
        )
        try:
            self.lifecycle.post_comment(
                event.repository.full_name, event.pull_request.number, REVIEW_ERROR_COMMENT
            )
        except Exception:
            logger.exception("Failed to handle review error gracefully")


class PullRequestClosedWorkflow:
    def __init__(
        self,
        lifecycle: PullRequestLifecycle,
        watched_labels: Optional[Iterable[str]] = None,
        app_user_id: Optional[int] = None,
    ):
        self.lifecycle = lifecycle
        self.watched_labels = list(watched_labels or settings.WATCHED_LABELS)
        self.app_user_id = app_user_id if app_user_id is not None else settings.APP_USER_ID

    def handle(self, event: PullRequestClosedEvent) -> Dict[str, Any]:
        if not event.installation_id:
            return _ignored("missing_installation")
        pull_request = event.pull_request
        if not pull_request.merged:
            return _ignored("not_merged")
        if not is_app_pull_request(pull_request, self.watched_labels, self.app_user_id):
            return _ignored("not_an_ai_pull_request")

        try:
            issue_number = self.lifecycle.close_linked_issue(event.repository, pull_request)
        except Exception as exc:
            logger.exception("Error processing PR closed event for PR #%s", pull_request.number)
            return {"status": "failed", "error": str(exc)}
        return {"status": "processed", "closed_issue": issue_number}


class InstallationCreatedWorkflow:
    def __init__(
        self,
        installation_repo: GithubInstallationRepository,
        lifecycle: PullRequestLifecycle,
    ):
        self.installation_repo = installation_repo
        self.lifecycle = lifecycle

    def handle(self, event: InstallationCreatedEvent) -> Dict[str, Any]:
        account = event.installation.account
        self.installation_repo.upsert_installation(
            event.installation.id,
            account_login=event.owner_login,
            account_type=account.type if account else None,
        )

        repositories = event.repository_full_names()
        if not repositories:
            logger.warning(
                "No specific repositories found in the installation payload. Label creation skipped."
            )
            return {"status": "processed", "labels_created": 0}

        created = 0
        for full_name in repositories:
            try:
                if self.lifecycle.ensure_label_exists(full_name):
                    created += 1
            except Exception:
                logger.exception(
                    "Error ensuring labels exist for %s. Continuing with next repository.", full_name
                )
        return {"status": "processed", "labels_created": created}
