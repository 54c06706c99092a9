"""Pull request and issue housekeeping around a coding-agent run."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from jrdev.core.config import settings
from jrdev.dtos.events import GithubIssue, GithubPullRequest, GithubRepository
from jrdev.services.github.github_client import GitHubClient
from jrdev.services.github.github_exceptions import (
    GithubNotFoundError,
    GithubValidationError,
)
from jrdev.services.llm_service import LLMService
from jrdev.utils.text import kebab_case

logger = logging.getLogger(__name__)

WORKING_COMMENT = "I'm on it!"
DEFAULT_PR_BODY = "AI-generated changes."
ISSUE_ERROR_COMMENT = (
    "I'm sorry, I've actually had an error that I don't know how to handle. "
    "You can try again, but if it keeps failing, I'll have my own Sr dev's review the error."
)
REVIEW_ERROR_COMMENT = (
    "I'm sorry, I ran into an error while working on this review. "
    "You can request changes again to retry."
)
NO_ENTITLEMENT_COMMENT = (
    "⚠️ **No active subscription**\n\n"
    "This account does not have an active AI Jr Dev subscription and the free "
    "promotion is fully claimed. Please subscribe to assign issues to me."
)
NO_CHANGES_ISSUE_COMMENT = (
    "I ran twice but could not produce any changes for this issue. "
    "I've left the label in place; add more detail to the issue, then remove "
    "and re-add the label to try again."
)
NO_CHANGES_REVIEW_COMMENT = (
    "I could not determine what changes to make from this review. "
    "Could you add more specific comments and request changes again?"
)


def format_renewal_date(renewal_date: str) -> str:
    try:
        parsed = datetime.fromisoformat(renewal_date.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return renewal_date
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def quota_exceeded_comment(renewal_date: Optional[str]) -> str:
    header = (
        "⚠️ **Monthly AI PR Quota Exceeded**\n\n"
        "I'm sorry, but you've reached your limit for AI-generated pull requests."
    )
    if not renewal_date:
        # Promotion allowances never renew
        return f"{header}\n\nPlease consider upgrading your subscription for a higher limit."
    return (
        f"{header} Your quota will reset on {format_renewal_date(renewal_date)}.\n\n"
        "Please try again after that date, or consider upgrading your subscription "
        "for a higher limit."
    )


def branch_name_for(issue: GithubIssue, prefix: Optional[str] = None) -> str:
    prefix = prefix or settings.BRANCH_PREFIX
    return f"{prefix}/{issue.number}-{kebab_case(issue.title)}"


def issue_number_from_branch(branch: str, prefix: Optional[str] = None) -> Optional[int]:
    prefix = prefix or settings.BRANCH_PREFIX
    match = re.match(rf"^{re.escape(prefix)}/(\d+)-", branch)
    return int(match.group(1)) if match else None


class PullRequestLifecycle:
    def __init__(self, github: GitHubClient, llm: Optional[LLMService] = None):
        self.github = github
        self.llm = llm

    def post_comment(self, full_name: str, number: int, body: str) -> None:
        self.github.create_issue_comment(full_name, number, body)

    def remove_label(self, full_name: str, number: int, label: str) -> bool:
        try:
            self.github.remove_label(full_name, number, label)
        except GithubNotFoundError:
            logger.warning("Label %s already absent from %s#%s", label, full_name, number)
            return False
        return True

    def ensure_branch(self, repository: GithubRepository, issue: GithubIssue) -> str:
        """Reuse the issue branch when it exists, otherwise branch from the default head."""
        branch_name = branch_name_for(issue)
        try:
            self.github.get_branch_sha(repository.full_name, branch_name)
            return branch_name
        except GithubNotFoundError:
            pass

        base_sha = self.github.get_branch_sha(repository.full_name, repository.default_branch)
        self.github.create_ref(repository.full_name, f"refs/heads/{branch_name}", base_sha)
        logger.info("Created branch %s in %s from %s", branch_name, repository.full_name, base_sha)
        return branch_name

    def describe_changes(self, job_output: str) -> str:
        if self.llm is None:
            return DEFAULT_PR_BODY
        try:
            return self.llm.generate_pr_description(job_output)
        except Exception:
            logger.exception("Failed to generate PR description")
            return DEFAULT_PR_BODY

    def create_pull_request(
        self,
        repository: GithubRepository,
        issue: GithubIssue,
        branch_name: str,
        job_output: str,
    ) -> Dict[str, Any]:
        body = self.describe_changes(job_output)
        pull_request = self.github.create_pull_request(
            repository.full_name,
            title=f"[AI] {issue.title}",
            head=branch_name,
            base=repository.default_branch,
            body=body,
        )
        self.post_comment(
            repository.full_name,
            issue.number,
            f"Pull request created: {pull_request.get('html_url')}",
        )
        return pull_request

    def list_pull_request_files(self, repository: GithubRepository, number: int) -> List[str]:
        return [
            item["filename"]
            for item in self.github.list_pull_request_files(repository.full_name, number)
            if item.get("filename")
        ]

    def reset_review_request(
        self, repository: GithubRepository, pull_request: GithubPullRequest, reviewer: Optional[str]
    ) -> None:
        if not reviewer:
            logger.warning(
                "Could not re-request review for PR #%s as reviewer login is missing",
                pull_request.number,
            )
            return
        self.github.request_reviewers(repository.full_name, pull_request.number, [reviewer])

    def close_linked_issue(
        self, repository: GithubRepository, pull_request: GithubPullRequest
    ) -> Optional[int]:
        issue_number = issue_number_from_branch(pull_request.head.ref)
        if issue_number is None:
            logger.warning(
                "PR #%s: could not extract issue number from branch name %s; skipping issue close",
                pull_request.number,
                pull_request.head.ref,
            )
            return None

        try:
            self.post_comment(
                repository.full_name,
                issue_number,
                f"Pull request #{pull_request.number} merged. Closing this issue.",
            )
            self.github.close_issue(repository.full_name, issue_number)
            logger.info("Closed issue #%s for merged PR #%s", issue_number, pull_request.number)
            return issue_number
        except Exception:
            logger.exception(
                "Failed to close issue #%s for PR #%s", issue_number, pull_request.number
            )
            try:
                self.post_comment(
                    repository.full_name,
                    issue_number,
                    f"Attempted to close this issue after PR #{pull_request.number} was merged, "
                    "but encountered an error. Please close manually if appropriate.",
                )
            except Exception:
                logger.exception("Failed to add error comment to issue #%s", issue_number)
            return None

    def ensure_label_exists(self, full_name: str) -> bool:
        """Create the assignment label. Returns True when it had to be created."""
        try:
            self.github.get_label(full_name, settings.AI_JR_DEV_LABEL_NAME)
            return False
        except GithubNotFoundError:
            pass
        try:
            self.github.create_label(
                full_name,
                settings.AI_JR_DEV_LABEL_NAME,
                settings.AI_JR_DEV_LABEL_COLOR,
                settings.AI_JR_DEV_LABEL_DESCRIPTION,
            )
        except GithubValidationError:
            # Created concurrently
            return False
        logger.info("Created label %s in %s", settings.AI_JR_DEV_LABEL_NAME, full_name)
        return True
