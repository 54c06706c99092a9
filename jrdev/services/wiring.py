"""Construct workflows and their collaborators for one installation."""

from __future__ import annotations

from pymongo.database import Database

from jrdev.repositories import (
    EnterpriseAccountRepository,
    GithubInstallationRepository,
    InstallationUsageRepository,
    PromotionCohortRepository,
)
from jrdev.services.cost_extraction import CostExtractor
from jrdev.services.entitlement_service import EntitlementResolver, MarketplaceSubscriptionProvider
from jrdev.services.github.github_client import GitHubClient
from jrdev.services.github.github_wiring import (
    get_app_client,
    get_installation_access_token,
    github_app_configured,
)
from jrdev.services.github.lifecycle import PullRequestLifecycle
from jrdev.services.job_runner import CloudRunJobRunner
from jrdev.services.llm_service import LLMService
from jrdev.services.orchestrator import ChangeOrchestrator
from jrdev.services.quota_service import QuotaService
from jrdev.services.workflows import (
    InstallationCreatedWorkflow,
    IssueLabeledWorkflow,
    PullRequestClosedWorkflow,
    ReviewSubmittedWorkflow,
)


def build_resolver(db: Database) -> EntitlementResolver:
    provider = (
        MarketplaceSubscriptionProvider(get_app_client) if github_app_configured() else None
    )
    return EntitlementResolver(
        EnterpriseAccountRepository(db),
        PromotionCohortRepository(db),
        subscription_provider=provider,
    )


def build_orchestrator(github: GitHubClient, llm: LLMService) -> ChangeOrchestrator:
    # Uncached token: the job pushes with it at the end of a long run
    runner = CloudRunJobRunner(
        token_provider=lambda installation_id: get_installation_access_token(installation_id)
    )
    return ChangeOrchestrator(github, runner, llm, CostExtractor(llm))


def build_issue_workflow(db: Database, github: GitHubClient) -> IssueLabeledWorkflow:
    llm = LLMService()
    usage_repo = InstallationUsageRepository(db)
    return IssueLabeledWorkflow(
        quota=QuotaService(build_resolver(db), usage_repo),
        usage_repo=usage_repo,
        lifecycle=PullRequestLifecycle(github, llm),
        orchestrator=build_orchestrator(github, llm),
    )


def build_review_workflow(db: Database, github: GitHubClient) -> ReviewSubmittedWorkflow:
    llm = LLMService()
    return ReviewSubmittedWorkflow(
        resolver=build_resolver(db),
        usage_repo=InstallationUsageRepository(db),
        lifecycle=PullRequestLifecycle(github, llm),
        orchestrator=build_orchestrator(github, llm),
    )


def build_pull_request_closed_workflow(github: GitHubClient) -> PullRequestClosedWorkflow:
    return PullRequestClosedWorkflow(PullRequestLifecycle(github))


def build_installation_workflow(db: Database, github: GitHubClient) -> InstallationCreatedWorkflow:
    return InstallationCreatedWorkflow(
        GithubInstallationRepository(db), PullRequestLifecycle(github)
    )
