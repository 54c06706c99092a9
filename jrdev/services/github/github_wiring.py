"""GitHub client wiring for installation and app-level calls."""

from __future__ import annotations

from typing import Any

from jrdev.core.config import settings

from .github_auth import generate_jwt, get_installation_token
from .github_client import GitHubClient
from .github_exceptions import GithubConfigurationError


def github_app_configured() -> bool:
    return bool(settings.GITHUB_APP_ID and settings.GITHUB_APP_PRIVATE_KEY)


def get_installation_access_token(
    installation_id: int, redis_client: Any = None, force_refresh: bool = False
) -> str:
    if not github_app_configured():
        raise GithubConfigurationError("GitHub App is not configured")
    return get_installation_token(
        app_id=settings.GITHUB_APP_ID,
        private_key=settings.GITHUB_APP_PRIVATE_KEY,
        installation_id=installation_id,
        redis_client=redis_client,
        api_url=settings.GITHUB_API_URL,
        force_refresh=force_refresh,
    )


def get_installation_client(installation_id: int, redis_client: Any = None) -> GitHubClient:
    """Installation client that outlives its token.

    Workflows hold the client across a job that can run for an hour, so a
    rejected token is replaced with a newly minted one (and re-cached).
    """
    if not installation_id:
        raise GithubConfigurationError("installation_id is required for app auth")
    token = get_installation_access_token(installation_id, redis_client)
    return GitHubClient(
        token=token,
        api_url=settings.GITHUB_API_URL,
        graphql_url=settings.GITHUB_GRAPHQL_URL,
        token_provider=lambda: get_installation_access_token(
            installation_id, redis_client, force_refresh=True
        ),
    )


def get_app_client() -> GitHubClient:
    """Client authenticated as the app itself (JWT), used for marketplace lookups."""
    if not github_app_configured():
        raise GithubConfigurationError("GitHub App is not configured")
    token = generate_jwt(settings.GITHUB_APP_ID, settings.GITHUB_APP_PRIVATE_KEY)
    return GitHubClient(token=token, api_url=settings.GITHUB_API_URL)
