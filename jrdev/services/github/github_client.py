"""Lightweight GitHub REST/GraphQL client with rate-limit handling."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx

from .github_exceptions import (
    GithubConfigurationError,
    GithubError,
    GithubNotFoundError,
    GithubRateLimitError,
    GithubRetryableError,
    GithubValidationError,
)

logger = logging.getLogger(__name__)

API_PREVIEW_HEADERS = {
    "Accept": "application/vnd.github+json",
}


class GitHubClient:
    def __init__(
        self,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        graphql_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        token_provider: Callable[[], str] | None = None,
    ) -> None:
        if not token and token_provider is not None:
            token = token_provider()
        if not token:
            raise GithubConfigurationError("GitHub token is required to call the API")
        self._token = token
        # Installation tokens expire after an hour; a 401 triggers one refresh
        self._token_provider = token_provider
        self._api_url = api_url.rstrip("/")
        self._graphql_url = graphql_url or f"{self._api_url}/graphql"
        self._rest = httpx.Client(
            base_url=self._api_url,
            timeout=120,
            transport=transport or httpx.HTTPTransport(retries=3),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        headers.update(API_PREVIEW_HEADERS)
        return headers

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.status_code in (403, 429) and "rate limit" in response.text.lower():
            self._handle_rate_limit(response)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = response.status_code
            if status == 404:
                raise GithubNotFoundError(str(exc), status_code=status) from exc
            if status == 422:
                raise GithubValidationError(str(exc), status_code=status) from exc
            raise GithubRetryableError(str(exc), status_code=status) from exc
        return response

    def _handle_rate_limit(self, response: httpx.Response) -> None:
        reset_header = response.headers.get("X-RateLimit-Reset")
        retry_after_header = response.headers.get("Retry-After")
        wait_seconds = 60.0

        if retry_after_header:
            try:
                wait_seconds = float(retry_after_header)
            except ValueError:
                pass
        elif reset_header:
            try:
                reset_epoch = float(reset_header)
                now_epoch = datetime.now(timezone.utc).timestamp()
                wait_seconds = max(reset_epoch - now_epoch, 1.0)
            except ValueError:
                pass

        raise GithubRateLimitError("GitHub rate limit reached", retry_after=wait_seconds)

    def _request(self, request_func: Callable[[], httpx.Response]) -> httpx.Response:
        response = request_func()
        if response.status_code == 401 and self._token_provider is not None:
            logger.info("GitHub rejected the token; requesting a new one")
            self._token = self._token_provider()
            response = request_func()
        return self._handle_response(response)

    def _rest_request(self, method: str, path: str, **kwargs: Any) -> Any:
        def _do_request():
            return self._rest.request(method, path, headers=self._headers(), **kwargs)

        response = self._request(_do_request)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        url = path
        query = params or {}
        while url:
            def _do_request():
                return self._rest.get(url, headers=self._headers(), params=query)

            response = self._request(_do_request)
            items = response.json()
            if isinstance(items, list):
                yield from items
            else:
                yield items
                break
            url = None
            link_header = response.headers.get("Link")
            if link_header:
                for part in link_header.split(","):
                    segment = part.strip()
                    if segment.endswith('rel="next"'):
                        url = segment[segment.find("<") + 1 : segment.find(">")]
                        query = None
                        break

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        def _do_request():
            return self._rest.post(
                self._graphql_url,
                headers=self._headers(),
                json={"query": query, "variables": variables or {}},
            )

        payload = self._request(_do_request).json()
        if payload.get("errors"):
            raise GithubError(f"GraphQL query failed: {payload['errors']}")
        return payload.get("data") or {}

    # Issues
    def create_issue_comment(self, full_name: str, issue_number: int, body: str) -> Dict[str, Any]:
        return self._rest_request(
            "POST", f"/repos/{full_name}/issues/{issue_number}/comments", json={"body": body}
        )

    def remove_label(self, full_name: str, issue_number: int, label: str) -> None:
        self._rest_request(
            "DELETE", f"/repos/{full_name}/issues/{issue_number}/labels/{label}"
        )

    def close_issue(self, full_name: str, issue_number: int) -> Dict[str, Any]:
        return self._rest_request(
            "PATCH", f"/repos/{full_name}/issues/{issue_number}", json={"state": "closed"}
        )

    def get_label(self, full_name: str, name: str) -> Dict[str, Any]:
        return self._rest_request("GET", f"/repos/{full_name}/labels/{name}")

    def create_label(
        self, full_name: str, name: str, color: str, description: str = ""
    ) -> Dict[str, Any]:
        return self._rest_request(
            "POST",
            f"/repos/{full_name}/labels",
            json={"name": name, "color": color, "description": description},
        )

    # Branches
    def get_branch_sha(self, full_name: str, branch: str) -> str:
        data = self._rest_request("GET", f"/repos/{full_name}/branches/{branch}")
        return data["commit"]["sha"]

    def create_ref(self, full_name: str, ref: str, sha: str) -> Dict[str, Any]:
        return self._rest_request(
            "POST", f"/repos/{full_name}/git/refs", json={"ref": ref, "sha": sha}
        )

    # Pull requests
    def create_pull_request(
        self, full_name: str, title: str, head: str, base: str, body: str
    ) -> Dict[str, Any]:
        return self._rest_request(
            "POST",
            f"/repos/{full_name}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )

    def list_pull_request_files(self, full_name: str, pr_number: int) -> List[Dict[str, Any]]:
        return list(
            self._paginate(f"/repos/{full_name}/pulls/{pr_number}/files", {"per_page": 100})
        )

    def request_reviewers(self, full_name: str, pr_number: int, reviewers: List[str]) -> Dict[str, Any]:
        return self._rest_request(
            "POST",
            f"/repos/{full_name}/pulls/{pr_number}/requested_reviewers",
            json={"reviewers": reviewers},
        )

    # Marketplace (requires an app JWT rather than an installation token)
    def get_marketplace_account(self, account_id: int, stubbed: bool = False) -> Dict[str, Any]:
        prefix = "/marketplace_listing/stubbed" if stubbed else "/marketplace_listing"
        return self._rest_request("GET", f"{prefix}/accounts/{account_id}")

    def close(self) -> None:
        self._rest.close()

    def __enter__(self) -> "GitHubClient":  # pragma: no cover
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover
        self.close()
