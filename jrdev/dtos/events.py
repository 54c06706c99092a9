"""Typed GitHub webhook payloads.

Only the fields the workflows read are declared; everything else in the
payload is ignored by pydantic.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GithubAccount(BaseModel):
    id: int
    login: str
    type: Optional[str] = None


class GithubLabel(BaseModel):
    name: str


class GithubInstallationRef(BaseModel):
    id: int
    account: Optional[GithubAccount] = None


class GithubRepository(BaseModel):
    name: str
    full_name: str
    owner: GithubAccount
    clone_url: str
    default_branch: str = "main"


class GithubIssue(BaseModel):
    number: int
    title: str
    body: Optional[str] = None
    user: Optional[GithubAccount] = None
    labels: List[GithubLabel] = Field(default_factory=list)


class GithubBranchRef(BaseModel):
    ref: str
    sha: Optional[str] = None


class GithubPullRequest(BaseModel):
    number: int
    title: Optional[str] = None
    html_url: Optional[str] = None
    user: Optional[GithubAccount] = None
    labels: List[GithubLabel] = Field(default_factory=list)
    head: GithubBranchRef
    merged: bool = False

    def has_label(self, names: List[str]) -> bool:
        return any(label.name in names for label in self.labels)


class GithubReview(BaseModel):
    id: int
    state: str
    body: Optional[str] = None
    user: Optional[GithubAccount] = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: str
    installation: Optional[GithubInstallationRef] = None
    organization: Optional[GithubAccount] = None

    @property
    def installation_id(self) -> Optional[int]:
        return self.installation.id if self.installation else None


class IssueLabeledEvent(WebhookEvent):
    repository: GithubRepository
    issue: GithubIssue
    label: Optional[GithubLabel] = None

    @property
    def label_name(self) -> Optional[str]:
        return self.label.name if self.label else None


class ReviewSubmittedEvent(WebhookEvent):
    repository: GithubRepository
    pull_request: GithubPullRequest
    review: GithubReview


class PullRequestClosedEvent(WebhookEvent):
    repository: GithubRepository
    pull_request: GithubPullRequest


class InstallationRepository(BaseModel):
    name: str
    full_name: str


class InstallationCreatedEvent(WebhookEvent):
    installation: GithubInstallationRef
    repositories: List[InstallationRepository] = Field(default_factory=list)
    repository: Optional[GithubRepository] = None
    sender: Optional[GithubAccount] = None

    @property
    def owner_login(self) -> Optional[str]:
        if self.installation.account:
            return self.installation.account.login
        if self.organization:
            return self.organization.login
        if self.repository:
            return self.repository.owner.login
        return None

    def repository_full_names(self) -> List[str]:
        names = [repo.full_name for repo in self.repositories]
        if not names and self.repository:
            names.append(self.repository.full_name)
        return names
