from .events import (
    GithubAccount,
    GithubIssue,
    GithubLabel,
    GithubPullRequest,
    GithubRepository,
    GithubReview,
    InstallationCreatedEvent,
    IssueLabeledEvent,
    PullRequestClosedEvent,
    ReviewSubmittedEvent,
)

__all__ = [
    "GithubAccount",
    "GithubIssue",
    "GithubLabel",
    "GithubPullRequest",
    "GithubRepository",
    "GithubReview",
    "InstallationCreatedEvent",
    "IssueLabeledEvent",
    "PullRequestClosedEvent",
    "ReviewSubmittedEvent",
]
