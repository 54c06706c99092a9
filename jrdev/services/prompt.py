"""Prompts handed to the coding agent."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from jrdev.dtos.events import GithubIssue, ReviewSubmittedEvent

SYSTEM_PROMPT = (
    "You are an AI assistant acting as a junior software developer.\n"
    "Your goal is to implement the requested changes based on the provided context "
    "(issue description or review comments).\n"
    "Apply the changes directly to the codebase.\n"
    "Ensure your changes are clean, efficient, and follow existing coding conventions.\n"
    "If you need to add dependencies, use the appropriate package manager commands.\n"
    "If you need to run database migrations or other commands, mention them in the "
    "pull request summary."
)

REVIEW_AND_COMMENTS_QUERY = """
query ($owner: String!, $repo: String!, $pr: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $pr) {
      reviews(last: 5) {
        nodes {
          id
          databaseId
          bodyText
          comments(first: 100) {
            nodes {
              id
              bodyText
              startLine
              line
              path
            }
          }
        }
      }
    }
  }
}
"""


def generate_issue_prompt(issue: GithubIssue) -> str:
    description = f"\nIssue description:\n{issue.body}" if issue.body else ""
    issue_prompt = (
        "Apply all necessary changes based on below issue description. \n"
        f"Issue title: {issue.title}{description}"
    )
    return f"{SYSTEM_PROMPT}\n\n{issue_prompt}"


def format_review_comment(comment: Dict[str, Any]) -> str:
    start, end = comment.get("startLine"), comment.get("line")
    if start and end and start != end:
        location = f"{comment.get('path')}:{start}-{end}"
    elif end:
        location = f"{comment.get('path')}:{end}"
    else:
        location = comment.get("path") or "general"
    return f"- {location}: {comment.get('bodyText', '').strip()}"


def build_review_prompt(review_body: Optional[str], comments: List[str]) -> Optional[str]:
    """None when the review carries no actionable feedback."""
    if not (review_body and review_body.strip()) and not comments:
        return None
    review_prompt = "Apply all necessary changes based on the following review comments."
    if review_body and review_body.strip():
        review_prompt += f"\n\nOverall review summary:\n{review_body.strip()}"
    if comments:
        review_prompt += "\n\nSpecific comments on files:\n" + "\n".join(comments)
    return f"{SYSTEM_PROMPT}\n\n{review_prompt}"


def select_review(nodes: List[Dict[str, Any]], review_id: int) -> Optional[Dict[str, Any]]:
    for node in nodes:
        if node.get("databaseId") == review_id:
            return node
    return nodes[-1] if nodes else None


def generate_review_prompt(github, event: ReviewSubmittedEvent) -> Optional[str]:
    data = github.graphql(
        REVIEW_AND_COMMENTS_QUERY,
        {
            "owner": event.repository.owner.login,
            "repo": event.repository.name,
            "pr": event.pull_request.number,
        },
    )
    nodes = (
        ((data.get("repository") or {}).get("pullRequest") or {}).get("reviews") or {}
    ).get("nodes") or []
    review = select_review(nodes, event.review.id)

    body = event.review.body
    comments: List[str] = []
    if review:
        body = review.get("bodyText") or body
        comments = [
            format_review_comment(comment)
            for comment in (review.get("comments") or {}).get("nodes") or []
            if (comment.get("bodyText") or "").strip()
        ]
    return build_review_prompt(body, comments)
