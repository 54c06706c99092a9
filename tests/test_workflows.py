import unittest
from unittest.mock import MagicMock

from jrdev.core.exceptions import JobRunnerError
from jrdev.dtos.events import (
    InstallationCreatedEvent,
    IssueLabeledEvent,
    PullRequestClosedEvent,
    ReviewSubmittedEvent,
)
from jrdev.services.entitlement_service import Entitlement
from jrdev.services.github.lifecycle import (
    ISSUE_ERROR_COMMENT,
    NO_CHANGES_ISSUE_COMMENT,
    NO_CHANGES_REVIEW_COMMENT,
    NO_ENTITLEMENT_COMMENT,
    REVIEW_ERROR_COMMENT,
    WORKING_COMMENT,
)
from jrdev.services.orchestrator import RunOutcome
from jrdev.services.quota_service import QuotaDecision, QuotaStatus
from jrdev.services.workflows import (
    InstallationCreatedWorkflow,
    IssueLabeledWorkflow,
    PullRequestClosedWorkflow,
    ReviewSubmittedWorkflow,
)

from event_payloads import (
    INSTALLATION_CREATED,
    ISSUE_LABELED,
    PULL_REQUEST_CLOSED,
    REVIEW_SUBMITTED,
    payload,
)

WATCHED = ["aider", "ai-jr-dev"]
APP_USER_ID = 999


def outcome(changed=True, attempts=1, cost=0.07):
    return RunOutcome(
        changed=changed,
        attempts=attempts,
        log_text="log",
        cost=cost,
        files=[],
        before_sha="aaa",
        after_sha="bbb" if changed else "aaa",
    )


class TestIssueLabeledWorkflow(unittest.TestCase):
    def setUp(self):
        self.quota = MagicMock()
        self.entitlement = Entitlement.promotion(5)
        self.quota.check.return_value = QuotaDecision(QuotaStatus.ALLOWED, self.entitlement, 2)
        self.usage_repo = MagicMock()
        self.lifecycle = MagicMock()
        self.lifecycle.ensure_branch.return_value = "ai-jr-dev/12-add-dark-mode-toggle"
        self.lifecycle.create_pull_request.return_value = {"number": 30}
        self.orchestrator = MagicMock()
        self.orchestrator.run.return_value = outcome()
        self.workflow = IssueLabeledWorkflow(
            self.quota, self.usage_repo, self.lifecycle, self.orchestrator, watched_labels=WATCHED
        )
        self.event = IssueLabeledEvent.model_validate(ISSUE_LABELED)

    def comments(self):
        return [call.args[2] for call in self.lifecycle.post_comment.call_args_list]

    def test_happy_path_creates_pull_request_and_records_usage(self):
        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "processed")
        self.assertEqual(result["pull_request"], 30)
        self.assertEqual(self.comments(), [WORKING_COMMENT])
        request = self.orchestrator.run.call_args.args[1]
        self.assertEqual(request.installation_id, 7)
        self.assertEqual(request.branch_name, "ai-jr-dev/12-add-dark-mode-toggle")
        self.assertIn("Add dark mode toggle", request.prompt)
        self.usage_repo.append_pull_request.assert_called_once_with(
            7, "promotion", 30, 0.07, repository="acme/widgets"
        )
        self.lifecycle.remove_label.assert_not_called()

    def test_account_and_organization_are_checked(self):
        event = IssueLabeledEvent.model_validate(
            payload(ISSUE_LABELED, organization={"id": 42, "login": "acme-org"})
        )

        self.workflow.handle(event)

        account = self.quota.check.call_args.args[1]
        self.assertEqual(account.login, "acme")
        self.assertEqual(account.id, 42)
        self.assertEqual(account.names, ("acme", "acme-org"))

    def test_unwatched_label_is_ignored(self):
        event = IssueLabeledEvent.model_validate(payload(ISSUE_LABELED, label={"name": "bug"}))

        result = self.workflow.handle(event)

        self.assertEqual(result["status"], "ignored")
        self.quota.check.assert_not_called()

    def test_quota_exceeded_is_denied(self):
        entitlement = Entitlement.subscription(20, "2026-11-01T00:00:00+00:00")
        self.quota.check.return_value = QuotaDecision(QuotaStatus.EXCEEDED, entitlement, 20)

        result = self.workflow.handle(self.event)

        self.assertEqual(result, {"status": "denied", "reason": "exceeded"})
        self.assertIn("November 1, 2026", self.comments()[0])
        self.lifecycle.remove_label.assert_called_once_with("acme/widgets", 12, "ai-jr-dev")
        self.orchestrator.run.assert_not_called()
        self.usage_repo.append_pull_request.assert_not_called()

    def test_no_entitlement_is_denied(self):
        self.quota.check.return_value = QuotaDecision(QuotaStatus.NOT_ENTITLED, Entitlement.none())

        result = self.workflow.handle(self.event)

        self.assertEqual(result["reason"], "not_entitled")
        self.assertEqual(self.comments(), [NO_ENTITLEMENT_COMMENT])
        self.lifecycle.remove_label.assert_called_once()

    def test_no_changes_keeps_label(self):
        self.orchestrator.run.return_value = outcome(changed=False, attempts=2)

        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "no_changes")
        self.assertEqual(self.comments(), [WORKING_COMMENT, NO_CHANGES_ISSUE_COMMENT])
        self.lifecycle.remove_label.assert_not_called()
        self.lifecycle.create_pull_request.assert_not_called()
        self.usage_repo.append_pull_request.assert_not_called()

    def test_job_error_comments_and_removes_label(self):
        self.orchestrator.run.side_effect = JobRunnerError("execution failed")

        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "failed")
        self.assertEqual(self.comments()[-1], ISSUE_ERROR_COMMENT)
        self.lifecycle.remove_label.assert_called_once_with("acme/widgets", 12, "ai-jr-dev")

    def test_error_handler_survives_github_failure(self):
        self.orchestrator.run.side_effect = JobRunnerError("execution failed")
        self.lifecycle.post_comment.side_effect = [None, RuntimeError("github down")]

        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "failed")

    def test_usage_write_failure_does_not_fail_the_run(self):
        self.usage_repo.append_pull_request.side_effect = RuntimeError("mongo down")

        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "processed")


class TestReviewSubmittedWorkflow(unittest.TestCase):
    def setUp(self):
        self.resolver = MagicMock()
        self.resolver.resolve.return_value = Entitlement.subscription(20, "2026-11-01")
        self.usage_repo = MagicMock()
        self.lifecycle = MagicMock()
        self.lifecycle.github.graphql.return_value = {
            "repository": {
                "pullRequest": {
                    "reviews": {
                        "nodes": [
                            {
                                "databaseId": 555,
                                "bodyText": "Please use the theme context",
                                "comments": {"nodes": []},
                            }
                        ]
                    }
                }
            }
        }
        self.lifecycle.list_pull_request_files.return_value = ["src/app.ts"]
        self.orchestrator = MagicMock()
        self.orchestrator.run.return_value = outcome(cost=0.02)
        self.workflow = ReviewSubmittedWorkflow(
            self.resolver,
            self.usage_repo,
            self.lifecycle,
            self.orchestrator,
            watched_labels=WATCHED,
            app_user_id=APP_USER_ID,
        )
        self.event = ReviewSubmittedEvent.model_validate(REVIEW_SUBMITTED)

    def test_changes_requested_reruns_on_pull_request_branch(self):
        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "processed")
        request = self.orchestrator.run.call_args.args[1]
        self.assertEqual(request.branch_name, "ai-jr-dev/12-add-dark-mode-toggle")
        self.assertEqual(request.files, ["src/app.ts"])
        self.assertIn("Please use the theme context", request.prompt)
        self.usage_repo.append_session.assert_called_once_with(
            7, "2026-11-01", 30, 0.02, repository="acme/widgets"
        )
        self.lifecycle.reset_review_request.assert_called_once()
        self.assertEqual(self.lifecycle.reset_review_request.call_args.args[2], "reviewer")

    def test_approved_review_is_ignored(self):
        event = ReviewSubmittedEvent.model_validate(
            payload(REVIEW_SUBMITTED, review={"id": 1, "state": "approved"})
        )

        self.assertEqual(self.workflow.handle(event)["status"], "ignored")
        self.orchestrator.run.assert_not_called()

    def test_human_pull_request_is_ignored(self):
        data = payload(REVIEW_SUBMITTED)
        data["pull_request"]["user"] = {"id": 3, "login": "someone"}

        result = self.workflow.handle(ReviewSubmittedEvent.model_validate(data))

        self.assertEqual(result["reason"], "not_an_ai_pull_request")

    def test_labeled_pull_request_is_handled(self):
        data = payload(REVIEW_SUBMITTED)
        data["pull_request"]["user"] = {"id": 3, "login": "someone"}
        data["pull_request"]["labels"] = [{"name": "aider"}]

        result = self.workflow.handle(ReviewSubmittedEvent.model_validate(data))

        self.assertEqual(result["status"], "processed")

    def test_no_changes_asks_for_detail(self):
        self.orchestrator.run.return_value = outcome(changed=False, attempts=2)

        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "no_changes")
        self.lifecycle.post_comment.assert_called_once_with(
            "acme/widgets", 30, NO_CHANGES_REVIEW_COMMENT
        )
        self.lifecycle.reset_review_request.assert_not_called()
        self.usage_repo.append_session.assert_called_once()

    def test_error_posts_apology(self):
        self.orchestrator.run.side_effect = JobRunnerError("execution failed")

        result = self.workflow.handle(self.event)

        self.assertEqual(result["status"], "failed")
        self.lifecycle.post_comment.assert_called_once_with("acme/widgets", 30, REVIEW_ERROR_COMMENT)

    def test_no_job_without_entitlement(self):
        self.resolver.resolve.return_value = Entitlement.none()

        result = self.workflow.handle(self.event)

        self.assertEqual(result, {"status": "denied", "reason": "not_entitled"})
        self.orchestrator.run.assert_not_called()
        self.lifecycle.github.graphql.assert_not_called()
        self.usage_repo.append_session.assert_not_called()
        self.lifecycle.post_comment.assert_called_once_with(
            "acme/widgets", 30, NO_ENTITLEMENT_COMMENT
        )

    def test_session_recorded_under_resolved_cycle(self):
        self.resolver.resolve.return_value = Entitlement.promotion(5)

        self.workflow.handle(self.event)

        self.assertEqual(self.usage_repo.append_session.call_args.args[1], "promotion")
        self.resolver.resolve.assert_called_once()


class TestPullRequestClosedWorkflow(unittest.TestCase):
    def setUp(self):
        self.lifecycle = MagicMock()
        self.lifecycle.close_linked_issue.return_value = 12
        self.workflow = PullRequestClosedWorkflow(
            self.lifecycle, watched_labels=WATCHED, app_user_id=APP_USER_ID
        )

    def test_merged_app_pull_request_closes_issue(self):
        result = self.workflow.handle(PullRequestClosedEvent.model_validate(PULL_REQUEST_CLOSED))

        self.assertEqual(result, {"status": "processed", "closed_issue": 12})

    def test_unmerged_pull_request_is_ignored(self):
        data = payload(PULL_REQUEST_CLOSED)
        data["pull_request"]["merged"] = False

        result = self.workflow.handle(PullRequestClosedEvent.model_validate(data))

        self.assertEqual(result["reason"], "not_merged")
        self.lifecycle.close_linked_issue.assert_not_called()


class TestInstallationCreatedWorkflow(unittest.TestCase):
    def test_records_installation_and_creates_labels(self):
        installation_repo = MagicMock()
        lifecycle = MagicMock()
        lifecycle.ensure_label_exists.side_effect = [True, RuntimeError("forbidden")]
        workflow = InstallationCreatedWorkflow(installation_repo, lifecycle)

        result = workflow.handle(InstallationCreatedEvent.model_validate(INSTALLATION_CREATED))

        self.assertEqual(result, {"status": "processed", "labels_created": 1})
        installation_repo.upsert_installation.assert_called_once_with(
            7, account_login="acme", account_type="Organization"
        )
        self.assertEqual(lifecycle.ensure_label_exists.call_count, 2)

    def test_without_repositories(self):
        lifecycle = MagicMock()
        workflow = InstallationCreatedWorkflow(MagicMock(), lifecycle)

        result = workflow.handle(
            InstallationCreatedEvent.model_validate(payload(INSTALLATION_CREATED, repositories=[]))
        )

        self.assertEqual(result["labels_created"], 0)
        lifecycle.ensure_label_exists.assert_not_called()


if __name__ == "__main__":
    unittest.main()
