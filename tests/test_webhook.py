import hashlib
import hmac
import json
import unittest
from unittest.mock import MagicMock, patch

from fastapi import HTTPException
from fastapi.testclient import TestClient

from jrdev.core.config import settings
from jrdev.main import app
from jrdev.services.github.github_webhook import handle_github_event, verify_signature

from event_payloads import ISSUE_LABELED, payload

SECRET = "webhook-secret"


def sign(body: bytes) -> str:
    return "sha256=" + hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()


class TestVerifySignature(unittest.TestCase):
    def setUp(self):
        patcher = patch.object(settings, "GITHUB_WEBHOOK_SECRET", SECRET)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_valid_signature(self):
        verify_signature(sign(b"{}"), b"{}")

    def test_mismatch(self):
        with self.assertRaises(HTTPException) as ctx:
            verify_signature(sign(b"{}"), b'{"tampered": true}')
        self.assertEqual(ctx.exception.status_code, 401)

    def test_missing_signature(self):
        with self.assertRaises(HTTPException) as ctx:
            verify_signature(None, b"{}")
        self.assertEqual(ctx.exception.status_code, 401)

    def test_unconfigured_secret(self):
        with patch.object(settings, "GITHUB_WEBHOOK_SECRET", None):
            with self.assertRaises(HTTPException) as ctx:
                verify_signature(sign(b"{}"), b"{}")
        self.assertEqual(ctx.exception.status_code, 400)


class TestHandleGithubEvent(unittest.TestCase):
    def setUp(self):
        self.dispatch = MagicMock(return_value="task-1")

    def test_labeled_issue_is_queued(self):
        result = handle_github_event(
            "issues", payload(ISSUE_LABELED), self.dispatch, delivery_id="delivery-1"
        )

        self.assertEqual(result, {"status": "queued", "task_id": "task-1"})
        task_name, task_payload, delivery_id = self.dispatch.call_args.args
        self.assertEqual(delivery_id, "delivery-1")
        self.assertEqual(task_name, "jrdev.tasks.webhooks.process_issue_labeled")
        self.assertEqual(task_payload["issue"]["number"], 12)
        self.assertEqual(task_payload["installation"]["id"], 7)

    def test_unhandled_action_is_ignored(self):
        result = handle_github_event("issues", payload(ISSUE_LABELED, action="opened"), self.dispatch)

        self.assertEqual(result["status"], "ignored")
        self.dispatch.assert_not_called()

    def test_invalid_payload_is_ignored(self):
        result = handle_github_event("issues", {"action": "labeled"}, self.dispatch)

        self.assertEqual(result, {"status": "ignored", "reason": "invalid_payload"})

    def test_missing_installation_is_ignored(self):
        result = handle_github_event(
            "issues", payload(ISSUE_LABELED, installation=None), self.dispatch
        )

        self.assertEqual(result["reason"], "missing_installation_id")

    def test_ping(self):
        self.assertEqual(handle_github_event("ping", {"zen": "hi"}, self.dispatch), {"status": "pong"})


class TestWebhookEndpoint(unittest.TestCase):
    def setUp(self):
        patcher = patch.object(settings, "GITHUB_WEBHOOK_SECRET", SECRET)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(app)

    @patch("jrdev.api.webhook.handle_github_event")
    def test_signed_delivery_is_handled(self, handle):
        handle.return_value = {"status": "queued", "task_id": "task-1"}
        body = json.dumps(ISSUE_LABELED).encode()

        response = self.client.post(
            "/api/webhook/github",
            content=body,
            headers={
                "X-Hub-Signature-256": sign(body),
                "X-GitHub-Event": "issues",
                "X-GitHub-Delivery": "delivery-1",
                "Content-Type": "application/json",
            },
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "queued")
        self.assertIn("X-Request-ID", response.headers)
        handle.assert_called_once_with("issues", ISSUE_LABELED, delivery_id="delivery-1")

    @patch("jrdev.api.webhook.handle_github_event")
    def test_bad_signature_is_rejected(self, handle):
        response = self.client.post(
            "/api/webhook/github",
            content=b"{}",
            headers={"X-Hub-Signature-256": "sha256=bad", "X-GitHub-Event": "issues"},
        )

        self.assertEqual(response.status_code, 401)
        handle.assert_not_called()

    @patch("jrdev.api.webhook.handle_github_event")
    def test_signed_body_that_is_not_json_is_rejected(self, handle):
        for body in (b"not json", b"[1, 2]"):
            response = self.client.post(
                "/api/webhook/github",
                content=body,
                headers={"X-Hub-Signature-256": sign(body), "X-GitHub-Event": "issues"},
            )

            self.assertEqual(response.status_code, 400)
        handle.assert_not_called()

    def test_health(self):
        response = self.client.get("/api/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")


if __name__ == "__main__":
    unittest.main()
