from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Callable, Dict, Optional, Tuple, Type

from fastapi import HTTPException, status
from pydantic import ValidationError

from jrdev.celery_app import celery_app
from jrdev.core.config import settings
from jrdev.dtos.events import (
    InstallationCreatedEvent,
    IssueLabeledEvent,
    PullRequestClosedEvent,
    ReviewSubmittedEvent,
    WebhookEvent,
)

logger = logging.getLogger(__name__)

# (X-GitHub-Event, action) -> (payload model, celery task name)
EVENT_ROUTES: Dict[Tuple[str, str], Tuple[Type[WebhookEvent], str]] = {
    ("issues", "labeled"): (
        IssueLabeledEvent,
        "jrdev.tasks.webhooks.process_issue_labeled",
    ),
    ("pull_request_review", "submitted"): (
        ReviewSubmittedEvent,
        "jrdev.tasks.webhooks.process_review_submitted",
    ),
    ("pull_request", "closed"): (
        PullRequestClosedEvent,
        "jrdev.tasks.webhooks.process_pull_request_closed",
    ),
    ("installation", "created"): (
        InstallationCreatedEvent,
        "jrdev.tasks.webhooks.process_installation_created",
    ),
}


def verify_signature(signature: str | None, body: bytes) -> None:
    if not settings.GITHUB_WEBHOOK_SECRET:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook secret is not configured on the server.",
        )

    if not signature or not signature.startswith("sha256="):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature"
        )

    digest = hmac.new(
        settings.GITHUB_WEBHOOK_SECRET.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()

    expected = f"sha256={digest}"
    if not hmac.compare_digest(expected, signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Webhook signature mismatch",
        )


def _send_task(name: str, payload: Dict[str, Any], delivery_id: Optional[str] = None) -> str:
    result = celery_app.send_task(name, args=[payload], kwargs={"delivery_id": delivery_id})
    return result.id


def handle_github_event(
    event: Optional[str],
    payload: Dict[str, Any],
    dispatch: Optional[Callable[..., str]] = None,
    delivery_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate a delivery and queue the matching workflow.

    The long-running work happens in the worker, so GitHub gets its
    response well within the delivery timeout.
    """
    if event == "ping":
        return {"status": "pong"}

    action = payload.get("action")
    route = EVENT_ROUTES.get((event or "", action or ""))
    if route is None:
        return {"status": "ignored", "event": event, "action": action}

    model, task_name = route
    try:
        parsed = model.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Invalid %s.%s payload: %s", event, action, exc.error_count())
        return {"status": "ignored", "reason": "invalid_payload"}

    if not parsed.installation_id:
        return {"status": "ignored", "reason": "missing_installation_id"}

    dispatch = dispatch or _send_task
    task_id = dispatch(task_name, parsed.model_dump(mode="json"), delivery_id)
    logger.info("Queued %s.%s for installation %s as %s", event, action, parsed.installation_id, task_id)
    return {"status": "queued", "task_id": task_id}
