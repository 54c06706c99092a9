"""Celery tasks running the long webhook workflows."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from jrdev.celery_app import celery_app
from jrdev.core.logging import event_context
from jrdev.core.redis import get_redis
from jrdev.dtos.events import (
    InstallationCreatedEvent,
    IssueLabeledEvent,
    PullRequestClosedEvent,
    ReviewSubmittedEvent,
)
from jrdev.services.github.github_wiring import get_installation_client
from jrdev.services.wiring import (
    build_installation_workflow,
    build_issue_workflow,
    build_pull_request_closed_workflow,
    build_review_workflow,
)
from jrdev.workers.base import WebhookTask

logger = logging.getLogger(__name__)

TASK_ISSUE_LABELED = "jrdev.tasks.webhooks.process_issue_labeled"
TASK_REVIEW_SUBMITTED = "jrdev.tasks.webhooks.process_review_submitted"
TASK_PULL_REQUEST_CLOSED = "jrdev.tasks.webhooks.process_pull_request_closed"
TASK_INSTALLATION_CREATED = "jrdev.tasks.webhooks.process_installation_created"


@celery_app.task(bind=True, base=WebhookTask, name=TASK_ISSUE_LABELED)
def process_issue_labeled(
    self, payload: Dict[str, Any], delivery_id: Optional[str] = None
) -> Dict[str, Any]:
    event = IssueLabeledEvent.model_validate(payload)
    with event_context(delivery_id, event.installation_id):
        with get_installation_client(event.installation_id, get_redis()) as github:
            result = build_issue_workflow(self.db, github).handle(event)
        logger.info(
            "issues.labeled %s#%s: %s", event.repository.full_name, event.issue.number, result
        )
    return result


@celery_app.task(bind=True, base=WebhookTask, name=TASK_REVIEW_SUBMITTED)
def process_review_submitted(
    self, payload: Dict[str, Any], delivery_id: Optional[str] = None
) -> Dict[str, Any]:
    event = ReviewSubmittedEvent.model_validate(payload)
    with event_context(delivery_id, event.installation_id):
        with get_installation_client(event.installation_id, get_redis()) as github:
            result = build_review_workflow(self.db, github).handle(event)
        logger.info(
            "pull_request_review.submitted %s#%s: %s",
            event.repository.full_name,
            event.pull_request.number,
            result,
        )
    return result


@celery_app.task(bind=True, base=WebhookTask, name=TASK_PULL_REQUEST_CLOSED)
def process_pull_request_closed(
    self, payload: Dict[str, Any], delivery_id: Optional[str] = None
) -> Dict[str, Any]:
    event = PullRequestClosedEvent.model_validate(payload)
    with event_context(delivery_id, event.installation_id):
        with get_installation_client(event.installation_id, get_redis()) as github:
            return build_pull_request_closed_workflow(github).handle(event)


@celery_app.task(bind=True, base=WebhookTask, name=TASK_INSTALLATION_CREATED)
def process_installation_created(
    self, payload: Dict[str, Any], delivery_id: Optional[str] = None
) -> Dict[str, Any]:
    event = InstallationCreatedEvent.model_validate(payload)
    with event_context(delivery_id, event.installation_id):
        with get_installation_client(event.installation_id, get_redis()) as github:
            return build_installation_workflow(self.db, github).handle(event)
