"""Repository for per-installation billing-cycle usage."""

from __future__ import annotations

import logging
from typing import Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from jrdev.models.base import utcnow
from jrdev.models.installation_usage import InstallationUsage, PullRequestUsage, Session
from jrdev.repositories.base import BaseRepository, CollectionName

logger = logging.getLogger(__name__)


class InstallationUsageRepository(BaseRepository[InstallationUsage]):
    """
    One document per (installation_id, cycle_key).

    Documents are only ever grown: pull requests and sessions are appended,
    never removed, and historical cycles are kept.
    """

    def __init__(self, db):
        super().__init__(db, CollectionName.INSTALLATION_USAGE, InstallationUsage)
        self._ensure_indexes()

    def _ensure_indexes(self):
        self.collection.create_index(
            [("installation_id", ASCENDING), ("cycle_key", ASCENDING)], unique=True
        )

    @staticmethod
    def _key(installation_id: int, cycle_key: str) -> dict:
        return {"installation_id": installation_id, "cycle_key": cycle_key}

    def find_usage(self, installation_id: int, cycle_key: str) -> Optional[InstallationUsage]:
        return self.find_one(self._key(installation_id, cycle_key))

    def get_or_create(self, installation_id: int, cycle_key: str) -> InstallationUsage:
        now = utcnow()
        try:
            doc = self.collection.find_one_and_update(
                self._key(installation_id, cycle_key),
                {"$setOnInsert": {"pull_requests": [], "created_at": now}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # A concurrent delivery won the upsert race
            doc = self.collection.find_one(self._key(installation_id, cycle_key))
        return self._to_model(doc)

    def append_pull_request(
        self,
        installation_id: int,
        cycle_key: str,
        pr_number: int,
        initial_cost: float,
        repository: Optional[str] = None,
    ) -> None:
        cost = max(float(initial_cost or 0.0), 0.0)
        now = utcnow()
        entry = PullRequestUsage(
            number=pr_number,
            repository=repository,
            created_at=now,
            cost=cost,
            sessions=[Session(timestamp=now, cost=cost)],
        )
        self.collection.update_one(
            self._key(installation_id, cycle_key),
            {
                "$push": {"pull_requests": entry.model_dump()},
                "$set": {"updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    def append_session(
        self,
        installation_id: int,
        cycle_key: str,
        pr_number: int,
        cost: float,
        repository: Optional[str] = None,
    ) -> bool:
        """Push a session onto a recorded pull request and increment its cost.

        Returns False (and writes nothing) when the pull request was never
        recorded in this cycle.
        """
        amount = max(float(cost or 0.0), 0.0)
        now = utcnow()
        element = {"number": pr_number}
        if repository:
            element["repository"] = repository
        query = self._key(installation_id, cycle_key)
        query["pull_requests"] = {"$elemMatch": element}

        result = self.collection.update_one(
            query,
            {
                "$push": {
                    "pull_requests.$.sessions": Session(timestamp=now, cost=amount).model_dump()
                },
                "$inc": {"pull_requests.$.cost": amount},
                "$set": {"updated_at": now},
            },
        )
        if result.matched_count == 0:
            logger.warning(
                "No usage entry for PR #%s (installation %s, cycle %s); session not recorded",
                pr_number,
                installation_id,
                cycle_key,
            )
            return False
        return True

    def used_units(self, installation_id: int, cycle_key: str) -> int:
        """Quota consumption for a cycle, counted as pull requests created."""
        return self.get_or_create(installation_id, cycle_key).pull_request_count
