"""Repository for the promotional free-tier cohort."""

from __future__ import annotations

import logging

from pymongo import ReturnDocument

from jrdev.models.base import utcnow
from jrdev.models.promotion_cohort import PROMOTION_COHORT_ID, PromotionCohort
from jrdev.repositories.base import CollectionName

logger = logging.getLogger(__name__)


class PromotionCohortRepository:
    """
    The cohort is a single document so that admission is one conditional
    update: an account is pushed only while ``count`` is below capacity and
    the account is not already a member.
    """

    def __init__(self, db):
        self.db = db
        self.collection = db[CollectionName.PROMOTION_COHORT.value]

    def _ensure_cohort(self) -> None:
        self.collection.update_one(
            {"_id": PROMOTION_COHORT_ID},
            {"$setOnInsert": {"members": [], "count": 0, "created_at": utcnow()}},
            upsert=True,
        )

    def get(self) -> PromotionCohort:
        doc = self.collection.find_one({"_id": PROMOTION_COHORT_ID})
        if doc is None:
            return PromotionCohort()
        return PromotionCohort.model_validate(doc)

    def is_member(self, login: str) -> bool:
        return self.get().has_member(login)

    def register(self, login: str, capacity: int) -> bool:
        """Admit ``login`` if there is room. Returns True when it is a member afterwards."""
        member = login.lower()
        if self.is_member(member):
            return True

        self._ensure_cohort()
        doc = self.collection.find_one_and_update(
            {
                "_id": PROMOTION_COHORT_ID,
                "count": {"$lt": capacity},
                "members": {"$nin": [member]},
            },
            {
                "$push": {"members": member},
                "$inc": {"count": 1},
                "$set": {"updated_at": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            logger.info("Registered %s in promotion cohort (%s/%s)", member, doc["count"], capacity)
            return True
        # Either the cohort is full or a concurrent delivery registered this account
        return self.is_member(member)
