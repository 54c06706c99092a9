"""Repository for GitHub installations (infra layer)."""

from datetime import datetime
from typing import Optional

from jrdev.models.base import utcnow
from jrdev.models.github_installation import GithubInstallation
from jrdev.repositories.base import BaseRepository, CollectionName


class GithubInstallationRepository(BaseRepository[GithubInstallation]):
    def __init__(self, db):
        super().__init__(db, CollectionName.GITHUB_INSTALLATIONS, GithubInstallation)

    def find_by_installation_id(self, installation_id: int) -> Optional[GithubInstallation]:
        return self.find_one({"installation_id": installation_id})

    def upsert_installation(
        self,
        installation_id: int,
        account_login: Optional[str],
        account_type: Optional[str],
        installed_at: Optional[datetime] = None,
    ) -> Optional[GithubInstallation]:
        now = utcnow()
        self.collection.update_one(
            {"installation_id": installation_id},
            {
                "$set": {
                    "account_login": account_login,
                    "account_type": account_type,
                    "installed_at": installed_at or now,
                    "updated_at": now,
                },
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )
        return self.find_by_installation_id(installation_id)
