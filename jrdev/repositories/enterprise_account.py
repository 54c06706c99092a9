from typing import Iterable, Optional

from pymongo import ASCENDING

from jrdev.models.enterprise_account import EnterpriseAccount
from jrdev.repositories.base import BaseRepository, CollectionName


class EnterpriseAccountRepository(BaseRepository[EnterpriseAccount]):
    def __init__(self, db):
        super().__init__(db, CollectionName.ENTERPRISE_ACCOUNTS, EnterpriseAccount)
        self.collection.create_index([("name", ASCENDING)], unique=True)

    def find_by_names(self, names: Iterable[str]) -> Optional[EnterpriseAccount]:
        candidates = [name for name in names if name]
        if not candidates:
            return None
        return self.find_one({"name": {"$in": candidates}})
