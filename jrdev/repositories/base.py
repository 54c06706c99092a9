"""Base repository providing common MongoDB CRUD helpers."""

from abc import ABC
from enum import Enum
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pymongo.collection import Collection
from pymongo.database import Database


class CollectionName(str, Enum):
    INSTALLATION_USAGE = "installation_usage"
    ENTERPRISE_ACCOUNTS = "enterprise_accounts"
    PROMOTION_COHORT = "promotion_cohort"
    GITHUB_INSTALLATIONS = "github_installations"


T = TypeVar("T", bound=BaseModel)


class BaseRepository(ABC, Generic[T]):
    """Base repository providing common CRUD operations for MongoDB collections."""

    def __init__(
        self,
        db: Database,
        collection_name: Union[CollectionName, str],
        model_class: Type[T],
    ):
        self.db = db
        self.collection_name: str = (
            collection_name.value
            if isinstance(collection_name, CollectionName)
            else collection_name
        )
        self.collection: Collection = db[self.collection_name]
        self.model_class = model_class

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        doc = self.collection.find_one(query)
        return self._to_model(doc)

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if not doc:
            return None
        return self.model_class.model_validate(doc)

