"""Promotion cohort - the first N accounts granted a free allowance"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

PROMOTION_COHORT_ID = "promotion"


class PromotionCohort(BaseModel):
    id: str = Field(PROMOTION_COHORT_ID, alias="_id")
    members: List[str] = Field(default_factory=list)
    count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)

    def has_member(self, login: str) -> bool:
        return login.lower() in self.members
