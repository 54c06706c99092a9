"""Installation usage entity - per billing cycle record of AI pull requests"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, utcnow


class Session(BaseModel):
    """One billed execution of the coding-agent job."""

    timestamp: datetime = Field(default_factory=utcnow)
    cost: float = Field(default=0.0, ge=0)


class PullRequestUsage(BaseModel):
    number: int
    repository: Optional[str] = None  # "owner/name"
    created_at: datetime = Field(default_factory=utcnow)
    cost: float = Field(default=0.0, ge=0)
    sessions: List[Session] = Field(default_factory=list)


class InstallationUsage(BaseEntity):
    installation_id: int
    cycle_key: str
    pull_requests: List[PullRequestUsage] = Field(default_factory=list)

    @property
    def pull_request_count(self) -> int:
        return len(self.pull_requests)

    def find_pull_request(
        self, number: int, repository: Optional[str] = None
    ) -> Optional[PullRequestUsage]:
        for pr in self.pull_requests:
            if pr.number == number and (repository is None or pr.repository == repository):
                return pr
        return None
