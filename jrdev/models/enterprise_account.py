"""Enterprise account entity - accounts exempt from quota accounting"""

from typing import Optional

from .base import BaseEntity


class EnterpriseAccount(BaseEntity):
    name: str
    monthly_limit: Optional[int] = None  # informational only
