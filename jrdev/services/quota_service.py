from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from jrdev.repositories.installation_usage import InstallationUsageRepository
from jrdev.services.entitlement_service import AccountRef, Entitlement, EntitlementResolver

logger = logging.getLogger(__name__)


class QuotaStatus(str, Enum):
    ALLOWED = "allowed"
    NOT_ENTITLED = "not_entitled"
    EXCEEDED = "exceeded"


@dataclass
class QuotaDecision:
    status: QuotaStatus
    entitlement: Entitlement
    used: int = 0

    @property
    def allowed(self) -> bool:
        return self.status == QuotaStatus.ALLOWED

    @property
    def limit(self) -> Optional[int]:
        return self.entitlement.monthly_limit


class QuotaService:
    """Gate a new pull request on the account's entitlement and cycle usage.

    The read-compare is not transactional with the later append, so
    concurrent deliveries can overshoot the limit slightly.
    """

    def __init__(self, resolver: EntitlementResolver, usage_repo: InstallationUsageRepository):
        self.resolver = resolver
        self.usage_repo = usage_repo

    def check(self, installation_id: int, account: AccountRef) -> QuotaDecision:
        entitlement = self.resolver.resolve(account)
        if not entitlement.is_entitled:
            return QuotaDecision(QuotaStatus.NOT_ENTITLED, entitlement)
        if entitlement.is_unlimited:
            return QuotaDecision(QuotaStatus.ALLOWED, entitlement)

        used = self.usage_repo.used_units(installation_id, entitlement.cycle_key)
        if used >= entitlement.monthly_limit:
            logger.info(
                "Installation %s used %s/%s PRs in cycle %s",
                installation_id,
                used,
                entitlement.monthly_limit,
                entitlement.cycle_key,
            )
            return QuotaDecision(QuotaStatus.EXCEEDED, entitlement, used)
        return QuotaDecision(QuotaStatus.ALLOWED, entitlement, used)
