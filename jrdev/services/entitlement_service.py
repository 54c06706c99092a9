"""Entitlement resolution: enterprise, paid subscription, promotion, or nothing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Tuple

from jrdev.core.config import settings
from jrdev.repositories.enterprise_account import EnterpriseAccountRepository
from jrdev.repositories.promotion_cohort import PromotionCohortRepository
from jrdev.services.github.github_client import GitHubClient
from jrdev.services.github.github_exceptions import GithubNotFoundError

logger = logging.getLogger(__name__)

ENTERPRISE_CYCLE_KEY = "9999-12-31T00:00:00+00:00"
PROMOTION_CYCLE_KEY = "promotion"


class EntitlementKind(str, Enum):
    ENTERPRISE = "enterprise"
    SUBSCRIPTION = "subscription"
    PROMOTION = "promotion"
    NONE = "none"


@dataclass(frozen=True)
class AccountRef:
    login: str
    id: Optional[int] = None
    # Other logins that share the entitlement, e.g. the organization
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.login:
            raise ValueError("account login is required")

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.login,) + tuple(alias for alias in self.aliases if alias)


@dataclass(frozen=True)
class Entitlement:
    kind: EntitlementKind
    cycle_key: Optional[str] = None
    monthly_limit: Optional[int] = None
    renewal_date: Optional[str] = None
    plan_name: Optional[str] = None

    @classmethod
    def enterprise(cls) -> "Entitlement":
        return cls(EntitlementKind.ENTERPRISE, cycle_key=ENTERPRISE_CYCLE_KEY)

    @classmethod
    def subscription(
        cls, monthly_limit: int, renewal_date: str, plan_name: Optional[str] = None
    ) -> "Entitlement":
        return cls(
            EntitlementKind.SUBSCRIPTION,
            cycle_key=renewal_date,
            monthly_limit=monthly_limit,
            renewal_date=renewal_date,
            plan_name=plan_name,
        )

    @classmethod
    def promotion(cls, monthly_limit: int) -> "Entitlement":
        return cls(
            EntitlementKind.PROMOTION,
            cycle_key=PROMOTION_CYCLE_KEY,
            monthly_limit=monthly_limit,
        )

    @classmethod
    def none(cls) -> "Entitlement":
        return cls(EntitlementKind.NONE)

    @property
    def is_entitled(self) -> bool:
        return self.kind != EntitlementKind.NONE

    @property
    def is_unlimited(self) -> bool:
        return self.kind == EntitlementKind.ENTERPRISE


@dataclass(frozen=True)
class SubscriptionPlan:
    name: str
    monthly_price_in_cents: int
    renewal_date: str


def first_day_of_next_month(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.month == 12:
        nxt = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        nxt = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
    return nxt.isoformat()


def tier_limit(price_in_cents: int, tiers: Dict[int, int]) -> Optional[int]:
    """Limit of the highest tier priced at or below the plan. None below every tier."""
    eligible = [price for price in tiers if price <= price_in_cents]
    if not eligible:
        return None
    return tiers[max(eligible)]


class MarketplaceSubscriptionProvider:
    """Reads the account's GitHub Marketplace purchase."""

    def __init__(
        self,
        client_factory: Callable[[], GitHubClient],
        stubbed: Optional[bool] = None,
    ):
        self.client_factory = client_factory
        self.stubbed = settings.GITHUB_MARKETPLACE_STUBBED if stubbed is None else stubbed

    def get_plan(self, account: AccountRef) -> Optional[SubscriptionPlan]:
        if account.id is None:
            return None
        with self.client_factory() as client:
            try:
                data = client.get_marketplace_account(account.id, stubbed=self.stubbed)
            except GithubNotFoundError:
                return None

        purchase = (data or {}).get("marketplace_purchase") or {}
        plan = purchase.get("plan") or {}
        if not plan:
            return None
        # Yearly plans still get a monthly allowance
        renewal = purchase.get("next_billing_date")
        if not renewal or purchase.get("billing_cycle") == "yearly":
            renewal = first_day_of_next_month()
        return SubscriptionPlan(
            name=plan.get("name") or "unknown",
            monthly_price_in_cents=int(plan.get("monthly_price_in_cents") or 0),
            renewal_date=renewal,
        )


class EntitlementResolver:
    def __init__(
        self,
        enterprise_repo: EnterpriseAccountRepository,
        cohort_repo: PromotionCohortRepository,
        subscription_provider: Optional[MarketplaceSubscriptionProvider] = None,
        tiers: Optional[Dict[int, int]] = None,
        cohort_size: Optional[int] = None,
        promotion_limit: Optional[int] = None,
    ):
        self.enterprise_repo = enterprise_repo
        self.cohort_repo = cohort_repo
        self.subscription_provider = subscription_provider
        self.tiers = tiers if tiers is not None else settings.SUBSCRIPTION_TIERS
        self.cohort_size = cohort_size if cohort_size is not None else settings.PROMOTION_COHORT_SIZE
        self.promotion_limit = (
            promotion_limit if promotion_limit is not None else settings.PROMOTION_MONTHLY_LIMIT
        )

    def resolve(self, account: AccountRef) -> Entitlement:
        if self._is_enterprise(account.names):
            logger.info("%s resolved as enterprise", account.login)
            return Entitlement.enterprise()

        subscription = self._subscription(account)
        if subscription is not None:
            logger.info(
                "%s resolved as subscription %s (%s PRs until %s)",
                account.login,
                subscription.plan_name,
                subscription.monthly_limit,
                subscription.renewal_date,
            )
            return subscription

        if self.cohort_repo.register(account.login, self.cohort_size):
            return Entitlement.promotion(self.promotion_limit)

        logger.info("%s has no entitlement", account.login)
        return Entitlement.none()

    def _is_enterprise(self, names: Iterable[str]) -> bool:
        return self.enterprise_repo.find_by_names(names) is not None

    def _subscription(self, account: AccountRef) -> Optional[Entitlement]:
        if self.subscription_provider is None:
            return None
        try:
            plan = self.subscription_provider.get_plan(account)
        except Exception as exc:
            # A billing outage must not block the promotion fallback
            logger.warning("Subscription lookup failed for %s: %s", account.login, exc)
            return None
        if plan is None:
            return None
        limit = tier_limit(plan.monthly_price_in_cents, self.tiers)
        if limit is None:
            return None
        return Entitlement.subscription(limit, plan.renewal_date, plan.name)
