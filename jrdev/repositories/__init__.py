"""Repository exports."""

from .base import BaseRepository, CollectionName
from .enterprise_account import EnterpriseAccountRepository
from .github_installation import GithubInstallationRepository
from .installation_usage import InstallationUsageRepository
from .promotion_cohort import PromotionCohortRepository

__all__ = [
    "BaseRepository",
    "CollectionName",
    "EnterpriseAccountRepository",
    "GithubInstallationRepository",
    "InstallationUsageRepository",
    "PromotionCohortRepository",
]
