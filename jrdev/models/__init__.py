"""Database entity models - represents the actual structure stored in MongoDB"""

from .base import BaseEntity, PyObjectId
from .enterprise_account import EnterpriseAccount
from .github_installation import GithubInstallation
from .installation_usage import InstallationUsage, PullRequestUsage, Session
from .promotion_cohort import PROMOTION_COHORT_ID, PromotionCohort

__all__ = [
    "BaseEntity",
    "PyObjectId",
    "EnterpriseAccount",
    "GithubInstallation",
    "InstallationUsage",
    "PullRequestUsage",
    "Session",
    "PROMOTION_COHORT_ID",
    "PromotionCohort",
]
