from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    # Application
    APP_NAME: str = "AI Jr Dev"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "ai_jr_dev"

    # GitHub App
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_GRAPHQL_URL: str = "https://api.github.com/graphql"
    GITHUB_WEBHOOK_SECRET: Optional[str] = None
    GITHUB_APP_ID: Optional[str] = None
    GITHUB_APP_PRIVATE_KEY: Optional[str] = None
    # Use the stubbed marketplace endpoints while the listing is unpublished
    GITHUB_MARKETPLACE_STUBBED: bool = False
    APP_USER_ID: Optional[int] = None

    # Labels
    WATCHED_LABELS: List[str] = ["aider", "ai-jr-dev"]
    AI_JR_DEV_LABEL_NAME: str = "ai-jr-dev"
    AI_JR_DEV_LABEL_COLOR: str = "998877"
    AI_JR_DEV_LABEL_DESCRIPTION: str = "Assign this issue to AI Jr Dev"
    BRANCH_PREFIX: str = "ai-jr-dev"

    # LLM (OpenAI compatible endpoint)
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_API_KEY: Optional[str] = None
    LLM_MODEL: str = "google/gemini-2.0-flash-001"
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Cloud Run coding-agent job
    CLOUD_RUN_PROJECT_ID: str = "ai-jr-dev-production"
    CLOUD_RUN_LOCATION: str = "us-central1"
    CLOUD_RUN_JOB_NAME: str = "aider-runner"
    CLOUD_RUN_TIMEOUT_SECONDS: int = 3600

    # Billing / quota
    PROMOTION_COHORT_SIZE: int = 100
    PROMOTION_MONTHLY_LIMIT: int = 5
    # Monthly plan price in cents -> pull requests per billing cycle
    SUBSCRIPTION_TIERS: Dict[int, int] = {1000: 20, 2500: 60, 5000: 150}

    # Celery / Redis
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_DEFAULT_QUEUE: str = "jrdev.default"
    CELERY_TASK_SOFT_TIME_LIMIT: int = 3900
    CELERY_TASK_TIME_LIMIT: int = 4200
    CELERY_BROKER_HEARTBEAT: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cloud_run_job_path(self) -> str:
        return (
            f"projects/{self.CLOUD_RUN_PROJECT_ID}/locations/"
            f"{self.CLOUD_RUN_LOCATION}/jobs/{self.CLOUD_RUN_JOB_NAME}"
        )


settings = Settings()
