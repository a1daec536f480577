from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    auth_mode: str = "none"  # none | forwardauth
    root_path: str = ""

    postgres_db: str = "family_tree"
    postgres_user: str = "family_tree_user"
    postgres_password: str = "family_tree_pass"
    postgres_host: str = "db"
    postgres_port: int = 5432
    redis_host: str = "redis"
    redis_port: int = 6379

    log_level: str = "info"
    log_format: str = "console"  # console | json

    # Join codes double as merge capability tokens.
    join_code_length: int = 8
    join_code_max_attempts: int = 10

    # Notifications are fire-and-forget; delivery happens in the worker.
    notify_mode: str = "log"  # log | celery | disabled
    notification_task_name: str = "worker.tasks.deliver_notification"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def celery_broker_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/0"


settings = Settings()
