from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kvstream.core.constants import DEFAULT_BATCH_SIZE


class Settings(BaseSettings):
    app_env: str = "local"

    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "kvstream"
    db_user: str = "kvstream"
    db_password: str = "kvstream"

    stream_batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    poll_interval: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        # asyncpg + SQLAlchemy 2.x
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
