from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "garmentflow"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    # Observability Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # "json" or "console"

    # Work item expansion
    PER_ROLL_WORK_ITEMS: bool = False

    # Progress projections may be cached at most this long by callers
    PROGRESS_REFRESH_SECONDS: int = 30

    # Capability token that makes an operator compatible with any machine type
    MULTI_SKILL_CAPABILITY: str = "*"
    DEFAULT_OPERATOR_MAX_LOAD: int = 3

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_local(self) -> bool:
        return self.ENVIRONMENT == "local"


settings = Settings()  # type: ignore
