"""Configuration for TaskPilot."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration, overridable through TASKPILOT_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="TASKPILOT_")

    data_dir: str = Field(default="./data/tasks")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    ai_enabled: bool = Field(default=False)
    ai_model: str = Field(default="sonnet")
    ai_max_retries: int = Field(default=3, ge=1)
    ai_retry_base_delay: float = Field(default=1.0, ge=0)

    list_limit_max: int = Field(default=100, ge=1)
