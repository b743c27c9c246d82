"""Environment-driven application settings."""

from typing import List, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    api_title: str = Field("User Store API", validation_alias="API_TITLE")
    seed_demo_users: bool = Field(True, validation_alias="SEED_DEMO_USERS")
    seed_users: List[Tuple[str, str]] = Field(
        default_factory=lambda: [("user1", "password1"), ("user2", "password2")],
        validation_alias="SEED_USERS",
    )
    default_page_size: int = Field(10, gt=0, validation_alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(100, gt=0, validation_alias="MAX_PAGE_SIZE")
    login_rate_limit: str = Field("5/minute", validation_alias="LOGIN_RATE_LIMIT")


settings = Settings()
