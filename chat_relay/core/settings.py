from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field("chat-relay")
    debug: bool = Field(False)
    # "development" expone el texto crudo del error en `details`
    environment: str = Field("production")

    openai_api_key: Optional[str] = Field(None)
    openai_base_url: Optional[str] = Field(None)

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
