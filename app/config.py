from functools import lru_cache
from typing import Optional

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    FIREBASE_PROJECT_ID: str
    FIREBASE_CLIENT_EMAIL: str
    FIREBASE_PRIVATE_KEY: str
    FIREBASE_STORAGE_BUCKET: Optional[str] = None
    FRONTEND_ORIGIN: str = "*"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @field_validator("FIREBASE_PRIVATE_KEY")
    @classmethod
    def _unescape_newlines(cls, value: str) -> str:
        # keys pasted into env files usually carry literal "\n"
        return value.replace("\\n", "\n")

    @property
    def storage_bucket(self) -> str:
        return self.FIREBASE_STORAGE_BUCKET or f"{self.FIREBASE_PROJECT_ID}.appspot.com"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
