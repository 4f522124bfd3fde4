import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    persistence_mode: Literal["file", "database", "memory"] = Field("file", alias="MENTORA_PERSISTENCE_MODE")
    state_path: str = Field("mentora_storage.json", alias="MENTORA_STATE_PATH")
    storage_prefix: str = Field("mentora_", alias="MENTORA_STORAGE_PREFIX")
    database_url: Optional[str] = Field(None, alias="MENTORA_DATABASE_URL")
    database_echo: bool = Field(False, alias="MENTORA_DATABASE_ECHO")
    catalog_source: Optional[str] = Field(None, alias="MENTORA_CATALOG_SOURCE")
    catalog_timeout: float = Field(5.0, gt=0, alias="MENTORA_CATALOG_TIMEOUT")
    starter_xp: int = Field(120, ge=0, alias="MENTORA_STARTER_XP")
    tick_seconds: float = Field(0.25, gt=0, alias="MENTORA_TICK_SECONDS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid mentora configuration: {exc}") from exc
