from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CharacterConfig(BaseModel):
    name: str = ""
    realm: str = ""


class StorageConfig(BaseModel):
    path: Path = Path("senseki_db.json")
    default_keep_count: int = 3


class SourceConfig(BaseModel):
    path: Path | None = None  # None = telemetry source unavailable


class CaptureConfig(BaseModel):
    delay_seconds: float = 3.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    debug: bool = False
    log_level: str = "INFO"
    character: CharacterConfig = CharacterConfig()
    storage: StorageConfig = StorageConfig()
    source: SourceConfig = SourceConfig()
    capture: CaptureConfig = CaptureConfig()

    @property
    def identity(self) -> str:
        return f"{self.character.name}-{self.character.realm}"

    @model_validator(mode="after")
    def _check_cross_field_deps(self):
        if self.storage.default_keep_count < 1:
            raise ValueError("STORAGE__DEFAULT_KEEP_COUNT must be >= 1")
        if self.capture.delay_seconds < 0:
            raise ValueError("CAPTURE__DELAY_SECONDS must be >= 0")
        if bool(self.character.name) != bool(self.character.realm):
            raise ValueError(
                "CHARACTER__NAME and CHARACTER__REALM must be set together"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
