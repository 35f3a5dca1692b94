from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/features.db"

    # Embedding model
    model_weights: Optional[str] = "imagenet"
    model_path: Optional[str] = None
    model_url: Optional[str] = None
    feature_layer: str = "global_average_pooling2d"
    input_height: int = Field(default=224, ge=1)
    input_width: int = Field(default=224, ge=1)
    embedding_dim: int = Field(default=1280, ge=1)

    # Decision thresholds (percent)
    report_threshold: float = Field(default=50.0, ge=0.0, le=100.0)
    match_threshold: float = Field(default=60.0, ge=0.0, le=100.0)

    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        protected_namespaces=(),
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        if self.report_threshold > self.match_threshold:
            raise ValueError(
                "report_threshold must not exceed match_threshold "
                f"({self.report_threshold} > {self.match_threshold})"
            )
        return self

settings = Settings()
