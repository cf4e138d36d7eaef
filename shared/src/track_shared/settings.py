from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    stream_maxlen: int = Field(
        default=1000,
        description="Approximate MAXLEN for outbound tracking streams",
    )

    # Cameras (one detection stream per camera)
    camera_ids: str = Field(default="cam-01")

    # Tracking
    max_disappeared: int = Field(
        default=50,
        description="Consecutive missed frames before a track is retired",
    )
    dist_threshold: float = Field(
        default=50.0,
        description="Maximum centroid distance (pixels) for a valid match",
    )

    # Logging
    log_format: str = Field(default="console")
    log_level: str = Field(default="INFO")

    @property
    def camera_id_list(self) -> list[str]:
        return [c.strip() for c in self.camera_ids.split(",") if c.strip()]


# Module-level singleton, read once at startup
settings = Settings()
