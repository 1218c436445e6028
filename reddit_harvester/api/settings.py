from typing import List, Union

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level settings of the harvest API, read from HARVESTER_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="HARVESTER_", env_file=".env", extra="ignore")

    APP_NAME: str = "RedditHarvester"
    APP_VERSION: str = "0.1.0"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8002
    CONFIG_PATH: str = "config.yaml"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/harvester-api.log"

    CORS_ORIGINS: Union[str, List[str]] = "http://localhost:3000,http://localhost:8080"
    CORS_ALLOW_METHODS: Union[str, List[str]] = "GET,POST"

    def model_post_init(self, __context) -> None:
        """Parse comma-separated strings into lists after model initialization."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        if isinstance(self.CORS_ALLOW_METHODS, str):
            self.CORS_ALLOW_METHODS = [method.strip() for method in self.CORS_ALLOW_METHODS.split(",") if method.strip()]


settings = Settings()
