from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Application metadata
    PROJECT_NAME: str = "Fleet Manager"
    PROJECT_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # API settings
    API_V1_STR: str = "/api/v1"

    # Database settings
    DATABASE_URL: str = "sqlite:///./fleet_manager.db"

    # CORS settings
    BACKEND_CORS_ORIGINS: str = "http://localhost:8081,http://localhost:19006"

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0
    REDIS_SOCKET_TIMEOUT: int = 5  # seconds
    REDIS_CONNECT_TIMEOUT: int = 5  # seconds
    REDIS_RETRY_ON_TIMEOUT: bool = True
    REDIS_CHANNEL_PREFIX: str = "fleet:changes"

    # Feature flags
    ENABLE_REDIS: bool = False
    ENABLE_CACHING: bool = False

    # Identity provider settings (no embedded credentials)
    IDENTITY_API_KEY: Optional[str] = None
    IDENTITY_PROJECT_ID: Optional[str] = None
    IDENTITY_APP_ID: Optional[str] = None
    IDENTITY_BASE_URL: str = "https://identitytoolkit.googleapis.com/v1/"
    IDENTITY_TIMEOUT: int = 10  # seconds
    IDENTITY_MAX_RETRIES: int = 2  # connect retries at the transport layer
    IDENTITY_TOKEN_TTL: int = 3600  # provider ID tokens live one hour

    # List limits
    VEHICLES_LIST_LIMIT: int = 50
    REQUESTS_LIST_LIMIT: int = 50
    TRIP_HISTORY_LIMIT: int = 20

    # Timeline estimates (minutes)
    OUTBOUND_ESTIMATE_MINUTES: int = 30
    RETURN_ESTIMATE_MINUTES: int = 25
    MIN_ESTIMATE_MINUTES: int = 5

    # Cache settings
    CACHE_TTL: int = 3600  # 1 hour in seconds

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse the CORS origins string into a list."""
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env files

settings = Settings()
