from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: str = "*"  # comma-separated
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Maps API Keys
    GOOGLE_MAPS_API_KEY: str = ""
    ROUTES_API_URL: str = "https://routes.googleapis.com/directions/v2:computeRoutes"

    # Operating region bias
    REGION_CODE: str = "LB"
    REGION_BIAS_LAT: float = 33.8938
    REGION_BIAS_LNG: float = 35.5018
    REGION_BIAS_RADIUS_M: int = 30000
    LANGUAGE_CODE: str = "en"

    # Dispatch
    MIN_LEAD_MINUTES: int = 2

    # Default rate configuration
    RATE_PER_KM: float = 1.10
    HOURLY_WAIT_RATE: float = 5
    EXCHANGE_RATE: float = 90000
    MINIMUM_FARE_USD: float = 7

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
