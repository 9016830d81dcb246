from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # "development" or "production"
    LOG_LEVEL: str = "INFO"

    # Provider chain, highest priority first. The straight-line synthesizer
    # is always appended and never needs to be listed.
    ROUTING_PROVIDERS: str = "mapquest,osrm"

    MAPQUEST_API_KEY: Optional[str] = None
    MAPQUEST_BASE_URL: str = "https://www.mapquestapi.com/directions/v2"
    OSRM_BASE_URL: str = "https://router.project-osrm.org"
    GRAPHHOPPER_API_KEY: Optional[str] = None
    GRAPHHOPPER_BASE_URL: str = "https://graphhopper.com/api/1"

    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_MAX_ATTEMPTS: int = 3
    PROVIDER_RETRY_DELAY_SECONDS: float = 1.0

    # 2 minutes per km
    SYNTHESIZED_SPEED_MPS: float = 1000.0 / 120.0

    ROUTE_CACHE_BACKEND: str = "memory"  # "memory" or "redis"
    ROUTE_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    ROUTE_CACHE_MAX_ENTRIES: int = 100
    ROUTE_CACHE_PRECISION: int = 5
    REDIS_URL: str = "redis://localhost:6379/0"

    DEFAULT_MAX_PASSENGERS_PER_VEHICLE: int = 8
    DEFAULT_MAX_ROUTE_DISTANCE_METERS: float = 100_000.0
    DEFAULT_MAX_ROUTE_DURATION_SECONDS: float = 120 * 60

    TWO_OPT_MAX_ITERATIONS: int = 100
    MAX_CONCURRENT_VEHICLES: int = 16

    @property
    def routing_provider_names(self) -> List[str]:
        return [
            name.strip().lower()
            for name in self.ROUTING_PROVIDERS.split(",")
            if name.strip()
        ]

    @property
    def is_production(self):
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
