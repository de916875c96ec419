from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    port: int = 5050
    public_base: str = ""

    # Amadeus (hotel directory)
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_env: str = "test"
    amadeus_timeout: float = 20.0
    amadeus_token_timeout: float = 15.0
    amadeus_retries: int = 2
    amadeus_retry_backoff: float = 0.5
    amadeus_max_concurrency: int = 10

    # Hotel Search
    hotel_city_ids_cap: int = 20
    hotel_expanded_ids_cap: int = 50
    hotel_page_limit: int = 50
    hotel_photo_enrich_limit: int = 10

    # Google Places (photos)
    google_places_key: str = ""
    places_timeout: float = 12.0
    photo_timeout: float = 15.0
    photo_max_width: int = 1200

    # Cache
    cache_sweep_interval_seconds: int = 60
    cache_max_entries: int = 10_000

    # Scheduler
    scheduler_enabled: bool = True

    # CORS
    cors_origins: str = "http://localhost:5173"

    @property
    def amadeus_base_url(self) -> str:
        if self.amadeus_env.lower() == "prod":
            return "https://api.amadeus.com"
        return "https://test.api.amadeus.com"

    @property
    def public_base_url(self) -> str:
        return (self.public_base or f"http://localhost:{self.port}").rstrip("/")

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
