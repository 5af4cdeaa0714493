from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Reasoning backend
    backend_api_key: str
    backend_base_url: str = "https://app.backboard.io/api"
    backend_assistant_id: str = ""
    backend_model: str = "claude-3-7-sonnet-20250219"
    backend_timeout: float = 120.0

    # Scope gate
    scope_classifier_enabled: bool = True
    scope_assistant_id: str = ""  # tool-free classifier; empty = reuse backend_assistant_id
    scope_poll_interval: float = 0.4
    scope_timeout: float = 8.0
    scope_deny_categories: list[str] = ["math_homework", "politics", "dating"]

    @field_validator("scope_deny_categories", mode="before")
    @classmethod
    def parse_categories(cls, v: object) -> object:
        if isinstance(v, str):
            return [c.strip() for c in v.split(",") if c.strip()]
        return v

    # Run loop
    run_max_iterations: int = 10
    run_poll_interval: float = 1.0

    # Preference questions
    min_turns_between_questions: int = 10

    # Database
    database_path: str = "data/packbot.db"

    # Weather (Open-Meteo)
    open_meteo_forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    open_meteo_geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    weather_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    log_file: str = "data/packbot.log"

    model_config = {"env_file": ".env"}
