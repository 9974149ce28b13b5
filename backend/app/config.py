from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "", "case_sensitive": False}

    # App
    environment: str = "development"
    debug: bool = True
    app_name: str = "FaultFlow"
    log_json: bool = False
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Study defaults applied when a request leaves them out
    default_frequency_hz: float = 60.0
    default_standard: str = "IEEE"

    # In-memory result store
    max_stored_results: int = 500


settings = Settings()
