from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Request dispatcher
    dispatcher_max_concurrent_requests: int = 5
    dispatcher_retry_count: int = 2
    dispatcher_retry_delay_ms: int = 1000
    dispatcher_max_queue_size: int | None = None  # None = unbounded

    # Stream renderer
    renderer_chunk_size: int = 100
    renderer_typing_speed_ms: float = 30.0
    renderer_max_typing_speed_ms: float = 5.0  # used for long responses
    renderer_long_response_threshold: int = 1000

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""
    deepseek_api_key: str = ""
    openrouter_api_key: str = ""

    # Provider calls
    provider_timeout_seconds: float = 60.0
    anthropic_max_tokens: int = 5000

    # App
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    @property
    def provider_api_keys(self) -> dict[str, str]:
        """Configured provider keys, keyed by provider name."""
        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
            "deepseek": self.deepseek_api_key,
            "openrouter": self.openrouter_api_key,
        }
        return {provider: key for provider, key in keys.items() if key}


settings = Settings()


def validate_settings() -> None:
    """Validate dispatcher and renderer settings. Called by entry points on startup."""
    errors: list[str] = []

    if settings.dispatcher_max_concurrent_requests < 1:
        errors.append("DISPATCHER_MAX_CONCURRENT_REQUESTS must be at least 1")
    if settings.dispatcher_retry_count < 0:
        errors.append("DISPATCHER_RETRY_COUNT must not be negative")
    if settings.dispatcher_retry_delay_ms < 0:
        errors.append("DISPATCHER_RETRY_DELAY_MS must not be negative")
    if settings.renderer_chunk_size < 1:
        errors.append("RENDERER_CHUNK_SIZE must be at least 1")

    if settings.app_env == "production" and not settings.provider_api_keys:
        errors.append("At least one provider API key must be set in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
