from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Polar Star Passport API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    model_provider: str = "openai"  # openai|bedrock
    # Any OpenAI-compatible chat-completions endpoint (OpenRouter by default).
    model_api_url: str = "https://openrouter.ai/api/v1/chat/completions"
    model_api_key: str = ""
    model_name: str = "qwen/qwen3-next-80b-a3b-instruct"
    model_temperature: float = 0.7
    model_max_tokens: int = 4096
    model_timeout_seconds: float = 90.0
    aws_region: str = "us-east-1"
    bedrock_model_id: str = "amazon.nova-pro-v1:0"
    # degrade: answer with the fallback draft when the model call fails; abort: return 502.
    upstream_failure_mode: str = "degrade"

    database_url: str = "sqlite:///./passport.db"

    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    telegram_default_chat_id: str = ""
    telegram_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def abort_on_upstream_failure(self) -> bool:
        return self.upstream_failure_mode.strip().lower() == "abort"


settings = Settings()
