from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "COUNTDESK"
    DATABASE_URL: str = "sqlite+pysqlite:///./countdesk.db"
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    SHOPIFY_SHOP_DOMAIN: str = ""
    SHOPIFY_ACCESS_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2025-01"
    GATEWAY_CONNECT_TIMEOUT_SECONDS: float = 5.0
    GATEWAY_READ_TIMEOUT_SECONDS: float = 15.0
    GATEWAY_MAX_ATTEMPTS: int = 3
    GATEWAY_BACKOFF_SECONDS: float = 1.0
    TASK_NUMBER_MAX: int = 9999
    TASK_NUMBER_FIRST_LETTER: str = "A"
    ADJUSTMENT_REASON: str = "correction"

settings = Settings()
