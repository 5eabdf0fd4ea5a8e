from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "STOCKFLOW"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./stockflow.db"
    REQUEST_NUMBER_PREFIX: str = "TR"
    SHIPMENT_NUMBER_PREFIX: str = "SH"
    RECEIPT_NUMBER_PREFIX: str = "RC"
    STOCK_RESERVE_MAX_ATTEMPTS: int = 3
    QUERY_DEFAULT_PAGE_SIZE: int = 50
    QUERY_MAX_PAGE_SIZE: int = 200
    METRICS_ENABLED: bool = True


settings = Settings()
