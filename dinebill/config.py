from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "dinebill"
    JWT_EXP_MIN: int = 8*60
    JWT_REFRESH_EXP_MIN: int = 14*24*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    # kitchen display stream heartbeat, seconds
    KDS_PING_SECONDS: float = 15.0
    # forward-only status graph; off keeps the permissive admin path
    ORDER_STATUS_STRICT: bool = False
    APP_BASE_URL: str = "http://localhost:8000"
    PRINT_PATH_PREFIX: str = "/app/print/invoice"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
