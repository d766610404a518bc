from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "bistro"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # billing
    TAX_RATE: float = 0.10
    CURRENCY: str = "$"

    # printing: tcp://host:port, http(s)://agent, console:// ; unset = not configured
    RECEIPT_WIDTH: int = 32
    KITCHEN_PRINTER_URL: str | None = None
    CASHIER_PRINTER_URL: str | None = None
    PRINTER_TIMEOUT_S: float = 3.0
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
