from pathlib import Path
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    APP_TITLE: str = "sentinel"
    APP_VERSION: str = "0.3.0"

    # Registro de sitios y persistencia
    SITES_FILE: Path = Path("config.json")
    DATABASE_URL: str = "sqlite:///./sentinel.db"

    # Monitor
    CHECK_INTERVAL: float = 30.0   # segundos entre ciclos
    PROBE_TIMEOUT: float = 10.0
    HISTORY_WINDOW: int = 60       # registros por sitio en cada snapshot
    UPTIME_WINDOW_HOURS: float = 24.0
    RETENTION_HOURS: float = 48.0
    DEGRADED_MS: int = 1000

    # Difusión / SSE
    SUBSCRIBER_BUFFER: int = 4
    OVERFLOW_POLICY: str = "drop"  # drop | close
    KEEPALIVE_SECONDS: float = 15.0
    CORS_ORIGINS: str = "*"

    # Recarga de config.json
    WATCH_CONFIG: bool = True
    CONFIG_POLL_SECONDS: float = 5.0

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    @field_validator("OVERFLOW_POLICY")
    @classmethod
    def _policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("drop", "close"):
            raise ValueError("OVERFLOW_POLICY debe ser 'drop' o 'close'")
        return v

    @field_validator("CHECK_INTERVAL", "PROBE_TIMEOUT", "UPTIME_WINDOW_HOURS", "CONFIG_POLL_SECONDS")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("debe ser > 0")
        return v

    @model_validator(mode="after")
    def _windows(self):
        if self.RETENTION_HOURS < self.UPTIME_WINDOW_HOURS:
            raise ValueError("RETENTION_HOURS no puede ser menor que UPTIME_WINDOW_HOURS")
        if self.CHECK_INTERVAL > self.UPTIME_WINDOW_HOURS * 3600:
            raise ValueError("CHECK_INTERVAL no cabe en la ventana de uptime")
        if self.HISTORY_WINDOW < 1 or self.SUBSCRIBER_BUFFER < 1:
            raise ValueError("HISTORY_WINDOW y SUBSCRIBER_BUFFER deben ser >= 1")
        return self

    @property
    def uptime_window_seconds(self) -> float:
        return self.UPTIME_WINDOW_HOURS * 3600

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()

def get_settings() -> Settings:
    return settings
