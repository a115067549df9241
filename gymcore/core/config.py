from typing import Optional
from functools import lru_cache
import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configurar el logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Permitir campos extra en .env
    )

    # Configuración básica
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "GymAccessCore"
    PROJECT_DESCRIPTION: str = "Check-in, morosidad y sweeps periódicos para gimnasios"
    VERSION: str = "0.1.0"

    # Debug mode
    DEBUG_MODE: bool = False

    # Logging: sin LOG_DIR solo se escribe a stdout
    LOG_DIR: Optional[str] = None
    LOG_RETENTION_DAYS: int = 14

    # Base de datos
    DATABASE_URL: str = "sqlite+aiosqlite:///./gymcore.db"

    @field_validator("DATABASE_URL", mode="before")
    def ensure_async_driver(cls, v: Optional[str]) -> str:
        """Asegura que DATABASE_URL use un driver async (asyncpg / aiosqlite)."""
        if not v:
            raise ValueError("DATABASE_URL es obligatoria")
        if v.startswith("postgres://"):
            logger.info("Corrigiendo formato de postgres:// a postgresql+asyncpg://")
            return "postgresql+asyncpg://" + v[len("postgres://"):]
        if v.startswith("postgresql://"):
            logger.info("Añadiendo driver asyncpg a DATABASE_URL")
            return "postgresql+asyncpg://" + v[len("postgresql://"):]
        return v

    # Identidad (colaborador externo): JWT bearer firmado
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None

    # Clave API para los endpoints de worker / sweeps
    WORKER_API_KEY: str = ""

    # Check-in
    CHECKIN_TOKEN_TTL_SECONDS: int = 120

    # Morosidad
    GRACE_PERIOD_DAYS: int = 7
    GRACE_EXPIRY_NOTICE_HOURS: int = 24
    DELINQUENCY_SWEEP_BATCH_SIZE: int = 500

    # Lista de espera y reportes
    WAITLIST_SWEEP_BATCH_SIZE: int = 50
    REPORT_SWEEP_BATCH_SIZE: int = 100

    # Presupuesto de tiempo de cada sweep (segundos)
    SWEEP_TIMEOUT_SECONDS: float = 30.0

    @field_validator(
        "CHECKIN_TOKEN_TTL_SECONDS",
        "GRACE_PERIOD_DAYS",
        "GRACE_EXPIRY_NOTICE_HOURS",
        "DELINQUENCY_SWEEP_BATCH_SIZE",
        "WAITLIST_SWEEP_BATCH_SIZE",
        "REPORT_SWEEP_BATCH_SIZE",
        "SWEEP_TIMEOUT_SECONDS",
        "NOTIFICATION_TIMEOUT_SECONDS",
        "LOG_RETENTION_DAYS",
    )
    def must_be_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} debe ser mayor que 0")
        return v

    # Notification gateway (entrega fuera de banda)
    NOTIFICATION_GATEWAY_URL: Optional[str] = None
    NOTIFICATION_GATEWAY_TOKEN: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 3.0

    # Generación/entrega de reportes (stub externo)
    REPORT_DELIVERY_URL: Optional[str] = None

    # Scheduler
    SCHEDULER_ENABLED: bool = True


# Usar una función con caché para obtener la configuración
@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    logger.info("Configuración cargada correctamente")
    return settings
