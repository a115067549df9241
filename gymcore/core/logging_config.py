"""
Configuración de logging del servicio.

Todo se escribe a stdout; con LOG_DIR configurado además se mantiene un archivo
rotado a medianoche con LOG_RETENTION_DAYS días de historial. Los sweeps y el
planificador comparten el formato, así que cada línea lleva el logger de origen.
"""
import logging
import logging.handlers
import os
import sys
from typing import Optional

from gymcore.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Librerías de terceros con su propio nivel
THIRD_PARTY_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "apscheduler": logging.WARNING,
    "httpx": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def _file_handler(log_dir: str, retention_days: int) -> logging.Handler:
    os.makedirs(log_dir, exist_ok=True)
    return logging.handlers.TimedRotatingFileHandler(
        os.path.join(log_dir, "gymcore.log"),
        when="midnight",
        backupCount=retention_days,
        utc=True,
        encoding="utf-8",
    )


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configura el logger raíz según DEBUG_MODE y LOG_DIR."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.DEBUG_MODE else logging.INFO
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_DIR:
        handlers.append(_file_handler(settings.LOG_DIR, settings.LOG_RETENTION_DAYS))

    root = logging.getLogger()
    # Uvicorn puede haber instalado handlers antes que nosotros
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name, third_party_level in THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(third_party_level)

    root.info(
        "Logging configurado: nivel %s, archivo %s",
        logging.getLevelName(level),
        settings.LOG_DIR or "deshabilitado",
    )
    return root
