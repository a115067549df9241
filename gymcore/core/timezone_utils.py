"""
Utilidades para el manejo de zonas horarias de sedes y programaciones.
"""
from datetime import datetime, timezone
import logging

import pytz
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


def get_timezone(tz_name: str) -> pytz.BaseTzInfo:
    """
    Resuelve una zona horaria IANA.

    Si el nombre no existe se usa UTC y se registra un warning, en lugar de
    bloquear la programación que la referencia.
    """
    try:
        return pytz.timezone(tz_name or "UTC")
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Zona horaria desconocida '{tz_name}', usando UTC")
        return pytz.utc


def convert_utc_to_local(utc_dt: datetime, tz_name: str) -> datetime:
    """
    Convierte un datetime aware a la hora local de la zona indicada.

    Args:
        utc_dt: Datetime aware (normalmente UTC)
        tz_name: Zona horaria destino (ej: 'America/Mexico_City')
    """
    if utc_dt.tzinfo is None:
        raise ValueError("El datetime debe ser aware (con timezone)")
    return utc_dt.astimezone(get_timezone(tz_name))


def convert_local_to_utc(naive_dt: datetime, tz_name: str) -> datetime:
    """
    Interpreta un datetime naive como hora local de la zona y lo convierte a UTC.

    Horas ambiguas (cambio de horario hacia atrás) se resuelven como hora estándar.
    Horas inexistentes (salto hacia adelante) se desplazan según el offset estándar.
    """
    if naive_dt.tzinfo is not None:
        raise ValueError("El datetime debe ser naive (sin timezone)")
    tz = get_timezone(tz_name)
    local_dt = tz.localize(naive_dt, is_dst=False)
    return tz.normalize(local_dt).astimezone(timezone.utc)


def add_local_interval(utc_dt: datetime, tz_name: str, interval: relativedelta) -> datetime:
    """
    Suma un intervalo de calendario en la hora local de la zona.

    La hora de reloj local se conserva a través de cambios de horario. Para meses,
    relativedelta ajusta al último día válido cuando el mes destino es más corto
    (31 de enero + 1 mes = 29 de febrero en año bisiesto).

    Returns:
        Datetime aware en UTC
    """
    local_dt = convert_utc_to_local(utc_dt, tz_name)
    shifted = local_dt.replace(tzinfo=None) + interval
    return convert_local_to_utc(shifted, tz_name)
