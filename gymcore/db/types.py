from datetime import datetime, timezone

from sqlalchemy import DateTime, TypeDecorator


class UTCDateTime(TypeDecorator):
    """DateTime que siempre se guarda y se devuelve como UTC aware.

    SQLite no conserva la zona horaria: los valores vuelven naive. Este tipo
    normaliza en ambos sentidos para que las comparaciones en Python y en SQL
    usen la misma referencia.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, datetime):
            raise TypeError("UTCDateTime solo acepta objetos datetime")
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requiere datetimes aware")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
