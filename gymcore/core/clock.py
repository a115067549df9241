"""
Fuente de tiempo inyectable.

Toda la lógica dependiente del tiempo (expiración de tokens, períodos de gracia,
sweeps) recibe un Clock en el constructor en lugar de llamar a datetime.now(),
de modo que los tests pueden fijar o avanzar el instante actual.
"""
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Reloj real, siempre en UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Reloj controlable para tests y scripts de mantenimiento."""

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            raise ValueError("FixedClock requiere un datetime aware")
        self.current = current.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current.astimezone(timezone.utc)
