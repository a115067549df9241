"""
Taxonomía cerrada de errores del núcleo.

Cada condición de fallo tiene un ErrorKind estable y un código HTTP fijo.
Las capas de UI (fuera de este servicio) traducen el kind a mensajes para el usuario.
"""
import enum
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class ErrorKind(str, enum.Enum):
    # Identidad
    MISSING_AUTHORIZATION = "missing_authorization"
    INVALID_USER = "invalid_user"
    # Estado del miembro
    MEMBER_NOT_FOUND = "member_not_found"
    MEMBERSHIP_INACTIVE = "membership_inactive"
    MEMBER_INACTIVE = "member_inactive"
    ACCESS_RESTRICTED = "access_restricted"
    MEMBER_FACILITY_MISMATCH = "member_facility_mismatch"
    # Ciclo de vida del token de check-in
    TOKEN_NOT_FOUND = "token_not_found"
    TOKEN_ALREADY_USED = "token_already_used"
    TOKEN_EXPIRED = "token_expired"
    # Alcance del staff
    STAFF_NOT_FOUND = "staff_not_found"
    STAFF_FACILITY_MISMATCH = "staff_facility_mismatch"
    # Clases y reservas
    CLASS_INSTANCE_NOT_FOUND = "class_instance_not_found"
    CLASS_NOT_BOOKABLE = "class_not_bookable"
    ALREADY_BOOKED = "already_booked"
    BOOKING_NOT_FOUND = "booking_not_found"
    BOOKING_NOT_ACTIVE = "booking_not_active"
    # Facturación
    SUBSCRIPTION_NOT_FOUND = "subscription_not_found"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    # Persistencia
    STORE_WRITE_FAILED = "store_write_failed"


ERROR_STATUS_CODES = {
    ErrorKind.MISSING_AUTHORIZATION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_USER: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.MEMBER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.MEMBERSHIP_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorKind.MEMBER_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorKind.ACCESS_RESTRICTED: status.HTTP_403_FORBIDDEN,
    ErrorKind.MEMBER_FACILITY_MISMATCH: status.HTTP_403_FORBIDDEN,
    ErrorKind.TOKEN_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TOKEN_ALREADY_USED: status.HTTP_409_CONFLICT,
    ErrorKind.TOKEN_EXPIRED: status.HTTP_410_GONE,
    ErrorKind.STAFF_NOT_FOUND: status.HTTP_403_FORBIDDEN,
    ErrorKind.STAFF_FACILITY_MISMATCH: status.HTTP_403_FORBIDDEN,
    ErrorKind.CLASS_INSTANCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CLASS_NOT_BOOKABLE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ALREADY_BOOKED: status.HTTP_409_CONFLICT,
    ErrorKind.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.BOOKING_NOT_ACTIVE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SUBSCRIPTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.STORE_WRITE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class GymCoreError(Exception):
    """Error de dominio con un kind estable."""

    kind: ErrorKind = ErrorKind.STORE_WRITE_FAILED

    def __init__(self, kind: Optional[ErrorKind] = None, detail: Optional[str] = None):
        if kind is not None:
            self.kind = kind
        self.detail = detail or self.kind.value
        super().__init__(self.detail)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES[self.kind]


class AuthError(GymCoreError):
    kind = ErrorKind.INVALID_USER


class MemberError(GymCoreError):
    kind = ErrorKind.MEMBER_NOT_FOUND


class TokenError(GymCoreError):
    kind = ErrorKind.TOKEN_NOT_FOUND


class StaffError(GymCoreError):
    kind = ErrorKind.STAFF_NOT_FOUND


class BookingError(GymCoreError):
    kind = ErrorKind.CLASS_INSTANCE_NOT_FOUND


class BillingError(GymCoreError):
    kind = ErrorKind.SUBSCRIPTION_NOT_FOUND


class StoreWriteFailed(GymCoreError):
    """La capa de persistencia rechazó una escritura."""

    kind = ErrorKind.STORE_WRITE_FAILED


async def gymcore_error_handler(request: Request, exc: GymCoreError) -> JSONResponse:
    """Renderiza cualquier GymCoreError como {"error": <kind>}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind.value})
