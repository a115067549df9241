"""
Colaborador de identidad: verificación del bearer JWT.

La emisión de tokens de sesión vive fuera de este servicio. Aquí solo se verifica
firma, expiración y audiencia opcional, y se extrae el subject como id del actor.
"""
from typing import Dict, Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel, Field

from gymcore.core.config import Settings, get_settings
from gymcore.core.errors import AuthError, ErrorKind

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class Actor(BaseModel):
    """Usuario autenticado que invoca una operación (miembro o staff)."""
    id: str = Field(..., alias="sub")
    email: Optional[str] = None

    model_config = {"populate_by_name": True}


def decode_actor(token: str, settings: Settings) -> Actor:
    """
    Verifica el JWT y construye el Actor.

    Raises:
        AuthError(INVALID_USER): firma inválida, token expirado o sin subject
    """
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        payload: Dict = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token expirado")
        raise AuthError(ErrorKind.INVALID_USER, "Token expirado")
    except JWTError as e:
        logger.warning(f"Token inválido: {e}")
        raise AuthError(ErrorKind.INVALID_USER, "Token inválido")

    if not payload.get("sub"):
        raise AuthError(ErrorKind.INVALID_USER, "Token sin subject")

    return Actor(sub=str(payload["sub"]), email=payload.get("email"))


async def get_current_actor(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings)
) -> Actor:
    """Dependencia FastAPI: Actor autenticado a partir de Authorization: Bearer."""
    if creds is None or not creds.credentials:
        raise AuthError(ErrorKind.MISSING_AUTHORIZATION)
    return decode_actor(creds.credentials, settings)
