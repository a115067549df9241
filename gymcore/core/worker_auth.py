import secrets
from fastapi import Depends, Security, HTTPException, status, Request
from fastapi.security import APIKeyHeader

from gymcore.core.config import Settings, get_settings

# Esquema de seguridad para la clave API de los disparadores de sweeps
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_worker_api_key(
    request: Request,
    api_key_header: str = Security(api_key_header),
    settings: Settings = Depends(get_settings)
):
    """
    Verifica que la petición provenga de un disparador autorizado (cron externo,
    procesador de pagos) mediante la clave API.

    Raises:
        HTTPException: 401 si la clave es inválida o ausente,
                      500 si WORKER_API_KEY no está configurada
    """
    expected_api_key = settings.WORKER_API_KEY

    if not expected_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de configuración: WORKER_API_KEY no está definida"
        )

    client_ip = request.client.host if request.client else "unknown"

    if not api_key_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Autenticación de worker faltante desde IP: {client_ip}"
        )

    # Comparación en tiempo constante
    if not secrets.compare_digest(api_key_header, expected_api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Clave API del worker inválida desde IP: {client_ip}"
        )

    return True
