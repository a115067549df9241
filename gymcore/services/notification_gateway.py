"""
NotificationGateway - envío fire-and-forget de eventos a la pasarela de notificaciones.

La pasarela se encarga de la entrega (email, push) fuera de banda. Desde el punto
de vista del llamador, dispatch() retorna inmediatamente: los fallos solo se
observan en los logs de este módulo, nunca en el resultado del llamador.
"""

import enum
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi.encoders import jsonable_encoder

from gymcore.core.async_utils import BackgroundDispatcher

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    PAYMENT_FAILED = "billing.payment_failed"
    GRACE_PERIOD_EXPIRING = "billing.grace_period_expiring"
    PAYMENT_RECOVERED = "billing.payment_recovered"
    WAITLIST_PROMOTED = "class.waitlist_promoted"


class NotificationGateway:
    """
    Cliente async (httpx.AsyncClient) de la pasarela de notificaciones.

    Si no hay URL configurada el envío queda deshabilitado y solo se registra.
    """

    def __init__(
        self,
        base_url: Optional[str],
        api_token: str = "",
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            base_url: Endpoint de la pasarela (None deshabilita el envío)
            api_token: Token bearer para la pasarela
            timeout: Timeout corto de cada envío, en segundos
            transport: Transporte httpx alternativo (tests)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Content-Type": "application/json"}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"
        self.dispatcher = BackgroundDispatcher("notification_gateway")

        if not base_url:
            logger.warning("NOTIFICATION_GATEWAY_URL no configurada - las notificaciones solo se registrarán")

    def dispatch(self, event: NotificationEvent, member_id: int, **extra: Any) -> None:
        """
        Programa el envío de un evento y retorna sin esperar.

        Args:
            event: Tipo de evento
            member_id: Miembro destinatario
            **extra: Datos adicionales del evento (grace_period_until, class_instance_id...)
        """
        payload = jsonable_encoder({"event": event.value, "member_id": member_id, **extra})

        if not self.base_url:
            logger.info(f"Notificación {event.value} para miembro {member_id} (pasarela deshabilitada)")
            return

        self.dispatcher.spawn(self._send(payload))

    async def _send(self, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.base_url, headers=self.headers, json=payload)
                response.raise_for_status()
            logger.info(f"Notificación {payload['event']} enviada para miembro {payload['member_id']}")
        except httpx.HTTPError as e:
            logger.warning(
                f"Fallo al enviar notificación {payload['event']} para miembro {payload['member_id']}: {e}"
            )

    async def aclose(self, timeout: Optional[float] = None) -> None:
        await self.dispatcher.drain(timeout=timeout if timeout is not None else self.timeout)
