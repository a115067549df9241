"""
ReportDeliveryClient - disparo del colaborador externo de generación y envío de reportes.

La generación del archivo y el email no viven en este servicio. El sweep de
programaciones solo avisa que una ejecución está lista; el disparo es
fire-and-forget e independiente del avance del reloj de la programación.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi.encoders import jsonable_encoder

from gymcore.core.async_utils import BackgroundDispatcher
from gymcore.models.report import ReportFormat

logger = logging.getLogger(__name__)


class ReportDeliveryClient:

    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport
        self.dispatcher = BackgroundDispatcher("report_delivery")

        if not base_url:
            logger.warning("REPORT_DELIVERY_URL no configurada - las ejecuciones de reportes solo se registrarán")

    def trigger(
        self,
        *,
        schedule_id: int,
        report_id: str,
        report_format: ReportFormat,
        delivery_emails: List[str]
    ) -> None:
        payload = jsonable_encoder({
            "schedule_id": schedule_id,
            "report_id": report_id,
            "format": ReportFormat(report_format).value,
            "delivery_emails": list(delivery_emails),
        })

        if not self.base_url:
            logger.info(
                f"Reporte {report_id} ({payload['format']}) listo para "
                f"{len(payload['delivery_emails'])} destinatarios (entrega deshabilitada)"
            )
            return

        self.dispatcher.spawn(self._send(payload))

    async def _send(self, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.base_url, json=payload)
                response.raise_for_status()
            logger.info(f"Ejecución del reporte {payload['report_id']} disparada (schedule {payload['schedule_id']})")
        except httpx.HTTPError as e:
            logger.warning(f"Fallo al disparar el reporte {payload['report_id']}: {e}")

    async def aclose(self, timeout: Optional[float] = None) -> None:
        await self.dispatcher.drain(timeout=timeout if timeout is not None else self.timeout)
