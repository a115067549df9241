"""
Utilidades async compartidas por servicios y jobs.

- BackgroundDispatcher: envíos fire-and-forget que no bloquean al llamador.
- run_with_budget: límite de tiempo de pared para cada sweep.
"""

import asyncio
from typing import Any, Awaitable, Optional, Set, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


class SweepTimeout(Exception):
    """Un sweep superó su presupuesto de tiempo."""


class BackgroundDispatcher:
    """
    Lanza corutinas como tareas en segundo plano y guarda una referencia
    hasta que terminan (el event loop solo mantiene referencias débiles).

    El llamador nunca espera ni recibe el resultado; los errores se registran
    dentro de la propia corutina.
    """

    def __init__(self, name: str):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Sin event loop no hay forma de despachar en segundo plano
            logger.warning(f"[{self.name}] Sin event loop activo, envío descartado")
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Espera a las tareas pendientes (apagado ordenado y tests)."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"[{self.name}] {len(pending)} envíos sin terminar al drenar")


async def run_with_budget(awaitable: Awaitable[T], *, timeout: float, job_name: str) -> T:
    """
    Ejecuta un sweep con un límite de tiempo de pared.

    Raises:
        SweepTimeout: si el sweep no termina dentro del presupuesto
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Sweep {job_name} excedió su presupuesto de {timeout}s")
        raise SweepTimeout(job_name) from e
