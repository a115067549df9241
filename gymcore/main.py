import uvicorn
from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
import logging

# Importar la función de configuración de logging
from gymcore.core.logging_config import setup_logging

# Llamar a la configuración de logging ANTES de importar/crear otros elementos
setup_logging()

# Ahora importar el resto
from gymcore.api.v1.api import api_router
from gymcore.core.config import get_settings
from gymcore.core.dependencies import get_notification_gateway, get_report_delivery
from gymcore.core.errors import GymCoreError, gymcore_error_handler
from gymcore.core.scheduler import init_scheduler

logger = logging.getLogger(__name__)

# Obtener la instancia de configuración al inicio del módulo
settings_instance = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Lifespan: Startup iniciado...")

    # Iniciar el scheduler
    if settings_instance.SCHEDULER_ENABLED:
        try:
            scheduler = init_scheduler()
            app.state.scheduler = scheduler
            logger.info("Lifespan: Scheduler inicializado.")
        except Exception as e:
            logger.error(f"Lifespan: Error al inicializar scheduler: {e}", exc_info=True)
    else:
        logger.info("Lifespan: Scheduler deshabilitado por configuración.")

    yield  # Aplicación en ejecución

    logger.info("Lifespan: Shutdown iniciado...")

    # Apagar el scheduler
    if getattr(app.state, "scheduler", None):
        try:
            app.state.scheduler.shutdown()
            logger.info("Scheduler shut down.")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}", exc_info=True)

    # Esperar a los envíos en segundo plano pendientes
    await get_notification_gateway().aclose()
    await get_report_delivery().aclose()


app = FastAPI(
    title=settings_instance.PROJECT_NAME,
    description=settings_instance.PROJECT_DESCRIPTION,
    version=settings_instance.VERSION,
    openapi_url=f"{settings_instance.API_V1_STR}/openapi.json",
    docs_url=f"{settings_instance.API_V1_STR}/docs",
    redoc_url=f"{settings_instance.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Errores de dominio -> {"error": kind}
app.add_exception_handler(GymCoreError, gymcore_error_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Middleware: Recibida petición: {request.method} {request.url.path}")
    if settings_instance.DEBUG_MODE:
        # Nunca registrar el token completo
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            logger.debug("TOKEN PREVIEW: ****%s", token[-6:] if len(token) > 6 else "")

    response = await call_next(request)

    logger.info(f"Middleware: Enviando respuesta: {response.status_code}")
    return response


# Incluir routers
app.include_router(api_router, prefix=settings_instance.API_V1_STR)


# Ruta raíz
@app.get("/")
def root():
    return {
        "message": f"Bienvenido a {settings_instance.PROJECT_NAME}",
        "docs": f"{settings_instance.API_V1_STR}/docs",
    }


if __name__ == "__main__":
    uvicorn.run("gymcore.main:app", host="0.0.0.0", port=8000, reload=settings_instance.DEBUG_MODE)
