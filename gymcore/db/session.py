from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging

from gymcore.core.config import get_settings

logger = logging.getLogger(__name__)

settings_instance = get_settings()
db_url = settings_instance.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite serializa escritores; el timeout permite esperar el lock en lugar de fallar
        return {"connect_args": {"timeout": 15}}
    return {
        "pool_pre_ping": False,
        "pool_size": 20,
        "max_overflow": 40,
        "pool_timeout": 30,
        "pool_recycle": 280,
        "connect_args": {
            "statement_cache_size": 0,
            "server_settings": {
                "application_name": "gymcore",
                "statement_timeout": "30000"
            }
        },
        # Las actualizaciones condicionales dependen de READ COMMITTED:
        # el segundo escritor re-evalúa el WHERE tras el commit del primero
        "isolation_level": "READ COMMITTED",
    }


# Ocultar credenciales en el log
display_url = db_url.split("@")[-1] if "@" in db_url else db_url
logger.info(f"Creando async engine para: {display_url}")

async_engine = create_async_engine(db_url, echo=False, **_engine_kwargs(db_url))

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)


async def get_async_db():
    """
    Dependencia async para obtener sesión de base de datos.

    Uso en endpoints:
        @router.post("/endpoint")
        async def my_endpoint(db: AsyncSession = Depends(get_async_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Error SQLAlchemy en sesión async: {e}", exc_info=True)
            await session.rollback()
            raise


@asynccontextmanager
async def get_async_db_for_jobs():
    """
    Context manager async para jobs del scheduler.

    Para endpoints FastAPI usar get_async_db() con Depends().

    Uso:
        async with get_async_db_for_jobs() as db:
            await waitlist_service.run_sweep(db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Error SQLAlchemy en job async: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()
            logger.debug("Sesión async DB cerrada correctamente en job")
