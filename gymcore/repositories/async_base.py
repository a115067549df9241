"""
Base repository async para operaciones CRUD genéricas.
"""
from typing import TypeVar, Generic, Optional, Dict, Any, Type
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType")


class AsyncBaseRepository(Generic[ModelType]):
    """
    Repositorio base genérico con operaciones async.

    Las escrituras solo hacen flush(): el commit/rollback es responsabilidad
    del servicio, que decide los límites de la transacción.

    Uso:
        class MemberRepository(AsyncBaseRepository[Member]):
            # Métodos específicos del modelo
            pass
    """

    def __init__(self, model: Type[ModelType]):
        """
        Args:
            model: Clase del modelo SQLAlchemy (ej: Member, ClassInstance)
        """
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        Obtener un objeto por ID.

        Returns:
            El objeto encontrado o None si no existe
        """
        # Las actualizaciones condicionales no sincronizan la sesión: leer siempre lo almacenado
        stmt = select(self.model).where(self.model.id == id).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Dict[str, Any]
    ) -> ModelType:
        """
        Crear un nuevo objeto (flush, sin commit).

        Returns:
            El objeto creado con ID asignado
        """
        valid_fields = {}
        for field, value in obj_in.items():
            if hasattr(self.model, field):
                valid_fields[field] = value
            else:
                logger.warning(
                    f"Campo ignorado en create: {self.model.__name__} no tiene campo '{field}'"
                )

        db_obj = self.model(**valid_fields)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)

        return db_obj
