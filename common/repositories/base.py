from contextlib import asynccontextmanager
from typing import Generic, TypeVar, Optional, Type, AsyncGenerator, Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update
from pydantic import BaseModel

from common.core.exceptions import ConflictError
from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository over operation-scoped sessions.

    Sessions are acquired per operation and released immediately, unless the
    caller has opened a ``transaction()``, in which case every operation joins
    that transaction's session.

    Example:
        repo = SubscriptionRepository()
        sub = await repo.get(123)  # Acquires and releases session

        async with transaction():
            sub = await repo.get(123)
            await repo.compare_and_swap(sub.id, sub.version, update_model)
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a session for an operation.

        This respects the current context: inside a @readonly call chain or a
        readonly transaction it yields the read session. The repo doesn't
        decide readonly vs write, the caller does.
        """
        async with get_session() as session:
            yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    async def _get_one_by(self, column, value: Any) -> Optional[DomainModelType]:
        # populate_existing: rows written by UPDATE statements in this session
        # must not be served stale from the identity map
        query = (
            select(self.entity_class)
            .where(column == value)
            .execution_options(populate_existing=True)
        )
        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get(self, id: int) -> Optional[DomainModelType]:
        return await self._get_one_by(self.entity_class.id, id)

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        """Create a new entity from a typed create model."""
        data = create_model.model_dump(exclude_none=True)
        db_obj = self.entity_class(**data)
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def compare_and_swap(
        self, id: int, expected_version: int, update_model: UpdateModelType
    ) -> DomainModelType:
        """
        Apply ``update_model`` only if the row still carries ``expected_version``.

        Every successful write bumps ``version``. A lost race raises
        ConflictError and writes nothing.
        """
        data: Dict[str, Any] = update_model.model_dump(exclude_unset=True)
        data["version"] = self.entity_class.version + 1

        async with self._get_session() as session:
            result = await session.execute(
                update(self.entity_class)
                .where(
                    self.entity_class.id == id,
                    self.entity_class.version == expected_version,
                )
                .values(data)
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            if result.rowcount != 1:
                raise ConflictError(
                    f"{self.entity_class.__name__} {id} changed since version {expected_version}"
                )

        updated = await self.get(id)
        return updated
