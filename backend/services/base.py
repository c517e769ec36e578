"""Owner-scoped repository base for the SQL collaborators.

Every query a service builds goes through ``_scoped``: rows belonging to
another owner and soft-deleted rows are never visible, so a lead or
workflow id taken from a request can be looked up without a separate
ownership check.
"""

from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import ColumnElement, Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseService(Generic[ModelType]):
    """Reads and writes rows of one model on behalf of one owner.

    Usage:
        class LeadService(BaseService[Lead]):
            def __init__(self, db: AsyncSession, owner_id: str):
                super().__init__(Lead, db, owner_id)
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession, owner_id: Optional[str] = None):
        self.model = model
        self.db = db
        self.owner_id = owner_id

    @property
    def _owned(self) -> bool:
        return bool(self.owner_id) and hasattr(self.model, "owner_id")

    def _scoped(self, query: Select) -> Select:
        if self._owned:
            query = query.where(self.model.owner_id == self.owner_id)
        if hasattr(self.model, "is_deleted"):
            query = query.where(self.model.is_deleted.is_(False))
        return query

    def _matching(self, query: Select, filters: dict[str, Any]) -> Select:
        """Equality filters; list values match any of their members."""
        for name, value in filters.items():
            column = getattr(self.model, name, None)
            if column is None:
                continue
            if isinstance(value, (list, tuple, set)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)
        return query

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        query = self._scoped(select(self.model).where(self.model.id == id))
        return (await self.db.execute(query)).scalar_one_or_none()

    async def list(
        self,
        limit: int = 50,
        order_by: str = "created_at",
        filters: Optional[dict[str, Any]] = None,
        criteria: Sequence[ColumnElement[bool]] = (),
    ) -> Sequence[ModelType]:
        """Newest first by ``order_by``, capped at ``limit``.

        ``criteria`` are extra SQL conditions (ranges and the like) applied
        before the limit, so they never shrink the page after the fact.
        """
        query = self._matching(self._scoped(select(self.model)), filters or {})
        if criteria:
            query = query.where(*criteria)
        column = getattr(self.model, order_by, None)
        if column is not None:
            query = query.order_by(column.desc())
        return (await self.db.execute(query.limit(limit))).scalars().all()

    async def create(self, data: dict[str, Any]) -> ModelType:
        if self._owned:
            data = {"owner_id": self.owner_id, **data}
        row = self.model(**data)
        self.db.add(row)
        await self.db.flush()
        return row

    async def update(self, id: str, data: dict[str, Any]) -> Optional[ModelType]:
        """Apply ``data`` to the row; ``None`` values leave a column untouched."""
        row = await self.get_by_id(id)
        if row is None:
            return None
        for name, value in data.items():
            if value is not None and hasattr(row, name):
                setattr(row, name, value)
        await self.db.flush()
        return row
