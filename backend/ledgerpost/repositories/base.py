from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy import update
from sqlalchemy.orm import Query, Session

from ledgerpost.core.database import Base

T = TypeVar("T", bound=Base)


class TenantRepository(Generic[T]):
    """
    Data access for one model, fixed to one organization at construction.

    Every query goes through `query()`, which always applies the organization
    filter, so callers cannot read or write another tenant's rows by accident.
    """

    def __init__(self, db: Session, model_cls: Type[T], organization_id: int):
        if organization_id is None:
            raise ValueError("organization_id is required")
        self.db = db
        self.model_cls = model_cls
        self.organization_id = organization_id

    def query(self, *options) -> Query:
        query = self.db.query(self.model_cls)
        if options:
            query = query.options(*options)
        return query.filter(self.model_cls.organization_id == self.organization_id)

    def get(self, id: int, *options) -> Optional[T]:
        """Get a row by ID, or None if it does not exist in this organization."""
        return self.query(*options).filter(self.model_cls.id == id).first()

    def get_many(self, ids) -> List[T]:
        ids = list(set(ids))
        if not ids:
            return []
        return self.query().filter(self.model_cls.id.in_(ids)).all()

    def get_by(self, **conditions) -> Optional[T]:
        return self.query().filter_by(**conditions).first()

    def list(self, order_by=None, limit: Optional[int] = None, **conditions) -> List[T]:
        query = self.query().filter_by(**conditions)
        if order_by is not None:
            query = query.order_by(order_by)
        if limit:
            query = query.limit(limit)
        return query.all()

    def exists(self, **conditions) -> bool:
        return self.get_by(**conditions) is not None

    def add(self, obj: T) -> T:
        """Stage a new row owned by this organization."""
        obj.organization_id = self.organization_id
        self.db.add(obj)
        return obj

    def increment(self, id: int, field: str, delta) -> int:
        """
        Add delta to a numeric column with one UPDATE statement.

        The database computes `field = field + delta` itself, so concurrent
        increments of the same row cannot lose updates. Returns the row count.
        """
        column = getattr(self.model_cls, field)
        result = self.db.execute(
            update(self.model_cls)
            .where(
                self.model_cls.id == id,
                self.model_cls.organization_id == self.organization_id,
            )
            .values({column: column + delta})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete(self, obj: T):
        if obj.organization_id != self.organization_id:
            raise ValueError("Row belongs to another organization")
        self.db.delete(obj)
