from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from beestat.core.errors import BeestatError, MultipleRowsError, NotFoundError
from beestat.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)

_OPERATORS = {"=", "!=", ">", ">=", "<", "<=", "between"}


class CrudRepository(Generic[ModelT]):
    """Create/read/update/delete over one table.

    Attribute filters accept a scalar (equality), a list or tuple (IN), or
    ``{"operator": op, "value": v}``. When ``user_locked`` is set every query
    is scoped to the acting user and created rows are forced onto that user.
    Rows with a ``deleted`` column are soft deleted and hidden from reads
    unless ``include_deleted`` is passed.
    """

    def __init__(self, model: type[ModelT], *, user_locked: bool = True) -> None:
        self.model = model
        self.user_locked = user_locked
        self._columns = {column.key for column in model.__table__.columns}

    @property
    def resource(self) -> str:
        return self.model.__tablename__

    def read(
        self,
        db: Session,
        user_id: int | None,
        attributes: Mapping[str, Any] | None = None,
        *,
        include_deleted: bool = False,
        populate_existing: bool = False,
    ) -> list[ModelT]:
        statement = self._select(user_id, attributes or {}, include_deleted=include_deleted)
        statement = statement.order_by(self.model.id.asc())
        if populate_existing:
            statement = statement.execution_options(populate_existing=True)
        return list(db.scalars(statement))

    def read_id(
        self,
        db: Session,
        user_id: int | None,
        attributes: Mapping[str, Any] | None = None,
    ) -> dict[int, ModelT]:
        return {row.id: row for row in self.read(db, user_id, attributes)}

    def get(
        self,
        db: Session,
        user_id: int | None,
        attributes: Mapping[str, Any],
        *,
        include_deleted: bool = False,
        populate_existing: bool = False,
    ) -> ModelT | None:
        rows = self.read(
            db,
            user_id,
            attributes,
            include_deleted=include_deleted,
            populate_existing=populate_existing,
        )
        if len(rows) > 1:
            raise MultipleRowsError(f"Tried to get a single {self.resource} but found {len(rows)}")
        return rows[0] if rows else None

    def get_by_id(
        self,
        db: Session,
        user_id: int | None,
        row_id: int,
        *,
        include_deleted: bool = False,
    ) -> ModelT:
        row = db.get(self.model, row_id)
        if row is None or not self._visible(row, user_id, include_deleted=include_deleted):
            raise NotFoundError(f"{self.resource} {row_id} not found")
        return row

    def create(self, db: Session, user_id: int | None, attributes: Mapping[str, Any]) -> ModelT:
        values = self._writable(attributes)
        values.pop("id", None)
        if self.user_locked:
            values["user_id"] = user_id
        row = self.model(**values)
        db.add(row)
        db.flush()
        return row

    def update(self, db: Session, user_id: int | None, attributes: Mapping[str, Any]) -> ModelT:
        values = self._writable(attributes)
        row_id = values.pop("id", None)
        if row_id is None:
            raise NotFoundError(f"Cannot update {self.resource} without an id")
        values.pop("user_id", None)
        row = self.get_by_id(db, user_id, int(row_id), include_deleted=True)
        if apply_changes(row, values):
            db.flush()
        return row

    def delete(self, db: Session, user_id: int | None, row_id: int) -> ModelT:
        row = self.get_by_id(db, user_id, row_id)
        if "deleted" in self._columns:
            row.deleted = True
        else:
            db.delete(row)
        db.flush()
        return row

    def _select(
        self,
        user_id: int | None,
        attributes: Mapping[str, Any],
        *,
        include_deleted: bool,
    ) -> Select[tuple[ModelT]]:
        statement = select(self.model)
        if self.user_locked:
            statement = statement.where(self.model.user_id == user_id)
        if "deleted" in self._columns and not include_deleted and "deleted" not in attributes:
            statement = statement.where(self.model.deleted.is_(False))
        for name, value in attributes.items():
            if name not in self._columns:
                raise BeestatError(f"{self.resource} has no attribute {name}")
            statement = statement.where(_condition(getattr(self.model, name), value))
        return statement

    def _visible(self, row: ModelT, user_id: int | None, *, include_deleted: bool) -> bool:
        if self.user_locked and row.user_id != user_id:
            return False
        if not include_deleted and getattr(row, "deleted", False):
            return False
        return True

    def _writable(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(attributes) - self._columns)
        if unknown:
            raise BeestatError(f"{self.resource} has no attribute {', '.join(unknown)}")
        return dict(attributes)


def apply_changes(row: Any, values: Mapping[str, Any]) -> bool:
    """Assign only the attributes that differ; returns whether anything changed."""
    changed = False
    for name, value in values.items():
        if getattr(row, name) != value:
            setattr(row, name, value)
            changed = True
    return changed


def _condition(column: Any, value: Any) -> Any:
    if isinstance(value, (list, tuple, set)):
        return column.in_(list(value))
    if isinstance(value, dict) and "operator" in value:
        operator = value["operator"]
        operand = value.get("value")
        if operator not in _OPERATORS:
            raise BeestatError(f"Unsupported operator {operator}")
        if operator == "between":
            low, high = operand
            return column.between(low, high)
        if operator == "!=":
            return column != operand
        if operator == ">":
            return column > operand
        if operator == ">=":
            return column >= operand
        if operator == "<":
            return column < operand
        if operator == "<=":
            return column <= operand
        return column.is_(None) if operand is None else column == operand
    if value is None:
        return column.is_(None)
    return column == value
