# school_portal/tenancy/scoped.py - Tenant-scoped query and mutation helpers
"""
Every statement built here carries ``school_id = :tenant``.

The helpers trust the tenant id they are given; routers must pass the value
produced by ``require_school``, never one read from the request body.
"""
from typing import Any, Dict, Type, Union
import logging

from sqlalchemy import Select, select, update, delete
from sqlalchemy.orm import Session

from school_portal.models.base import Base

logger = logging.getLogger(__name__)

TableRef = Union[str, Type[Base]]


class TenantScopeError(Exception):
    """Raised when a table cannot be scoped to a tenant"""
    pass


def _resolve_model(table: TableRef) -> Type[Base]:
    if isinstance(table, str):
        for mapper in Base.registry.mappers:
            if mapper.local_table is not None and mapper.local_table.name == table:
                model = mapper.class_
                break
        else:
            raise TenantScopeError(f"Unknown table: {table}")
    else:
        model = table

    if "school_id" not in model.__table__.columns:
        raise TenantScopeError(f"Table {model.__tablename__} has no school_id column")
    return model


def select_by_tenant(table: TableRef, school_id: Any) -> Select:
    """SELECT * FROM table WHERE school_id = :school_id; callers may chain further filters."""
    model = _resolve_model(table)
    return select(model).where(model.school_id == school_id)


def get_by_tenant(db: Session, table: TableRef, id_value: Any, school_id: Any, id_col: str = "id"):
    """Fetch one row of the tenant by id; rows of other tenants come back as None."""
    model = _resolve_model(table)
    return db.execute(
        select(model).where(getattr(model, id_col) == id_value, model.school_id == school_id)
    ).scalar_one_or_none()


def insert_with_tenant(db: Session, table: TableRef, payload: Dict[str, Any], school_id: Any):
    """
    Insert a row owned by ``school_id``.

    A ``school_id`` present in the payload is overwritten.

    Returns:
        The new, flushed instance (the caller commits)
    """
    model = _resolve_model(table)
    values = dict(payload)
    values["school_id"] = school_id
    row = model(**values)
    db.add(row)
    db.flush()
    return row


def update_by_tenant(db: Session, table: TableRef, id_col: str, id_value: Any,
                     school_id: Any, patch: Dict[str, Any]) -> int:
    """
    Patch the row(s) matching ``id_col = id_value`` inside the tenant.

    Returns:
        Number of affected rows; 0 means missing or owned by another tenant
    """
    model = _resolve_model(table)
    if "school_id" in patch:
        raise TenantScopeError("school_id cannot be patched")
    if not patch:
        return 0

    result = db.execute(
        update(model)
        .where(getattr(model, id_col) == id_value, model.school_id == school_id)
        .values(**patch)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


def delete_by_tenant(db: Session, table: TableRef, id_col: str, id_value: Any, school_id: Any) -> int:
    """Delete the row(s) matching ``id_col = id_value`` inside the tenant and return the count."""
    model = _resolve_model(table)
    result = db.execute(
        delete(model)
        .where(getattr(model, id_col) == id_value, model.school_id == school_id)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


__all__ = [
    "TenantScopeError", "select_by_tenant", "get_by_tenant", "insert_with_tenant",
    "update_by_tenant", "delete_by_tenant",
]
