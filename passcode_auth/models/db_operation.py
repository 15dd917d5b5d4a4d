from datetime import datetime, timezone

from sqlalchemy import delete, select

from passcode_auth.database import session_scope
from passcode_auth.models.schema.db_config import Databases


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _conditions(model, filters: dict) -> list:
    conditions = []
    for field, value in filters.items():
        if not hasattr(model, field):
            raise ValueError(f"{model.__name__} has no column '{field}'")
        column = getattr(model, field)
        # (operator, value) tuples express range conditions
        if isinstance(value, tuple):
            operator, condition_value = value
            if operator == ">":
                conditions.append(column > condition_value)
            elif operator == "<":
                conditions.append(column < condition_value)
            elif operator == "<=":
                conditions.append(column <= condition_value)
            elif operator == ">=":
                conditions.append(column >= condition_value)
            else:
                raise ValueError(f"Unsupported operator '{operator}'")
        else:
            conditions.append(column == value)
    return conditions


def _add_record(db: str, **kwargs):
    model = getattr(Databases, db)
    instance = model(**kwargs)
    with session_scope() as session:
        session.add(instance)
        session.flush()
    return instance


def _select_one_or_none(db: str, **filters):
    model = getattr(Databases, db)
    with session_scope() as session:
        return session.execute(
            select(model).where(*_conditions(model, filters))
        ).scalar_one_or_none()


def _delete_records(db: str, **filters) -> int:
    model = getattr(Databases, db)
    if not filters:
        raise ValueError("Refusing to delete without conditions")
    with session_scope() as session:
        result = session.execute(delete(model).where(*_conditions(model, filters)))
        return result.rowcount
