"""Dialect-aware SQL helpers — dialect detection and grant upsert."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlmodel import select

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

UPSERT_DIALECTS = ("sqlite", "postgresql")


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the raw dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


async def upsert_row(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str],
    schema: str | None = None,
) -> None:
    """Insert *values* into *model*'s table or update *update_keys* on conflict.

    - SQLite/PostgreSQL: INSERT ... ON CONFLICT DO UPDATE against the
      unique constraint covering *conflict_keys*
    - Other dialects: select the conflicting row, then update or add it
    """
    if dialect in UPSERT_DIALECTS:
        await _upsert_on_conflict(
            session, dialect, model, values, conflict_keys, update_keys, schema
        )
        return

    conditions = [getattr(model, k) == values[k] for k in conflict_keys]
    result = await session.execute(select(model).where(*conditions))
    existing = result.scalar_one_or_none()
    if existing is None:
        session.add(model(**values))
    else:
        for key in update_keys:
            setattr(existing, key, values[key])
    await session.flush()


async def _upsert_on_conflict(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str],
    schema: str | None = None,
) -> None:
    from sqlalchemy.dialects import sqlite as sqlite_dialect

    dialect_module = sqlite_dialect
    if dialect == "postgresql":
        from sqlalchemy.dialects import postgresql as pg_dialect

        dialect_module = pg_dialect

    stmt = dialect_module.insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_keys,
        set_={k: v for k, v in values.items() if k in update_keys},
    )
    if schema:
        stmt = stmt.execution_options(schema_translate_map={None: schema})
    await session.execute(stmt)
