# -*- coding: utf-8 -*-
"""
attempt_engine/repository/base.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Generic insert helpers shared by the repositories and the test builders.

``add_item`` only flushes, so the caller's transaction decides the outcome
(an ``IntegrityError`` surfaces here, before commit). ``create_item`` is a
complete unit of work.
"""

from __future__ import annotations

from typing import Any, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from attempt_engine.domain.models import Base

ModelT = TypeVar("ModelT", bound=Base)


async def add_item(session: AsyncSession, model: Type[ModelT], **values: Any) -> ModelT:
    """Stage a new row and flush it to obtain its primary key."""
    item = model(**values)
    session.add(item)
    await session.flush()
    return item


async def create_item(
    session: AsyncSession, model: Type[ModelT], **values: Any
) -> ModelT:
    """Insert a row, commit, and return it reloaded."""
    item = await add_item(session, model, **values)
    await session.commit()
    await session.refresh(item)
    return item
