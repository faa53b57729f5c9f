"""
CareNotes Backend - Child Service
==================================

What:  Create, read, list and update looked-after children.
Who:   Called by /api/children routes; get_child() is the shared
       "child must exist" check for placements, matching and finance.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.models.child import Child
from carenotes.schemas.child import ChildCreate, ChildUpdate
from carenotes.services.base import fetch_or_404, flush

logger = logging.getLogger(__name__)


class ChildService:

    async def create_child(self, db: AsyncSession, data: ChildCreate, actor: str) -> Child:
        child = Child(**data.model_dump(), created_by=actor, updated_by=actor)
        db.add(child)
        await flush(db, "create child")
        logger.info("Child created: %s", child.id)
        return child

    async def get_child(self, db: AsyncSession, child_id: UUID) -> Child:
        return await fetch_or_404(db, Child, child_id, "child")

    async def list_children(
        self,
        db: AsyncSession,
        active_only: bool = True,
        local_authority: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Child]:
        query = select(Child)
        if active_only:
            query = query.where(Child.is_active.is_(True))
        if local_authority:
            query = query.where(Child.local_authority == local_authority)
        query = query.order_by(Child.last_name, Child.first_name).limit(limit).offset(offset)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def update_child(
        self,
        db: AsyncSession,
        child_id: UUID,
        data: ChildUpdate,
        actor: str,
    ) -> Child:
        child = await self.get_child(db, child_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(child, field, value)
        child.updated_by = actor
        await flush(db, "update child")
        logger.info("Child %s updated by %s", child_id, actor)
        return child


child_service = ChildService()
