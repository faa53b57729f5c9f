"""
CareNotes Backend - Care Organisation Service
==============================================

What:  Registry of children's homes that can receive placements.
How:   Occupancy is only changed through adjust_occupancy(), which
       PlacementService calls when placements start and end.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.exceptions import ValidationError
from carenotes.models.organisation import CareOrganisation
from carenotes.schemas.child import OrganisationCreate, OrganisationUpdate
from carenotes.services.base import fetch_or_404, flush

logger = logging.getLogger(__name__)


class OrganisationService:

    async def create_organisation(
        self,
        db: AsyncSession,
        data: OrganisationCreate,
        actor: str,
    ) -> CareOrganisation:
        organisation = CareOrganisation(**data.model_dump(), created_by=actor, updated_by=actor)
        db.add(organisation)
        await flush(db, "create organisation")
        logger.info("Care organisation created: %s (%s)", organisation.name, organisation.id)
        return organisation

    async def get_organisation(self, db: AsyncSession, organisation_id: UUID) -> CareOrganisation:
        return await fetch_or_404(db, CareOrganisation, organisation_id, "organisation")

    async def list_organisations(
        self,
        db: AsyncSession,
        active_only: bool = True,
    ) -> List[CareOrganisation]:
        query = select(CareOrganisation)
        if active_only:
            query = query.where(CareOrganisation.is_active.is_(True))
        result = await db.execute(query.order_by(CareOrganisation.name))
        return list(result.scalars().all())

    async def update_organisation(
        self,
        db: AsyncSession,
        organisation_id: UUID,
        data: OrganisationUpdate,
        actor: str,
    ) -> CareOrganisation:
        organisation = await self.get_organisation(db, organisation_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(organisation, field, value)
        if organisation.min_age > organisation.max_age:
            raise ValidationError("min_age cannot be greater than max_age", field="min_age")
        organisation.updated_by = actor
        await flush(db, "update organisation")
        return organisation

    def adjust_occupancy(self, organisation: CareOrganisation, delta: int) -> None:
        """Moves occupancy by delta, clamped to [0, registered_capacity]."""
        occupancy = organisation.current_occupancy + delta
        organisation.current_occupancy = min(max(occupancy, 0), organisation.registered_capacity)


organisation_service = OrganisationService()
