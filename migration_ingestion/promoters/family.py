"""
Family promoter: FamilyGroup -> Family row plus StudentFamily links.

Families are keyed by their literal family string.  An existing family is
reused as-is (never updated); missing member links are added either way.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from migration_kernel.models import Family, RelationshipType, StudentFamily
from migration_ingestion.domain.types import EntityKind
from migration_ingestion.synthesis.families import FamilyGroup


class FamilyPromoter:
    entity_type = EntityKind.FAMILY

    def find_existing(self, family_name: str, session: Session) -> Family | None:
        return session.scalars(select(Family).where(Family.family_name == family_name)).first()

    def create(self, group: FamilyGroup, session: Session, actor_id: UUID) -> UUID:
        contact = group.contact
        family = Family(
            family_name=group.key,
            primary_contact_name=contact.primary_contact_name,
            phone=contact.phone,
            email=contact.email,
            address=contact.address,
            is_active=True,
            created_by_id=actor_id,
        )
        session.add(family)
        session.flush()
        return family.id

    def link_members(self, family_id: UUID, group: FamilyGroup, session: Session, actor_id: UUID) -> int:
        """Add missing student links; return how many were added."""
        linked = set(session.scalars(
            select(StudentFamily.student_id).where(StudentFamily.family_id == family_id)
        ))
        added = 0
        for member in group.members:
            if member.student_id in linked:
                continue
            session.add(StudentFamily(
                student_id=member.student_id,
                family_id=family_id,
                relationship_type=RelationshipType.PARENT.value,
                created_by_id=actor_id,
            ))
            linked.add(member.student_id)
            added += 1
        session.flush()
        return added
