"""
Household grouping: students sharing a literal ``Family`` string form one
family.

Keys are compared with exact string equality, without case or whitespace
folding, so ``"Smith"`` and ``"smith "`` are two families.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable
from uuid import UUID

from migration_ingestion.domain.mapped import FamilyInfo, MappedStudent


@dataclass(frozen=True)
class FamilyMember:
    student_id: UUID
    legacy_id: str


@dataclass
class FamilyGroup:
    """One synthesized household and the students that belong to it."""

    key: str
    members: list[FamilyMember] = field(default_factory=list)
    sources: list[FamilyInfo] = field(default_factory=list)

    @property
    def contact(self) -> FamilyInfo:
        """
        Merged contact details.

        Contacts are ranked by role priority first and member order second,
        so an account person on any member outranks a mother on the first.
        """
        ranked = sorted(
            (
                (rank, position, contact)
                for position, info in enumerate(self.sources)
                for rank, contact in enumerate(info.contacts)
            ),
            key=lambda item: (item[0], item[1]),
        )
        address = next((info.address for info in self.sources if info.address), None)
        return FamilyInfo(
            family_name=self.key,
            contacts=tuple(contact for _, _, contact in ranked),
            address=address,
        )


def group_families(students: Iterable[tuple[UUID, MappedStudent]]) -> list[FamilyGroup]:
    """
    Group persisted students by their family string.

    Groups come back in order of first appearance; students without family
    details are ignored.
    """
    groups: dict[str, FamilyGroup] = {}
    for student_id, student in students:
        info = student.family
        if info is None:
            continue
        group = groups.get(info.family_name)
        if group is None:
            group = groups[info.family_name] = FamilyGroup(key=info.family_name)
        group.members.append(FamilyMember(student_id, student.legacy_id))
        group.sources.append(info)
    return list(groups.values())
