from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_tree.models.entities import Branch, Family, Member
from family_tree.models.roles import RoleEnum
from family_tree.services.access import require_creator
from family_tree.services.branches import branches_for


@dataclass
class MotherNode:
    mother: Member
    branch: Branch | None
    children: list[Member] = field(default_factory=list)


@dataclass
class TreeStatistics:
    total_members: int
    total_branches: int
    total_children: int
    linked_members: int


@dataclass
class TreeStructure:
    family: Family
    father: Member | None
    mothers: list[MotherNode]
    unassigned_children: list[Member]
    linked_members: list[Member]
    statistics: TreeStatistics


@dataclass
class AvailableMother:
    mother: Member
    branch: Branch | None
    children_count: int


def _family_members(db: Session, family_id: int) -> list[Member]:
    return list(
        db.execute(
            select(Member).where(Member.family_id == family_id).order_by(Member.position.asc(), Member.id.asc())
        ).scalars()
    )


def tree_structure(db: Session, family_id: int, principal_id: str) -> TreeStructure:
    """Group a family's members into father, mothers with their branch and children, and mirrors."""
    family = require_creator(db, family_id, principal_id)
    members = _family_members(db, family_id)
    branch_by_mother = {branch.mother_id: branch for branch in branches_for(db, family_id)}

    father = next((member for member in members if member.role_kind == RoleEnum.father), None)
    mothers = sorted(
        (member for member in members if member.role_kind == RoleEnum.mother),
        key=lambda member: member.spouse_order or 0,
    )
    children = [member for member in members if member.role_kind == RoleEnum.child]
    linked = [member for member in members if member.is_linked_member]

    nodes = []
    for mother in mothers:
        own = sorted(
            (child for child in children if child.mother_id == mother.id),
            key=lambda child: (child.birth_year, child.id),
        )
        nodes.append(MotherNode(mother=mother, branch=branch_by_mother.get(mother.id), children=own))

    return TreeStructure(
        family=family,
        father=father,
        mothers=nodes,
        unassigned_children=[child for child in children if child.mother_id is None],
        linked_members=linked,
        statistics=TreeStatistics(
            total_members=len(members),
            total_branches=len(branch_by_mother),
            total_children=len(children),
            linked_members=len(linked),
        ),
    )


def available_mothers(db: Session, family_id: int, principal_id: str) -> list[AvailableMother]:
    """Mothers a child can be assigned to, in spouse order."""
    tree = tree_structure(db, family_id, principal_id)
    return [
        AvailableMother(mother=node.mother, branch=node.branch, children_count=len(node.children))
        for node in tree.mothers
    ]
