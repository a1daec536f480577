from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_tree.core.errors import BranchNotFound, FamilyNotFound, MemberNotFound, NotAuthorized
from family_tree.models.entities import Branch, Family, Member


def require_family(db: Session, family_id: int) -> Family:
    family = db.get(Family, family_id)
    if family is None:
        raise FamilyNotFound(family_id=family_id)
    return family


def is_creator(db: Session, family_id: int, principal_id: str) -> bool:
    family = db.get(Family, family_id)
    return family is not None and family.is_creator(principal_id)


def require_creator(db: Session, family_id: int, principal_id: str) -> Family:
    family = require_family(db, family_id)
    if not family.is_creator(principal_id):
        raise NotAuthorized(family_id=family_id)
    return family


def require_member(db: Session, family_id: int, member_id: int) -> Member:
    member = db.get(Member, member_id)
    if member is None or member.family_id != family_id:
        raise MemberNotFound(member_id=member_id)
    return member


def require_branch(db: Session, family_id: int, branch_id: int) -> Branch:
    branch = db.get(Branch, branch_id)
    if branch is None or branch.family_id != family_id:
        raise BranchNotFound(branch_id=branch_id)
    return branch


def get_creator_member(db: Session, family_id: int) -> Member | None:
    return db.execute(
        select(Member).where(Member.family_id == family_id, Member.is_family_creator.is_(True))
    ).scalar_one_or_none()
