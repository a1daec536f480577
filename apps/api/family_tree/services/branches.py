from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from family_tree.core.errors import DuplicateBranchOrder, InvalidMemberFields, MemberNotFound, ValidationError
from family_tree.core.uow import UnitOfWork, transactional
from family_tree.models.entities import Branch, Member
from family_tree.models.roles import RoleEnum
from family_tree.services.access import require_branch, require_creator

logger = structlog.get_logger()


def ordinal_suffix(number: int) -> str:
    if number % 10 == 1 and number % 100 != 11:
        return "st"
    if number % 10 == 2 and number % 100 != 12:
        return "nd"
    if number % 10 == 3 and number % 100 != 13:
        return "rd"
    return "th"


def branch_name_for(order: int) -> str:
    if order == 1:
        return "First Wife's Branch"
    return f"{order}{ordinal_suffix(order)} Wife's Branch"


def branches_for(db: Session, family_id: int) -> list[Branch]:
    return list(
        db.execute(
            select(Branch).where(Branch.family_id == family_id).order_by(Branch.branch_order.asc())
        ).scalars()
    )


def branch_for_mother(db: Session, mother_id: int) -> Branch | None:
    return db.execute(select(Branch).where(Branch.mother_id == mother_id)).scalar_one_or_none()


def next_branch_order(db: Session, family_id: int) -> int:
    current = db.execute(select(func.max(Branch.branch_order)).where(Branch.family_id == family_id)).scalar()
    return (current or 0) + 1


def _order_taken(db: Session, family_id: int, order: int, *, exclude_branch_id: int | None = None) -> bool:
    query = select(Branch.id).where(Branch.family_id == family_id, Branch.branch_order == order)
    if exclude_branch_id is not None:
        query = query.where(Branch.id != exclude_branch_id)
    return db.execute(query.limit(1)).first() is not None


def free_branch_order(db: Session, family_id: int, preferred: int) -> int:
    """`preferred` unless a reordered branch already holds it, else the next order after the last one."""
    if _order_taken(db, family_id, preferred):
        return next_branch_order(db, family_id)
    return preferred


def create_branch_for_mother(
    db: Session,
    family_id: int,
    mother_id: int,
    spouse_order: int,
    *,
    branch_order: int | None = None,
) -> Branch:
    """
    Create the branch owned by `mother_id`; runs inside the caller's unit of work.

    The name follows the spouse order. `branch_order` defaults to the spouse order.
    """
    order = spouse_order if branch_order is None else branch_order
    mother = db.get(Member, mother_id)
    if mother is None or mother.family_id != family_id or mother.role_kind != RoleEnum.mother:
        raise MemberNotFound("mother not found or not valid for this family", member_id=mother_id)
    if order < 1:
        raise InvalidMemberFields("branch order must be at least 1", branch_order=order)
    if _order_taken(db, family_id, order):
        raise DuplicateBranchOrder(family_id=family_id, branch_order=order)

    branch = Branch(
        family_id=family_id,
        mother_id=mother_id,
        branch_order=order,
        branch_name=branch_name_for(spouse_order),
    )
    db.add(branch)
    db.flush()
    return branch


@transactional
def move_branch(uow: UnitOfWork, family_id: int, principal_id: str, branch_id: int, branch_order: int) -> Branch:
    db = uow.db
    require_creator(db, family_id, principal_id)
    branch = require_branch(db, family_id, branch_id)
    if branch_order < 1:
        raise ValidationError("branch order must be at least 1", branch_order=branch_order)
    if branch.branch_order == branch_order:
        return branch
    if _order_taken(db, family_id, branch_order, exclude_branch_id=branch.id):
        raise DuplicateBranchOrder(family_id=family_id, branch_order=branch_order)

    branch.branch_order = branch_order
    logger.info("branch_moved", family_id=family_id, branch_id=branch.id, branch_order=branch_order)
    return branch
