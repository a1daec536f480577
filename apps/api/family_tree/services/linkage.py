"""
Family linkage: merging two independently created trees through a join code.

A join code is a single-use capability. Presenting a root member's code links the
caller's main family with the code owner's family and mirrors each side's members
into the other. Mirrors are display-only copies; they hold weak references back to
their originals and are never resynchronized afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from family_tree.core.errors import (
    AlreadyConsumed,
    AlreadyLinked,
    InvalidJoinCode,
    JoinCodeAlreadyUsed,
    JoinCodeNotEligible,
    LinkNotFound,
    NoMainFamily,
    NotAuthorized,
    SelfLinkForbidden,
)
from family_tree.core.uow import UnitOfWork, transactional
from family_tree.models.entities import Family, LinkedFamilyRelation, LinkStatusEnum, Member, MemberMirror
from family_tree.services import notifications
from family_tree.services.access import get_creator_member, require_creator, require_family
from family_tree.services.families import get_main_family
from family_tree.services.join_codes import is_well_formed
from family_tree.services.members import MemberProfile, create_member, mark_join_code_consumed

logger = structlog.get_logger()


@dataclass
class JoinCodeStatus:
    is_valid: bool
    member_name: str | None = None
    family_name: str | None = None
    is_family_creator: bool = False
    eligible_for_link: bool = False
    reason: str | None = None


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def find_by_join_code(db: Session, code: str, *, for_update: bool = False) -> Member | None:
    code = normalize_code(code)
    if not is_well_formed(code):
        return None
    query = select(Member).where(Member.join_code == code)
    if for_update:
        query = query.with_for_update()
    return db.execute(query).scalar_one_or_none()


def validate_join_code(db: Session, code: str) -> JoinCodeStatus:
    member = find_by_join_code(db, code)
    if member is None:
        return JoinCodeStatus(is_valid=False, reason="invalid join code")
    if member.join_code_consumed:
        return JoinCodeStatus(is_valid=False, reason="join code has already been used")

    family = db.get(Family, member.family_id)
    eligible = member.is_root_member and not member.is_linked_member
    return JoinCodeStatus(
        is_valid=True,
        member_name=member.full_name,
        family_name=family.name if family is not None else None,
        is_family_creator=member.is_family_creator,
        eligible_for_link=eligible,
        reason=None if eligible else "join code must belong to a father or mother",
    )


def active_relation(db: Session, family_id: int, other_family_id: int) -> LinkedFamilyRelation | None:
    low, high = sorted((family_id, other_family_id))
    return db.execute(
        select(LinkedFamilyRelation).where(
            LinkedFamilyRelation.pair_low_id == low,
            LinkedFamilyRelation.pair_high_id == high,
            LinkedFamilyRelation.status == LinkStatusEnum.active,
        )
    ).scalar_one_or_none()


def _originals(db: Session, family_id: int) -> list[Member]:
    return list(
        db.execute(
            select(Member)
            .where(Member.family_id == family_id, Member.is_linked_member.is_(False))
            .order_by(Member.position.asc(), Member.id.asc())
        ).scalars()
    )


def _mirrored_into(db: Session, family_id: int) -> set[int]:
    """Ids of originals that already have a mirror living in `family_id`."""
    return set(
        db.execute(
            select(Member.original_member_id).where(
                Member.family_id == family_id,
                Member.is_linked_member.is_(True),
                Member.original_member_id.is_not(None),
            )
        ).scalars()
    )


def _mirror(
    db: Session,
    relation: LinkedFamilyRelation,
    original: Member,
    into_family_id: int,
    reserved: set[str],
) -> Member:
    mirror = create_member(
        db,
        into_family_id,
        None,
        MemberProfile.of(original),
        reserved_codes=reserved,
        mirror_of=original,
    )
    original.mirrored_as_member_id = mirror.id
    db.add(MemberMirror(relation_id=relation.id, original_member_id=original.id, mirror_member_id=mirror.id))
    return mirror


@transactional
def link_families(uow: UnitOfWork, join_code: str, principal_id: str) -> LinkedFamilyRelation:
    """
    Link the caller's main family with the family owning `join_code`.

    Preconditions are checked in a fixed order so the reported failure is stable. The
    anchor row is locked and its code consumed with a compare-and-set before anything
    else is written; a caller that loses that race sees `JoinCodeAlreadyUsed`.
    """
    db = uow.db
    code = normalize_code(join_code)

    anchor = find_by_join_code(db, code, for_update=True)
    if anchor is None:
        raise InvalidJoinCode(join_code=code)
    if anchor.join_code_consumed:
        raise JoinCodeAlreadyUsed(join_code=code)
    if not anchor.is_root_member or anchor.is_linked_member:
        raise JoinCodeNotEligible(join_code=code)

    caller_family = get_main_family(db, principal_id)
    if caller_family is None:
        raise NoMainFamily(principal_id=principal_id)
    target_family = require_family(db, anchor.family_id)
    if caller_family.id == target_family.id:
        raise SelfLinkForbidden(family_id=caller_family.id)
    if active_relation(db, caller_family.id, target_family.id) is not None:
        raise AlreadyLinked(family_id=caller_family.id, other_family_id=target_family.id)

    try:
        mark_join_code_consumed(db, anchor.id)
    except AlreadyConsumed as exc:
        raise JoinCodeAlreadyUsed(join_code=code) from exc

    low, high = sorted((caller_family.id, target_family.id))
    relation = LinkedFamilyRelation(
        family_a_id=caller_family.id,
        family_b_id=target_family.id,
        pair_low_id=low,
        pair_high_id=high,
        established_by_principal_id=principal_id,
        status=LinkStatusEnum.active,
    )
    db.add(relation)
    db.flush()

    # Originals mirrored by an earlier, since deactivated, link keep their existing mirror.
    caller_creator = get_creator_member(db, caller_family.id)
    skip_in_target = _mirrored_into(db, target_family.id)
    skip_in_caller = _mirrored_into(db, caller_family.id)
    if caller_creator is not None:
        skip_in_target.add(caller_creator.id)
    skip_in_caller.add(anchor.id)
    caller_members = [member for member in _originals(db, caller_family.id) if member.id not in skip_in_target]
    target_members = [member for member in _originals(db, target_family.id) if member.id not in skip_in_caller]

    reserved: set[str] = set()
    into_caller = [_mirror(db, relation, member, caller_family.id, reserved) for member in target_members]
    into_target = [_mirror(db, relation, member, target_family.id, reserved) for member in caller_members]

    for family, other in ((caller_family, target_family), (target_family, caller_family)):
        uow.after_commit(
            notifications.notify,
            family.creator_principal_id,
            notifications.FAMILY_LINKED,
            {
                "family_id": family.id,
                "linked_family_id": other.id,
                "linked_family_name": other.name,
                "relation_id": relation.id,
                "actor": principal_id,
            },
        )
    logger.info(
        "families_linked",
        relation_id=relation.id,
        family_id=caller_family.id,
        linked_family_id=target_family.id,
        anchor_member_id=anchor.id,
        mirrored_into_caller=len(into_caller),
        mirrored_into_target=len(into_target),
    )
    return relation


def mirror_counts(db: Session, relation_id: int) -> dict[int, int]:
    """Number of mirrors a link created, keyed by the family holding them."""
    rows = db.execute(
        select(Member.family_id, func.count(MemberMirror.id))
        .join(Member, Member.id == MemberMirror.mirror_member_id)
        .where(MemberMirror.relation_id == relation_id)
        .group_by(Member.family_id)
    ).all()
    return {family_id: count for family_id, count in rows}


def linked_families_for(
    db: Session,
    family_id: int,
    principal_id: str,
    *,
    include_inactive: bool = False,
) -> list[LinkedFamilyRelation]:
    require_creator(db, family_id, principal_id)
    query = select(LinkedFamilyRelation).where(
        or_(LinkedFamilyRelation.family_a_id == family_id, LinkedFamilyRelation.family_b_id == family_id)
    )
    if not include_inactive:
        query = query.where(LinkedFamilyRelation.status == LinkStatusEnum.active)
    return list(db.execute(query.order_by(LinkedFamilyRelation.established_at.asc(), LinkedFamilyRelation.id.asc())).scalars())


def get_link(db: Session, relation_id: int, principal_id: str) -> LinkedFamilyRelation:
    relation = db.get(LinkedFamilyRelation, relation_id)
    if relation is None:
        raise LinkNotFound(relation_id=relation_id)
    creators = db.execute(
        select(Family.id).where(
            and_(
                Family.id.in_((relation.family_a_id, relation.family_b_id)),
                Family.creator_principal_id == principal_id,
            )
        )
    ).first()
    if creators is None:
        raise NotAuthorized(relation_id=relation_id)
    return relation


@transactional
def deactivate_link(uow: UnitOfWork, relation_id: int, principal_id: str) -> LinkedFamilyRelation:
    """Mark a link inactive. Mirrors it produced stay in both families."""
    relation = get_link(uow.db, relation_id, principal_id)
    if relation.status == LinkStatusEnum.inactive:
        return relation
    relation.status = LinkStatusEnum.inactive
    logger.info("link_deactivated", relation_id=relation.id, principal_id=principal_id)
    return relation
