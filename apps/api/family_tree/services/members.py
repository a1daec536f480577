from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from family_tree.core.errors import (
    AgeOrderingViolation,
    AlreadyConsumed,
    BranchNotFound,
    DuplicateFather,
    InvalidMemberFields,
    InvalidSpouseOrder,
    JoinCodeAlreadyUsed,
    MemberNotFound,
    MotherDeletionUnsupported,
    ProtectedMemberDeletion,
)
from family_tree.core.uow import UnitOfWork, transactional
from family_tree.models.entities import Family, Member
from family_tree.models.roles import Child, Father, MemberRole, Mother, RoleEnum
from family_tree.services import notifications
from family_tree.services.access import require_creator, require_member
from family_tree.services.branches import branch_for_mother, create_branch_for_mother, free_branch_order
from family_tree.services.join_codes import issue_join_code

logger = structlog.get_logger()

YEAR_PATTERN = re.compile(r"^\d{4}$")


@dataclass
class MemberProfile:
    """Display fields of a member; everything that is copied onto a mirror."""

    first_name: str
    last_name: str
    relationship: str
    birth_year: str
    is_deceased: bool = False
    death_year: str | None = None
    is_verified: bool = False
    avatar_url: str | None = None
    bio: str | None = None
    contact_info: dict[str, Any] = field(default_factory=dict)
    social_links: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, member: Member) -> MemberProfile:
        return cls(
            first_name=member.first_name,
            last_name=member.last_name,
            relationship=member.relationship_label,
            birth_year=member.birth_year,
            is_deceased=member.is_deceased,
            death_year=member.death_year,
            is_verified=member.is_verified,
            avatar_url=member.avatar_url,
            bio=member.bio,
            contact_info=dict(member.contact_info or {}),
            social_links=dict(member.social_links or {}),
        )

    def apply_to(self, member: Member) -> None:
        member.first_name = self.first_name
        member.last_name = self.last_name
        member.relationship_label = self.relationship
        member.birth_year = self.birth_year
        member.is_deceased = self.is_deceased
        member.death_year = self.death_year
        member.is_verified = self.is_verified
        member.avatar_url = self.avatar_url
        member.bio = self.bio
        member.contact_info = dict(self.contact_info or {})
        member.social_links = dict(self.social_links or {})


PROFILE_FIELDS = frozenset(item.name for item in fields(MemberProfile))


def validate_profile(profile: MemberProfile) -> None:
    missing = [
        name
        for name in ("first_name", "last_name", "relationship", "birth_year")
        if not (getattr(profile, name) or "").strip()
    ]
    if missing:
        raise InvalidMemberFields(f"{', '.join(missing)} required", fields=missing)
    if not YEAR_PATTERN.match(profile.birth_year):
        raise InvalidMemberFields("birth year must be a 4-digit year", birth_year=profile.birth_year)
    if profile.is_deceased:
        if not profile.death_year:
            raise InvalidMemberFields("death year is required when member is deceased")
        if not YEAR_PATTERN.match(profile.death_year):
            raise InvalidMemberFields("death year must be a 4-digit year", death_year=profile.death_year)
        if int(profile.death_year) < int(profile.birth_year):
            raise InvalidMemberFields(
                "death year cannot precede birth year",
                birth_year=profile.birth_year,
                death_year=profile.death_year,
            )
    elif profile.death_year:
        raise InvalidMemberFields("death year should not be provided for living members")


def next_position(db: Session, family_id: int) -> int:
    current = db.execute(select(func.max(Member.position)).where(Member.family_id == family_id)).scalar()
    return (current or 0) + 1


def find_father(db: Session, family_id: int) -> Member | None:
    return db.execute(
        select(Member).where(Member.family_id == family_id, Member.role_kind == RoleEnum.father)
    ).scalar_one_or_none()


def list_mothers(db: Session, family_id: int) -> list[Member]:
    return list(
        db.execute(
            select(Member)
            .where(Member.family_id == family_id, Member.role_kind == RoleEnum.mother)
            .order_by(Member.spouse_order.asc())
        ).scalars()
    )


def children_of(db: Session, mother_id: int) -> list[Member]:
    return list(
        db.execute(
            select(Member).where(Member.mother_id == mother_id).order_by(Member.birth_year.asc(), Member.id.asc())
        ).scalars()
    )


def create_member(
    db: Session,
    family_id: int,
    role: MemberRole | None,
    profile: MemberProfile,
    *,
    is_family_creator: bool = False,
    linked_principal_id: str | None = None,
    reserved_codes: set[str] | None = None,
    mirror_of: Member | None = None,
) -> Member:
    """
    Insert one member with a fresh join code; runs inside the caller's unit of work.

    With `mirror_of` the new member is a role-less, display-only copy pointing back at
    its original.
    """
    member = Member(
        family_id=family_id,
        role=role,
        is_family_creator=is_family_creator,
        linked_principal_id=linked_principal_id,
        is_linked_member=mirror_of is not None,
        original_member_id=mirror_of.id if mirror_of is not None else None,
        original_family_id=mirror_of.family_id if mirror_of is not None else None,
        position=next_position(db, family_id),
        join_code=issue_join_code(db, reserved=reserved_codes),
        join_code_consumed=False,
    )
    profile.apply_to(member)
    db.add(member)
    db.flush()
    return member


def resolve_child_role(db: Session, family_id: int, mother_id: int | None, birth_year: str) -> Child:
    """Bind a child to its mother's branch, enforcing that the child is born after her."""
    if mother_id is None:
        return Child()

    mother = db.get(Member, mother_id)
    if mother is None or mother.family_id != family_id or mother.role_kind != RoleEnum.mother:
        raise MemberNotFound("mother not found or not valid for this family", member_id=mother_id)
    if int(birth_year) <= int(mother.birth_year):
        raise AgeOrderingViolation(
            "child must be born after mother",
            child_birth_year=birth_year,
            mother_birth_year=mother.birth_year,
        )
    branch = branch_for_mother(db, mother.id)
    if branch is None:
        raise BranchNotFound("mother has no branch", member_id=mother.id)
    return Child(mother_id=mother.id, branch_id=branch.id)


def _check_mother_birth_year(db: Session, mother: Member, birth_year: str) -> None:
    for child in children_of(db, mother.id):
        if int(child.birth_year) <= int(birth_year):
            raise AgeOrderingViolation(
                "mother must be born before all of her children",
                mother_birth_year=birth_year,
                child_id=child.id,
                child_birth_year=child.birth_year,
            )


def _check_father_birth_year(db: Session, family_id: int, birth_year: str) -> None:
    for mother in list_mothers(db, family_id):
        if int(mother.birth_year) <= int(birth_year):
            raise AgeOrderingViolation(
                "father must be older than all mothers",
                father_birth_year=birth_year,
                mother_id=mother.id,
                mother_birth_year=mother.birth_year,
            )


def _notify_creator(uow: UnitOfWork, family: Family, event_kind: str, member: Member, actor: str) -> None:
    uow.after_commit(
        notifications.notify,
        family.creator_principal_id,
        event_kind,
        {"family_id": family.id, "member_id": member.id, "member_name": member.full_name, "actor": actor},
    )


@transactional
def add_member(
    uow: UnitOfWork,
    family_id: int,
    principal_id: str,
    role_kind: RoleEnum,
    profile: MemberProfile,
    *,
    spouse_order: int | None = None,
    mother_id: int | None = None,
) -> Member:
    db = uow.db
    family = require_creator(db, family_id, principal_id)
    validate_profile(profile)

    if role_kind != RoleEnum.mother and spouse_order is not None:
        raise InvalidMemberFields("spouse order only applies to mothers")
    if role_kind != RoleEnum.child and mother_id is not None:
        raise InvalidMemberFields("mother only applies to children")

    if role_kind == RoleEnum.father:
        if find_father(db, family_id) is not None:
            raise DuplicateFather(family_id=family_id)
        member = create_member(db, family_id, Father(), profile)
    elif role_kind == RoleEnum.mother:
        expected = len(list_mothers(db, family_id)) + 1
        if spouse_order is not None and spouse_order != expected:
            raise InvalidSpouseOrder(expected=expected, spouse_order=spouse_order)
        member = create_member(db, family_id, Mother(spouse_order=expected), profile)
        create_branch_for_mother(
            db, family_id, member.id, expected, branch_order=free_branch_order(db, family_id, expected)
        )
    else:
        role = resolve_child_role(db, family_id, mother_id, profile.birth_year)
        member = create_member(db, family_id, role, profile)

    _notify_creator(uow, family, notifications.MEMBER_ADDED, member, principal_id)
    logger.info("member_added", family_id=family_id, member_id=member.id, role=role_kind.value)
    return member


@transactional
def update_member(
    uow: UnitOfWork,
    family_id: int,
    principal_id: str,
    member_id: int,
    changes: dict[str, Any],
) -> Member:
    """
    Apply a partial update.

    `changes` holds profile fields plus, for children, `mother_id` (None unassigns the
    child). Turning `is_deceased` off clears the death year.
    """
    db = uow.db
    family = require_creator(db, family_id, principal_id)
    member = require_member(db, family_id, member_id)

    unknown = set(changes) - PROFILE_FIELDS - {"mother_id"}
    if unknown:
        raise InvalidMemberFields("unknown member fields", fields=sorted(unknown))

    profile_changes = {key: value for key, value in changes.items() if key in PROFILE_FIELDS}
    if profile_changes.get("is_deceased") is False:
        profile_changes["death_year"] = None
    profile = replace(MemberProfile.of(member), **profile_changes)
    validate_profile(profile)

    role = member.role
    if "mother_id" in changes:
        if not isinstance(role, Child):
            raise InvalidMemberFields("only children can be assigned to a mother", member_id=member_id)
        role = resolve_child_role(db, family_id, changes["mother_id"], profile.birth_year)
    elif isinstance(role, Child) and role.mother_id is not None and profile.birth_year != member.birth_year:
        role = resolve_child_role(db, family_id, role.mother_id, profile.birth_year)
    elif isinstance(role, Mother) and profile.birth_year != member.birth_year:
        _check_mother_birth_year(db, member, profile.birth_year)
    elif isinstance(role, Father) and profile.birth_year != member.birth_year:
        _check_father_birth_year(db, family_id, profile.birth_year)

    profile.apply_to(member)
    member.role = role

    _notify_creator(uow, family, notifications.MEMBER_UPDATED, member, principal_id)
    logger.info("member_updated", family_id=family_id, member_id=member.id, fields=sorted(changes))
    return member


def _clear_weak_references(db: Session, member_id: int) -> None:
    db.execute(
        update(Member).where(Member.mirrored_as_member_id == member_id).values(mirrored_as_member_id=None)
    )
    db.execute(update(Member).where(Member.original_member_id == member_id).values(original_member_id=None))


@transactional
def delete_member(uow: UnitOfWork, family_id: int, principal_id: str, member_id: int) -> None:
    db = uow.db
    require_creator(db, family_id, principal_id)
    member = require_member(db, family_id, member_id)

    if member.is_family_creator:
        raise ProtectedMemberDeletion(member_id=member_id)
    if member.role_kind == RoleEnum.mother and branch_for_mother(db, member.id) is not None:
        raise MotherDeletionUnsupported(member_id=member_id)

    _clear_weak_references(db, member.id)
    db.delete(member)
    logger.info("member_deleted", family_id=family_id, member_id=member_id)


def mark_join_code_consumed(db: Session, member_id: int) -> None:
    """
    Flip `join_code_consumed` false -> true as a compare-and-set.

    Runs inside the caller's unit of work; the conditional UPDATE means two concurrent
    callers cannot both succeed.
    """
    member = db.get(Member, member_id)
    if member is None:
        raise MemberNotFound(member_id=member_id)

    table = Member.__table__
    result = db.execute(
        update(table)
        .where(table.c.id == member_id, table.c.join_code_consumed.is_(False))
        .values(join_code_consumed=True)
    )
    db.expire(member, ["join_code_consumed"])
    if result.rowcount != 1:
        raise AlreadyConsumed(member_id=member_id)


@transactional
def regenerate_join_code(uow: UnitOfWork, family_id: int, principal_id: str, member_id: int) -> Member:
    db = uow.db
    family = require_creator(db, family_id, principal_id)
    member = require_member(db, family_id, member_id)

    member.join_code = issue_join_code(db)
    member.join_code_consumed = False
    if member.is_family_creator:
        family.creator_join_code = member.join_code
    logger.info("join_code_regenerated", family_id=family_id, member_id=member.id)
    return member


def get_member_join_code(db: Session, family_id: int, principal_id: str, member_id: int) -> Member:
    require_creator(db, family_id, principal_id)
    member = require_member(db, family_id, member_id)
    if member.join_code_consumed:
        raise JoinCodeAlreadyUsed("this join code has already been used for linking", member_id=member_id)
    return member


def list_members(db: Session, family_id: int, principal_id: str) -> list[Member]:
    require_creator(db, family_id, principal_id)
    return list(
        db.execute(
            select(Member).where(Member.family_id == family_id).order_by(Member.position.asc(), Member.id.asc())
        ).scalars()
    )


def get_member(db: Session, family_id: int, principal_id: str, member_id: int) -> Member:
    require_creator(db, family_id, principal_id)
    return require_member(db, family_id, member_id)
