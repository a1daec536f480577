"""
Guided family setup: parents, then children, with branches per mother.

The flow stores only the three completion flags. `current_step` is a pure function of
how many flags are set, so the state can only move forward and never disagrees with
the flags it is derived from.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from family_tree.core.errors import (
    AgeOrderingViolation,
    DuplicateFather,
    FamilyNotFound,
    InvalidMemberFields,
    InvalidSpouseOrder,
    ParentsAlreadySetUp,
)
from family_tree.core.uow import UnitOfWork, transactional
from family_tree.models.entities import Branch, CreationFlow, Member
from family_tree.models.roles import Father, Mother
from family_tree.services import notifications
from family_tree.services.access import require_creator
from family_tree.services.branches import create_branch_for_mother
from family_tree.services.members import MemberProfile, create_member, find_father, list_mothers, validate_profile

logger = structlog.get_logger()


class SetupStep(str, Enum):
    parents_setup = "parents_setup"
    children_setup = "children_setup"
    branches_created = "branches_created"


@dataclass
class MotherInput:
    profile: MemberProfile
    spouse_order: int


@dataclass
class ParentsSetupResult:
    flow: CreationFlow
    father: Member
    mothers: list[Member]
    branches: list[Branch]


def get_flow(db: Session, family_id: int) -> CreationFlow:
    flow = db.execute(select(CreationFlow).where(CreationFlow.family_id == family_id)).scalar_one_or_none()
    if flow is None:
        raise FamilyNotFound("creation flow not found", family_id=family_id)
    return flow


def get_creation_flow(db: Session, family_id: int, principal_id: str) -> CreationFlow:
    require_creator(db, family_id, principal_id)
    return get_flow(db, family_id)


def _mark(flow: CreationFlow, step: SetupStep) -> bool:
    if getattr(flow, step.value):
        return False
    setattr(flow, step.value, True)
    return True


@transactional
def mark_step_complete(uow: UnitOfWork, family_id: int, principal_id: str, step: SetupStep) -> CreationFlow:
    require_creator(uow.db, family_id, principal_id)
    flow = get_flow(uow.db, family_id)
    if _mark(flow, step):
        logger.info("creation_step_completed", family_id=family_id, step=step.value)
    return flow


def validate_spouse_orders(orders: list[int]) -> None:
    if sorted(orders) != list(range(1, len(orders) + 1)):
        raise InvalidSpouseOrder(spouse_orders=orders)


@transactional
def setup_parents(
    uow: UnitOfWork,
    family_id: int,
    principal_id: str,
    father: MemberProfile | None,
    mothers: list[MotherInput],
) -> ParentsSetupResult:
    """
    Create the father, every mother and each mother's branch, then flag parents as set up.

    An `own_family` tree already has its creator as father; `father` must then be
    omitted. Everything is created in one unit of work, so a rejected mother leaves no
    father behind.
    """
    db = uow.db
    family = require_creator(db, family_id, principal_id)
    flow = get_flow(db, family_id)
    if flow.parents_setup or list_mothers(db, family_id):
        raise ParentsAlreadySetUp(family_id=family_id)
    if not mothers:
        raise InvalidMemberFields("at least one mother is required")

    existing_father = find_father(db, family_id)
    if existing_father is not None and father is not None:
        raise DuplicateFather(family_id=family_id)
    if existing_father is None and father is None:
        raise InvalidMemberFields("father is required")

    if father is not None:
        validate_profile(father)
    for mother in mothers:
        validate_profile(mother.profile)
    validate_spouse_orders([mother.spouse_order for mother in mothers])

    father_birth_year = int(father.birth_year if father is not None else existing_father.birth_year)
    younger = [mother.profile.birth_year for mother in mothers if int(mother.profile.birth_year) <= father_birth_year]
    if younger:
        raise AgeOrderingViolation(
            "father must be older than all mothers",
            father_birth_year=str(father_birth_year),
            mother_birth_years=younger,
        )

    father_member = existing_father or create_member(db, family_id, Father(), father)
    father_member.is_verified = True

    created_mothers: list[Member] = []
    created_branches: list[Branch] = []
    for mother in sorted(mothers, key=lambda item: item.spouse_order):
        mother_member = create_member(db, family_id, Mother(spouse_order=mother.spouse_order), mother.profile)
        mother_member.is_verified = True
        created_mothers.append(mother_member)
        created_branches.append(create_branch_for_mother(db, family_id, mother_member.id, mother.spouse_order))

    _mark(flow, SetupStep.parents_setup)

    uow.after_commit(
        notifications.notify,
        family.creator_principal_id,
        notifications.PARENTS_SET_UP,
        {"family_id": family.id, "mothers": len(created_mothers), "actor": principal_id},
    )
    logger.info(
        "parents_set_up",
        family_id=family_id,
        father_id=father_member.id,
        mothers=len(created_mothers),
    )
    return ParentsSetupResult(flow=flow, father=father_member, mothers=created_mothers, branches=created_branches)
