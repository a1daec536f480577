from __future__ import annotations

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from family_tree.core.errors import DuplicateMainFamily
from family_tree.core.uow import UnitOfWork, transactional
from family_tree.models.entities import CreationFlow, CreationTypeEnum, Family
from family_tree.models.roles import Child, Father
from family_tree.services.access import require_creator
from family_tree.services.members import MemberProfile, create_member, validate_profile

logger = structlog.get_logger()


def get_main_family(db: Session, principal_id: str) -> Family | None:
    return db.execute(
        select(Family).where(Family.creator_principal_id == principal_id, Family.is_main_family.is_(True))
    ).scalar_one_or_none()


def list_families_for(db: Session, principal_id: str) -> list[Family]:
    return list(
        db.execute(
            select(Family).where(Family.creator_principal_id == principal_id).order_by(Family.id.asc())
        ).scalars()
    )


def get_family(db: Session, family_id: int, principal_id: str) -> Family:
    return require_creator(db, family_id, principal_id)


@transactional
def create_family(
    uow: UnitOfWork,
    principal_id: str,
    name: str,
    creator: MemberProfile,
    *,
    creation_type: CreationTypeEnum = CreationTypeEnum.own_family,
    make_main: bool = True,
    description: str | None = None,
) -> Family:
    """
    Create a family, its creation flow and the creator's own member in one unit of work.

    For `own_family` the creator is the father of the new tree. For `parents_family` the
    creator is a child of the tree, unassigned until the parents exist.
    """
    db = uow.db
    validate_profile(creator)
    if make_main and get_main_family(db, principal_id) is not None:
        raise DuplicateMainFamily(principal_id=principal_id)

    family = Family(
        creator_principal_id=principal_id,
        name=name,
        description=description,
        creator_join_code="",
        is_main_family=make_main,
        creation_type=creation_type,
    )
    db.add(family)
    db.flush()

    role = Father() if creation_type == CreationTypeEnum.own_family else Child()
    creator_member = create_member(
        db,
        family.id,
        role,
        creator,
        is_family_creator=True,
        linked_principal_id=principal_id,
    )
    creator_member.is_verified = True
    family.creator_join_code = creator_member.join_code

    db.add(CreationFlow(family_id=family.id, principal_id=principal_id))
    db.flush()

    logger.info(
        "family_created",
        family_id=family.id,
        principal_id=principal_id,
        creation_type=creation_type.value,
        is_main_family=make_main,
    )
    return family


@transactional
def set_main_family(uow: UnitOfWork, family_id: int, principal_id: str) -> Family:
    db = uow.db
    family = require_creator(db, family_id, principal_id)
    if family.is_main_family:
        return family

    db.execute(
        update(Family)
        .where(
            Family.creator_principal_id == principal_id,
            Family.is_main_family.is_(True),
            Family.id != family.id,
        )
        .values(is_main_family=False)
        .execution_options(synchronize_session="fetch")
    )
    family.is_main_family = True
    logger.info("main_family_changed", family_id=family.id, principal_id=principal_id)
    return family


@transactional
def rename_family(
    uow: UnitOfWork,
    family_id: int,
    principal_id: str,
    name: str,
    description: str | None = None,
) -> Family:
    family = require_creator(uow.db, family_id, principal_id)
    family.name = name
    if description is not None:
        family.description = description
    return family
