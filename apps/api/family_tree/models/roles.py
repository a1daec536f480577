"""
Member roles as a tagged variant.

A member is exactly one of Father, Mother or Child. Payloads that only make sense for
one role (spouse order, mother/branch binding) live on that role and nowhere else;
`entities.Member` maps the variant onto its columns and the table's CHECK constraints
reject any other combination.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RoleEnum(str, Enum):
    father = "father"
    mother = "mother"
    child = "child"


@dataclass(frozen=True)
class Father:
    kind = RoleEnum.father


@dataclass(frozen=True)
class Mother:
    spouse_order: int

    kind = RoleEnum.mother

    def __post_init__(self) -> None:
        if self.spouse_order < 1:
            raise ValueError("spouse_order must be a positive integer")


@dataclass(frozen=True)
class Child:
    mother_id: int | None = None
    branch_id: int | None = None

    kind = RoleEnum.child


MemberRole = Father | Mother | Child

ROOT_ROLES = (RoleEnum.father, RoleEnum.mother)


def is_root(role: MemberRole | None) -> bool:
    return role is not None and role.kind in ROOT_ROLES
