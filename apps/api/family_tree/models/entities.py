from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from family_tree.models.base import Base
from family_tree.models.roles import Child, Father, MemberRole, Mother, RoleEnum, is_root


class CreationTypeEnum(str, Enum):
    own_family = "own_family"
    parents_family = "parents_family"


class CreationStepEnum(str, Enum):
    initialized = "initialized"
    parent_setup = "parent_setup"
    children_setup = "children_setup"
    completed = "completed"


class LinkStatusEnum(str, Enum):
    active = "active"
    inactive = "inactive"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Family(Base):
    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    creator_principal_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    creator_join_code: Mapped[str] = mapped_column(String(20), nullable=False)
    is_main_family: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    creation_type: Mapped[CreationTypeEnum] = mapped_column(
        SqlEnum(CreationTypeEnum), nullable=False, default=CreationTypeEnum.own_family
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    creation_flow: Mapped["CreationFlow"] = relationship(back_populates="family", uselist=False)

    @property
    def current_step(self) -> CreationStepEnum:
        if self.creation_flow is None:
            return CreationStepEnum.initialized
        return self.creation_flow.current_step

    def is_creator(self, principal_id: str) -> bool:
        return self.creator_principal_id == principal_id


class Member(Base):
    __tablename__ = "family_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    linked_principal_id: Mapped[str | None] = mapped_column(String(255))

    # Tagged role: `role` selects which of the payload columns may be set.
    role_kind: Mapped[RoleEnum | None] = mapped_column("role", SqlEnum(RoleEnum))
    spouse_order: Mapped[int | None] = mapped_column(Integer)
    mother_id: Mapped[int | None] = mapped_column(ForeignKey("family_members.id"))
    branch_id: Mapped[int | None] = mapped_column(
        ForeignKey("family_branches.id", use_alter=True, name="fk_family_members_branch_id")
    )

    is_family_creator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    relationship_label: Mapped[str] = mapped_column("relationship", String(50), nullable=False)
    birth_year: Mapped[str] = mapped_column(String(4), nullable=False)
    is_deceased: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    death_year: Mapped[str | None] = mapped_column(String(4))
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500))
    bio: Mapped[str | None] = mapped_column(String(500))
    contact_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    social_links: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    join_code: Mapped[str] = mapped_column(String(20), nullable=False)
    join_code_consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Mirrors: weak, lookup-only references across families (no FK, no cascade).
    is_linked_member: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    original_member_id: Mapped[int | None] = mapped_column(Integer)
    original_family_id: Mapped[int | None] = mapped_column(Integer)
    mirrored_as_member_id: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("join_code", name="uq_members_join_code"),
        CheckConstraint(
            "(is_linked_member AND role IS NULL) OR (NOT is_linked_member AND role IS NOT NULL)",
            name="ck_members_role_presence",
        ),
        CheckConstraint(
            "(role = 'mother' AND spouse_order IS NOT NULL AND spouse_order >= 1) "
            "OR ((role IS NULL OR role <> 'mother') AND spouse_order IS NULL)",
            name="ck_members_spouse_order",
        ),
        CheckConstraint(
            "role = 'child' OR (mother_id IS NULL AND branch_id IS NULL)",
            name="ck_members_child_payload",
        ),
        CheckConstraint(
            "(is_deceased AND death_year IS NOT NULL) OR (NOT is_deceased AND death_year IS NULL)",
            name="ck_members_death_year",
        ),
    )

    @property
    def role(self) -> MemberRole | None:
        if self.role_kind is None:
            return None
        if self.role_kind == RoleEnum.father:
            return Father()
        if self.role_kind == RoleEnum.mother:
            return Mother(spouse_order=self.spouse_order)
        return Child(mother_id=self.mother_id, branch_id=self.branch_id)

    @role.setter
    def role(self, value: MemberRole | None) -> None:
        self.role_kind = value.kind if value is not None else None
        self.spouse_order = value.spouse_order if isinstance(value, Mother) else None
        self.mother_id = value.mother_id if isinstance(value, Child) else None
        self.branch_id = value.branch_id if isinstance(value, Child) else None

    @property
    def is_root_member(self) -> bool:
        return is_root(self.role)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Branch(Base):
    __tablename__ = "family_branches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    mother_id: Mapped[int] = mapped_column(ForeignKey("family_members.id"), nullable=False)
    branch_order: Mapped[int] = mapped_column(Integer, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("family_id", "branch_order", name="uq_family_branches_family_order"),
        UniqueConstraint("mother_id", name="uq_family_branches_mother"),
        CheckConstraint("branch_order >= 1", name="ck_family_branches_order_positive"),
    )


class LinkedFamilyRelation(Base):
    __tablename__ = "linked_families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_a_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    family_b_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    # Unordered pair, normalized so one index covers both directions.
    pair_low_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pair_high_id: Mapped[int] = mapped_column(Integer, nullable=False)
    established_by_principal_id: Mapped[str] = mapped_column(String(255), nullable=False)
    established_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    status: Mapped[LinkStatusEnum] = mapped_column(
        SqlEnum(LinkStatusEnum), nullable=False, default=LinkStatusEnum.active
    )

    __table_args__ = (
        CheckConstraint("family_a_id <> family_b_id", name="ck_linked_families_distinct"),
        Index(
            "uq_linked_families_active_pair",
            "pair_low_id",
            "pair_high_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def other_family_id(self, family_id: int) -> int:
        return self.family_b_id if self.family_a_id == family_id else self.family_a_id


class MemberMirror(Base):
    __tablename__ = "member_mirrors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    relation_id: Mapped[int] = mapped_column(ForeignKey("linked_families.id"), nullable=False)
    original_member_id: Mapped[int] = mapped_column(Integer, nullable=False)
    mirror_member_id: Mapped[int] = mapped_column(Integer, nullable=False)


class CreationFlow(Base):
    __tablename__ = "family_creation_flows"

    TOTAL_STEPS = 3

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False, unique=True)
    principal_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    parents_setup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    children_setup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    branches_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    family: Mapped[Family] = relationship(back_populates="creation_flow")

    @property
    def completed_steps(self) -> int:
        return sum(1 for flag in (self.parents_setup, self.children_setup, self.branches_created) if flag)

    @property
    def current_step(self) -> CreationStepEnum:
        return STEP_BY_COMPLETED_COUNT[self.completed_steps]

    @property
    def setup_completed(self) -> bool:
        return self.current_step == CreationStepEnum.completed

    @property
    def next_step(self) -> CreationStepEnum | None:
        order = list(CreationStepEnum)
        index = order.index(self.current_step)
        return order[index + 1] if index < len(order) - 1 else None

    @property
    def progress_percentage(self) -> int:
        return round(self.completed_steps / self.TOTAL_STEPS * 100)


STEP_BY_COMPLETED_COUNT = {
    0: CreationStepEnum.initialized,
    1: CreationStepEnum.parent_setup,
    2: CreationStepEnum.children_setup,
    3: CreationStepEnum.completed,
}


Index("ix_family_members_family_position", Member.family_id, Member.position)
Index("ix_family_members_original", Member.original_member_id)
Index(
    "uq_families_creator_main",
    Family.creator_principal_id,
    unique=True,
    postgresql_where=Family.is_main_family.is_(True),
    sqlite_where=Family.is_main_family.is_(True),
)
Index("ix_member_mirrors_relation", MemberMirror.relation_id)
