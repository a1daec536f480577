"""initial family tree schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


role_enum = sa.Enum("father", "mother", "child", name="roleenum")
creation_type_enum = sa.Enum("own_family", "parents_family", name="creationtypeenum")
link_status_enum = sa.Enum("active", "inactive", name="linkstatusenum")


def upgrade() -> None:
    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("creator_principal_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("creator_join_code", sa.String(length=20), nullable=False),
        sa.Column("is_main_family", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("creation_type", creation_type_enum, nullable=False, server_default="own_family"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_families_creator_principal_id", "families", ["creator_principal_id"])
    op.create_index(
        "uq_families_creator_main",
        "families",
        ["creator_principal_id"],
        unique=True,
        postgresql_where=sa.text("is_main_family IS true"),
    )

    op.create_table(
        "family_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("linked_principal_id", sa.String(length=255), nullable=True),
        sa.Column("role", role_enum, nullable=True),
        sa.Column("spouse_order", sa.Integer(), nullable=True),
        sa.Column("mother_id", sa.Integer(), sa.ForeignKey("family_members.id"), nullable=True),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("is_family_creator", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("relationship", sa.String(length=50), nullable=False),
        sa.Column("birth_year", sa.String(length=4), nullable=False),
        sa.Column("is_deceased", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("death_year", sa.String(length=4), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("bio", sa.String(length=500), nullable=True),
        sa.Column("contact_info", sa.JSON(), nullable=False),
        sa.Column("social_links", sa.JSON(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("join_code", sa.String(length=20), nullable=False),
        sa.Column("join_code_consumed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_linked_member", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("original_member_id", sa.Integer(), nullable=True),
        sa.Column("original_family_id", sa.Integer(), nullable=True),
        sa.Column("mirrored_as_member_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("join_code", name="uq_members_join_code"),
        sa.CheckConstraint(
            "(is_linked_member AND role IS NULL) OR (NOT is_linked_member AND role IS NOT NULL)",
            name="ck_members_role_presence",
        ),
        sa.CheckConstraint(
            "(role = 'mother' AND spouse_order IS NOT NULL AND spouse_order >= 1) "
            "OR ((role IS NULL OR role <> 'mother') AND spouse_order IS NULL)",
            name="ck_members_spouse_order",
        ),
        sa.CheckConstraint(
            "role = 'child' OR (mother_id IS NULL AND branch_id IS NULL)",
            name="ck_members_child_payload",
        ),
        sa.CheckConstraint(
            "(is_deceased AND death_year IS NOT NULL) OR (NOT is_deceased AND death_year IS NULL)",
            name="ck_members_death_year",
        ),
    )
    op.create_index("ix_family_members_family_position", "family_members", ["family_id", "position"])
    op.create_index("ix_family_members_original", "family_members", ["original_member_id"])

    op.create_table(
        "family_branches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("mother_id", sa.Integer(), sa.ForeignKey("family_members.id"), nullable=False),
        sa.Column("branch_order", sa.Integer(), nullable=False),
        sa.Column("branch_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("family_id", "branch_order", name="uq_family_branches_family_order"),
        sa.UniqueConstraint("mother_id", name="uq_family_branches_mother"),
        sa.CheckConstraint("branch_order >= 1", name="ck_family_branches_order_positive"),
    )
    op.create_foreign_key(
        "fk_family_members_branch_id", "family_members", "family_branches", ["branch_id"], ["id"]
    )

    op.create_table(
        "linked_families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_a_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("family_b_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("pair_low_id", sa.Integer(), nullable=False),
        sa.Column("pair_high_id", sa.Integer(), nullable=False),
        sa.Column("established_by_principal_id", sa.String(length=255), nullable=False),
        sa.Column("established_at", sa.DateTime(), nullable=True),
        sa.Column("status", link_status_enum, nullable=False, server_default="active"),
        sa.CheckConstraint("family_a_id <> family_b_id", name="ck_linked_families_distinct"),
    )
    op.create_index(
        "uq_linked_families_active_pair",
        "linked_families",
        ["pair_low_id", "pair_high_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "member_mirrors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("relation_id", sa.Integer(), sa.ForeignKey("linked_families.id"), nullable=False),
        sa.Column("original_member_id", sa.Integer(), nullable=False),
        sa.Column("mirror_member_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_member_mirrors_relation", "member_mirrors", ["relation_id"])

    op.create_table(
        "family_creation_flows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False, unique=True),
        sa.Column("principal_id", sa.String(length=255), nullable=False),
        sa.Column("parents_setup", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("children_setup", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("branches_created", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_activity_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_family_creation_flows_principal_id", "family_creation_flows", ["principal_id"])


def downgrade() -> None:
    op.drop_table("family_creation_flows")
    op.drop_table("member_mirrors")
    op.drop_table("linked_families")
    op.drop_constraint("fk_family_members_branch_id", "family_members", type_="foreignkey")
    op.drop_table("family_branches")
    op.drop_table("family_members")
    op.drop_table("families")
    link_status_enum.drop(op.get_bind(), checkfirst=True)
    creation_type_enum.drop(op.get_bind(), checkfirst=True)
    role_enum.drop(op.get_bind(), checkfirst=True)
