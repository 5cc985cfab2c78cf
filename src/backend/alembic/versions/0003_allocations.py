"""Revision 0003: department and member allocation tables

Creates the allocation_mode enum and the dept_allocations /
member_allocations tables that subdivide an organization's shared pools.
Every max_* column is nullable (NULL = no explicit cap).

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None

allocation_mode = postgresql.ENUM(
    "SOFT_CAP", "HARD_CAP", "RESERVED", name="allocation_mode", create_type=False
)


def _limit_columns(with_plugins: bool) -> list[sa.Column]:
    columns = [sa.Column("max_gateways", sa.Integer(), nullable=True)]
    if with_plugins:
        columns.append(sa.Column("max_plugins", sa.Integer(), nullable=True))
    columns += [
        sa.Column("max_workflows", sa.Integer(), nullable=True),
        sa.Column("max_ram_mb", sa.Integer(), nullable=True),
        sa.Column("max_cpu_cores", sa.Float(), nullable=True),
        sa.Column("max_storage_mb", sa.Integer(), nullable=True),
        sa.Column("credit_budget", sa.Integer(), nullable=True),
        sa.Column("credit_used", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("credit_reset_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "alloc_mode",
            allocation_mode,
            server_default=sa.text("'SOFT_CAP'"),
            nullable=False,
        ),
        sa.Column("set_by", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
    ]
    return columns


def upgrade():
    allocation_mode.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "dept_allocations",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("department_id", sa.UUID(), nullable=False),
        *_limit_columns(with_plugins=True),
        sa.ForeignKeyConstraint(
            ["department_id"],
            ["departments.id"],
            name="fk_dept_allocations_department_id",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dept_allocations"),
        sa.UniqueConstraint("department_id", name="uq_dept_allocations_department"),
    )

    op.create_table(
        "member_allocations",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("department_id", sa.UUID(), nullable=False),
        *_limit_columns(with_plugins=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_member_allocations_user_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["department_id"],
            ["departments.id"],
            name="fk_member_allocations_department_id",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_member_allocations"),
        sa.UniqueConstraint("user_id", "department_id", name="uq_member_allocations_user_dept"),
    )
    op.create_index("ix_member_allocations_department_id", "member_allocations", ["department_id"])


def downgrade():
    op.drop_index("ix_member_allocations_department_id", table_name="member_allocations")
    op.drop_table("member_allocations")
    op.drop_table("dept_allocations")
    allocation_mode.drop(op.get_bind(), checkfirst=True)
