"""Revision 0002: automation entities and credit wallets

Creates gateways, user_plugins and workflows (counted against plan and
allocation ceilings) and credit_wallets (one per user or organization).

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

_OWNED_TABLES = ("gateways", "user_plugins", "workflows")


def upgrade():
    for table in _OWNED_TABLES:
        op.create_table(
            table,
            sa.Column(
                "id",
                sa.UUID(),
                server_default=sa.text("gen_random_uuid()"),
                nullable=False,
            ),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("user_id", sa.UUID(), nullable=False),
            sa.Column("organization_id", sa.UUID(), nullable=True),
            sa.Column("department_id", sa.UUID(), nullable=True),
            sa.ForeignKeyConstraint(
                ["user_id"], ["users.id"], name=f"fk_{table}_user_id", ondelete="CASCADE"
            ),
            sa.ForeignKeyConstraint(
                ["organization_id"],
                ["organizations.id"],
                name=f"fk_{table}_organization_id",
                ondelete="CASCADE",
            ),
            sa.ForeignKeyConstraint(
                ["department_id"],
                ["departments.id"],
                name=f"fk_{table}_department_id",
                ondelete="SET NULL",
            ),
            sa.PrimaryKeyConstraint("id", name=f"pk_{table}"),
        )
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_organization_id", table, ["organization_id"])
        op.create_index(f"ix_{table}_department_id", table, ["department_id"])

    op.create_table(
        "credit_wallets",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("organization_id", sa.UUID(), nullable=True),
        sa.Column("balance", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_credit_wallets_user_id", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_credit_wallets_organization_id",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_credit_wallets"),
        sa.UniqueConstraint("user_id", name="uq_credit_wallets_user_id"),
        sa.UniqueConstraint("organization_id", name="uq_credit_wallets_organization_id"),
        sa.CheckConstraint(
            "(user_id IS NULL) <> (organization_id IS NULL)", name="ck_credit_wallets_owner"
        ),
    )


def downgrade():
    op.drop_table("credit_wallets")
    for table in reversed(_OWNED_TABLES):
        op.drop_index(f"ix_{table}_department_id", table_name=table)
        op.drop_index(f"ix_{table}_organization_id", table_name=table)
        op.drop_index(f"ix_{table}_user_id", table_name=table)
        op.drop_table(table)
