"""SQLAlchemy ORM models for the ownership hierarchy: User, Organization, Department, memberships."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Float, ForeignKey, Integer, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan: Mapped[str] = mapped_column(Text, server_default=text("'FREE'"), nullable=False)


class Organization(Base):
    """Workspace pool columns override the plan's included pool when set (add-ons, custom deals)."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    plan: Mapped[str] = mapped_column(Text, server_default=text("'ORG_FREE'"), nullable=False)
    max_seats: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pool_ram_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pool_cpu_cores: Mapped[float | None] = mapped_column(Float, nullable=True)
    pool_storage_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)

    departments: Mapped[list["Department"]] = relationship(
        "Department", back_populates="organization"
    )
    memberships: Mapped[list["Membership"]] = relationship(
        "Membership", back_populates="organization"
    )


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_memberships_user_org"),
        CheckConstraint(
            "role IN ('ORG_OWNER', 'ORG_ADMIN', 'DEPT_MANAGER', 'ORG_MEMBER')",
            name="ck_memberships_role",
        ),
    )

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    user_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(Text, server_default=text("'ORG_MEMBER'"), nullable=False)

    organization: Mapped[Organization] = relationship("Organization", back_populates="memberships")


class Department(Base):
    __tablename__ = "departments"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_departments_org_name"),
    )

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    organization_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(server_default=text("true"), nullable=False)

    organization: Mapped[Organization] = relationship("Organization", back_populates="departments")
    members: Mapped[list["DepartmentMember"]] = relationship(
        "DepartmentMember", back_populates="department"
    )


class DepartmentMember(Base):
    __tablename__ = "department_members"
    __table_args__ = (
        UniqueConstraint("user_id", "department_id", name="uq_department_members_user_dept"),
    )

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    user_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    department_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )

    department: Mapped[Department] = relationship("Department", back_populates="members")


class CreditWallet(Base):
    """Exactly one of user_id / organization_id is set."""

    __tablename__ = "credit_wallets"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (organization_id IS NULL)", name="ck_credit_wallets_owner"
        ),
    )

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    user_id: Mapped[str | None] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=True
    )
    organization_id: Mapped[str | None] = mapped_column(
        PG_UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=True,
    )
    balance: Mapped[float] = mapped_column(Float, server_default=text("0"), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("now()"), nullable=True
    )
