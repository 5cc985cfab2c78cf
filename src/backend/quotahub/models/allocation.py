"""SQLAlchemy ORM models for department and member allocations.

Every max_* column is nullable: NULL means "no explicit cap at this level".
credit_used is fractional and only moves through an atomic increment or a bulk reset.
"""

import enum
from datetime import datetime

from sqlalchemy import Enum, Float, ForeignKey, Integer, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from quotahub.models.org import Base


class AllocationMode(str, enum.Enum):
    SOFT_CAP = "SOFT_CAP"
    HARD_CAP = "HARD_CAP"
    # Guaranteed-minimum semantics are undefined; enforced like SOFT_CAP.
    RESERVED = "RESERVED"


_alloc_mode = Enum(AllocationMode, name="allocation_mode", values_callable=lambda e: [m.value for m in e])


class DeptAllocation(Base):
    __tablename__ = "dept_allocations"
    __table_args__ = (UniqueConstraint("department_id", name="uq_dept_allocations_department"),)

    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    department_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    max_gateways: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_plugins: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_workflows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_ram_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_cpu_cores: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_storage_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    credit_budget: Mapped[int | None] = mapped_column(Integer, nullable=True)
    credit_used: Mapped[float] = mapped_column(Float, server_default=text("0"), nullable=False)
    credit_reset_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    alloc_mode: Mapped[AllocationMode] = mapped_column(
        _alloc_mode, server_default=text("'SOFT_CAP'"), nullable=False
    )
    set_by: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("now()"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("now()"), nullable=True
    )


class MemberAllocation(Base):
    __tablename__ = "member_allocations"
    __table_args__ = (
        UniqueConstraint("user_id", "department_id", name="uq_member_allocations_user_dept"),
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
    max_gateways: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_workflows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_ram_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_cpu_cores: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_storage_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    credit_budget: Mapped[int | None] = mapped_column(Integer, nullable=True)
    credit_used: Mapped[float] = mapped_column(Float, server_default=text("0"), nullable=False)
    credit_reset_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    alloc_mode: Mapped[AllocationMode] = mapped_column(
        _alloc_mode, server_default=text("'SOFT_CAP'"), nullable=False
    )
    set_by: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("now()"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("now()"), nullable=True
    )
