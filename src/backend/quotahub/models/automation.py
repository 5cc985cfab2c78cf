"""SQLAlchemy ORM models for the governed automation entities.

Only their counts matter here. organization_id IS NULL marks a personal entity.
"""

from sqlalchemy import ForeignKey, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from quotahub.models.org import Base


class _OwnedMixin:
    id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[str | None] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    department_id: Mapped[str | None] = mapped_column(
        PG_UUID(as_uuid=False), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )


class Gateway(_OwnedMixin, Base):
    __tablename__ = "gateways"


class UserPlugin(_OwnedMixin, Base):
    __tablename__ = "user_plugins"


class Workflow(_OwnedMixin, Base):
    __tablename__ = "workflows"
