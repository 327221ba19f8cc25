from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, LargeBinary, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Account(Base):
    """AWS credentials registered for one Heroku team or user."""

    __tablename__ = "accounts"

    owner_id: Mapped[str] = mapped_column(Text, primary_key=True)
    aws_access_key_id: Mapped[str] = mapped_column(Text, nullable=False)
    # Fernet token; the plaintext secret is never stored
    aws_secret_access_key_token: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class AddonResource(Base):
    """One bucket + IAM user created for one add-on instance."""

    __tablename__ = "addon_resources"

    provider_resource_id: Mapped[str] = mapped_column(Text, primary_key=True)
    # No FK to accounts: an owner can be deleted while add-on records remain
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    heroku_resource_id: Mapped[str] = mapped_column(Text, nullable=False)
    aws_access_key_id: Mapped[str] = mapped_column(Text, nullable=False)
    mark_for_deletion: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
