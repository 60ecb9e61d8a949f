"""Profile model."""
from enum import Enum as PyEnum

from sqlalchemy import Enum as SqlEnum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ProfileRole(str, PyEnum):
    """Marketplace role carried by every profile."""

    CLIENT = "client"
    FREELANCER = "freelancer"


class Profile(Base):
    """A marketplace participant: either a client posting gigs or a freelancer delivering them."""

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[ProfileRole] = mapped_column(
        SqlEnum(ProfileRole, name="profilerole", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    wallet_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    session_tokens = relationship("SessionToken", back_populates="profile", cascade="all, delete-orphan")
