"""User, Role and UserRole models."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from easypark.db.base import Base, TimestampMixin
from easypark.db.enums import RoleName, check_in

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "role_id",
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Role(Base):
    """Named role that can be granted to users."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(16), nullable=False, unique=True)

    __table_args__ = (CheckConstraint(check_in("name", RoleName), name="check_role_name"),)

    def __repr__(self):
        return f"<Role(id={self.id}, name={self.name})>"


class User(TimestampMixin, Base):
    """Account for every actor: customers, staff, land owners and admins."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(32), nullable=True, index=True)
    nic = Column(String(32), nullable=True, unique=True)
    residential_address = Column(Text, nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    roles = relationship("Role", secondary=user_roles, lazy="selectin")
    vehicles = relationship(
        "Vehicle",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Vehicle.created_at.desc()",
    )
    notifications = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    reset_tokens = relationship(
        "PasswordResetToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def role_names(self):
        return [role.name for role in self.roles]

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
