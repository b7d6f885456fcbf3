"""Directory tables owned by the user/profile service.

The messaging service only reads these rows to resolve display identities.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base


def enum_values(enum_cls) -> list[str]:
    """Persist enum values (e.g. "Student") rather than member names."""
    return [member.value for member in enum_cls]


class UserType(str, enum.Enum):
    STUDENT = "Student"
    COORDINATOR = "Coordinator"
    COMPANY = "Company"
    SYSTEM_ADMIN = "SystemAdmin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    user_type = Column(
        Enum(UserType, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
    )
    profile_picture = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student_profile = relationship("Student", uselist=False, back_populates="user")
    coordinator_profile = relationship("Coordinator", uselist=False, back_populates="user")
    company_profile = relationship("Company", uselist=False, back_populates="user")


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    id_number = Column(String(50), nullable=True)  # institutional student number

    user = relationship("User", back_populates="student_profile")


class Coordinator(Base):
    __tablename__ = "coordinators"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    user = relationship("User", back_populates="coordinator_profile")


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_name = Column(String(255), nullable=True)

    user = relationship("User", back_populates="company_profile")
