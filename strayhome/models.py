"""Database models for the StrayHome API.

This module defines SQLAlchemy ORM models used by the application
together with the enumerations that constrain their string columns.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


class AnimalType(str, enum.Enum):
    """Species accepted for a listing."""

    DOG = "dog"
    CAT = "cat"


class AnimalAge(str, enum.Enum):
    BABY = "puppy/kitten"
    YOUNG = "young"
    ADULT = "adult"
    SENIOR = "senior"
    UNKNOWN = "unknown"


class AnimalGender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class AnimalSize(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    UNKNOWN = "unknown"


class AnimalStatus(str, enum.Enum):
    """Lifecycle of a listing: available -> under_consideration -> adopted."""

    AVAILABLE = "available"
    UNDER_CONSIDERATION = "under_consideration"
    ADOPTED = "adopted"


class AdoptionStatus(str, enum.Enum):
    """Lifecycle of a formal adoption request."""

    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_ADOPTION_STATUSES = (AdoptionStatus.PENDING.value, AdoptionStatus.APPROVED.value)


class User(Base):
    """
    SQLAlchemy model representing a platform member.

    The same account can post rescued animals and adopt listings of
    other members. Rescue and adoption counters are only changed as a
    side effect of listing and adoption operations.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)

    notify_adoption_interest = Column(Boolean, default=True, nullable=False)
    notify_adoption_confirmed = Column(Boolean, default=True, nullable=False)
    notify_rescue_updates = Column(Boolean, default=True, nullable=False)

    animals_rescued = Column(Integer, default=0, nullable=False)
    animals_adopted = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    #: Listings posted by the user
    listings = relationship(
        "Animal",
        back_populates="poster",
        foreign_keys="Animal.poster_id",
    )

    @property
    def notification_preferences(self) -> dict:
        return {
            "adoption_interest": bool(self.notify_adoption_interest),
            "adoption_confirmed": bool(self.notify_adoption_confirmed),
            "rescue_updates": bool(self.notify_rescue_updates),
        }

    @property
    def stats(self) -> dict:
        return {
            "animals_rescued": self.animals_rescued or 0,
            "animals_adopted": self.animals_adopted or 0,
        }


class Animal(Base):
    """
    SQLAlchemy model representing a rescued animal listing.

    The location is stored as flat columns and exposed as a nested
    mapping through :attr:`location`. Once ``status`` is ``adopted`` the
    adopter and adoption date are always set.
    """

    __tablename__ = "animals"
    __table_args__ = (Index("ix_animals_type_status", "type", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(10), nullable=False)
    name = Column(String(100), default="", nullable=False)
    breed = Column(String(100), default="", nullable=False)
    age = Column(String(20), default=AnimalAge.UNKNOWN.value, nullable=False)
    gender = Column(String(10), default=AnimalGender.UNKNOWN.value, nullable=False)
    size = Column(String(10), default=AnimalSize.UNKNOWN.value, nullable=False)
    color = Column(String(100), default="", nullable=False)
    description = Column(Text, default="", nullable=False)
    special_notes = Column(Text, default="", nullable=False)
    medical_needs = Column(Text, default="", nullable=False)

    #: Ordered list of photo references
    photos = Column(JSON, default=list, nullable=False)

    location_address = Column(String(255), nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lng = Column(Float, nullable=False)
    location_city = Column(String(100), nullable=True, index=True)
    location_state = Column(String(100), nullable=True)
    current_location = Column(String(255), default="", nullable=False)

    status = Column(
        String(30), default=AnimalStatus.AVAILABLE.value, nullable=False, index=True
    )
    urgent = Column(Boolean, default=False, nullable=False)
    needs_foster = Column(Boolean, default=False, nullable=False)

    poster_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    adopter_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    adoption_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    poster = relationship("User", back_populates="listings", foreign_keys=[poster_id])
    adopter = relationship("User", foreign_keys=[adopter_id])

    #: Informal interest entries, oldest first
    interested_users = relationship(
        "AnimalInterest",
        back_populates="animal",
        cascade="all, delete-orphan",
        order_by="AnimalInterest.timestamp",
    )

    #: Formal adoption requests filed against this listing
    adoption_requests = relationship(
        "Adoption",
        back_populates="animal",
        cascade="all, delete-orphan",
    )

    @property
    def location(self) -> dict:
        return {
            "address": self.location_address,
            "coordinates": {"lat": self.location_lat, "lng": self.location_lng},
            "city": self.location_city,
            "state": self.location_state,
        }

    @property
    def display_name(self) -> str:
        """Name used in messages, falling back to the species."""
        return self.name or f"the {self.type}"


class AnimalInterest(Base):
    """
    A non-binding expression of adoption intent.

    A user can be listed at most once per animal.
    """

    __tablename__ = "animal_interests"
    __table_args__ = (
        UniqueConstraint("animal_id", "user_id", name="uq_interest_animal_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(
        Integer, ForeignKey("animals.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message = Column(Text, default="", nullable=False)
    contact_info = Column(String(255), default="", nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    animal = relationship("Animal", back_populates="interested_users")


class Adoption(Base):
    """
    SQLAlchemy model representing a formal adoption request.

    The poster is copied from the animal when the request is filed and
    is the only user allowed to move the request through its statuses.
    At most one pending or approved request may exist per animal and
    adopter.
    """

    __tablename__ = "adoptions"
    __table_args__ = (
        Index(
            "uq_adoption_active_request",
            "animal_id",
            "adopter_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'approved')"),
            postgresql_where=text("status IN ('pending', 'approved')"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    animal_id = Column(
        Integer, ForeignKey("animals.id", ondelete="CASCADE"), nullable=False
    )
    adopter_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    poster_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(
        String(20), default=AdoptionStatus.PENDING.value, nullable=False, index=True
    )
    adopter_message = Column(Text, default="", nullable=False)
    adopter_contact = Column(String(255), nullable=False)
    adoption_date = Column(DateTime, nullable=True)
    notes = Column(Text, default="", nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    animal = relationship("Animal", back_populates="adoption_requests")
    adopter = relationship("User", foreign_keys=[adopter_id])
    poster = relationship("User", foreign_keys=[poster_id])
