"""CRUD operations for users.

This module contains database interaction logic for user accounts,
including the rescue and adoption counters maintained as side effects
of listing and adoption operations.
"""

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from . import errors, models, schemas


def create_user(
    db: Session, user_in: schemas.UserCreate, hashed_password: str
) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        user_in (UserCreate): Incoming user data.
        hashed_password (str): Securely hashed password.

    Raises:
        ConflictError: If a user with the same email already exists.

    Returns:
        User: Newly created user instance.
    """
    existing = db.execute(
        select(models.User).where(models.User.email == user_in.email)
    ).scalar_one_or_none()
    if existing:
        raise errors.ConflictError("User already exists")

    user = models.User(
        name=user_in.name,
        email=user_in.email,
        hashed_password=hashed_password,
        phone=user_in.phone,
        location=user_in.location,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address.

    Args:
        db (Session): Database session.
        email (str): User email.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == email)
    ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.id == user_id)
    ).scalar_one_or_none()


def update_user_profile(
    db: Session, user: models.User, changes: schemas.UserUpdate
) -> models.User:
    """
    Apply a partial profile update.

    Notification preferences are merged key by key, so omitted flags
    keep their current value.

    Args:
        db (Session): Database session.
        user (User): Target user.
        changes (UserUpdate): Fields to update.

    Returns:
        User: Updated user instance.
    """
    target = get_user_by_id(db, user.id)
    if target is None:
        raise errors.NotFoundError("User not found")

    data = changes.model_dump(exclude_unset=True, exclude={"notification_preferences"})
    for key, value in data.items():
        setattr(target, key, value)

    if changes.notification_preferences is not None:
        prefs = changes.notification_preferences.model_dump(exclude_none=True)
        for key, value in prefs.items():
            setattr(target, f"notify_{key}", value)

    db.add(target)
    db.commit()
    db.refresh(target)
    return target


def adjust_user_stat(db: Session, user_id: int, stat: str, delta: int) -> None:
    """
    Atomically add ``delta`` to one of the user's counters.

    The update is flushed but not committed, so it joins the caller's
    transaction. Counters never drop below zero.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.
        stat (str): ``animals_rescued`` or ``animals_adopted``.
        delta (int): Amount to add (may be negative).
    """
    column = getattr(models.User, stat)
    db.execute(
        update(models.User)
        .where(models.User.id == user_id)
        .values({stat: case((column + delta < 0, 0), else_=column + delta)})
        .execution_options(synchronize_session="fetch")
    )
