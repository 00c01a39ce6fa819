"""Adoption workflow: formal adoption requests and their status changes.

A request is filed by an adopter against a listing that is neither
adopted nor their own, and only the listing's poster may move it
forward. Completing a request confirms the adoption on the listing in
the same transaction.
"""

import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import errors, listings, models, notifications
from .core import get_settings
from .models import AdoptionStatus
from .notifications import Notifier

logger = logging.getLogger(__name__)

#: Allowed moves of a request; completed and cancelled are terminal
ADOPTION_TRANSITIONS: dict[AdoptionStatus, frozenset[AdoptionStatus]] = {
    AdoptionStatus.PENDING: frozenset({AdoptionStatus.APPROVED, AdoptionStatus.CANCELLED}),
    AdoptionStatus.APPROVED: frozenset({AdoptionStatus.COMPLETED, AdoptionStatus.CANCELLED}),
    AdoptionStatus.COMPLETED: frozenset(),
    AdoptionStatus.CANCELLED: frozenset(),
}


def can_transition(current: AdoptionStatus, new: AdoptionStatus) -> bool:
    """Return whether a request may move from ``current`` to ``new``."""
    return new in ADOPTION_TRANSITIONS[current]


def validate_transition(current: str, new: str, strict: bool | None = None) -> None:
    """
    Reject status changes outside the request lattice.

    Args:
        current (str): Current request status.
        new (str): Requested status.
        strict (bool | None): Override of ``STRICT_ADOPTION_TRANSITIONS``.

    Raises:
        InvalidTransitionError: If strict checking is on and the move is
            not allowed.
    """
    if strict is None:
        strict = get_settings().STRICT_ADOPTION_TRANSITIONS
    if not strict:
        return
    if not can_transition(AdoptionStatus(current), AdoptionStatus(new)):
        raise errors.InvalidTransitionError(
            f"Cannot move adoption request from {current} to {new}"
        )


def _load_adoption(db: Session, adoption_id: int) -> models.Adoption | None:
    return db.execute(
        select(models.Adoption)
        .where(models.Adoption.id == adoption_id)
        .options(
            selectinload(models.Adoption.animal),
            selectinload(models.Adoption.adopter),
            selectinload(models.Adoption.poster),
        )
    ).scalar_one_or_none()


def find_active_request(
    db: Session, animal_id: int, adopter_id: int
) -> models.Adoption | None:
    """Return the pending or approved request of an adopter for an animal."""
    return db.execute(
        select(models.Adoption).where(
            models.Adoption.animal_id == animal_id,
            models.Adoption.adopter_id == adopter_id,
            models.Adoption.status.in_(models.ACTIVE_ADOPTION_STATUSES),
        )
    ).scalar_one_or_none()


def request_adoption(
    db: Session,
    adopter: models.User,
    animal_id: int,
    message: str,
    contact_info: str,
    notifier: Notifier,
) -> models.Adoption:
    """
    File a formal adoption request and notify the poster.

    Preconditions are checked in order and the first failure wins.

    Args:
        db (Session): Database session.
        adopter (User): Authenticated adopter.
        animal_id (int): Requested listing.
        message (str): Message for the poster.
        contact_info (str): How the poster can reach the adopter.
        notifier (Notifier): Email dispatcher.

    Raises:
        NotFoundError: If the listing does not exist.
        ConflictError: If the animal was already adopted.
        SelfReferenceError: If the adopter posted the listing.
        DuplicateError: If an active request already exists.

    Returns:
        Adoption: Newly created request.
    """
    animal = listings.get_animal(db, animal_id)
    if animal.status == models.AnimalStatus.ADOPTED.value:
        raise errors.ConflictError("Animal has already been adopted")
    if animal.poster_id == adopter.id:
        raise errors.SelfReferenceError("Cannot adopt your own listing")
    if find_active_request(db, animal.id, adopter.id) is not None:
        raise errors.DuplicateError("Adoption request already exists")

    adoption = models.Adoption(
        animal_id=animal.id,
        adopter_id=adopter.id,
        poster_id=animal.poster_id,
        adopter_message=message or "",
        adopter_contact=contact_info,
    )
    db.add(adoption)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise errors.DuplicateError("Adoption request already exists")
    logger.info(
        "Adoption request %s filed by user %s for animal %s",
        adoption.id,
        adopter.id,
        animal.id,
    )

    poster = animal.poster
    notifier.send(
        poster.email,
        *notifications.adoption_requested(poster, animal, adopter, message, contact_info),
    )
    return _load_adoption(db, adoption.id)


def update_status(
    db: Session,
    adoption_id: int,
    user_id: int,
    new_status: AdoptionStatus,
    notes: str | None,
    notifier: Notifier,
) -> models.Adoption:
    """
    Move a request to a new status on behalf of the poster.

    Completing a request confirms the adoption on the listing in the
    same transaction. The adopter is emailed about every change.

    Args:
        db (Session): Database session.
        adoption_id (int): Request identifier.
        user_id (int): Caller identifier.
        new_status (AdoptionStatus): Target status.
        notes (str | None): Replaces the request notes when given.
        notifier (Notifier): Email dispatcher.

    Raises:
        NotFoundError: If the request does not exist.
        AuthorizationError: If the caller is not the request's poster.
        InvalidTransitionError: If the move is outside the lattice.
        ConflictError: If the animal was adopted by someone else.

    Returns:
        Adoption: Updated request.
    """
    adoption = _load_adoption(db, adoption_id)
    if adoption is None:
        raise errors.NotFoundError("Adoption not found")
    if adoption.poster_id != user_id:
        raise errors.AuthorizationError("Not authorized")

    new_status = AdoptionStatus(new_status)
    validate_transition(adoption.status, new_status.value)

    if new_status is AdoptionStatus.COMPLETED:
        listings.confirm_adoption(db, adoption.animal, adoption.adopter)
        adoption.adoption_date = datetime.utcnow()
    adoption.status = new_status.value
    if notes:
        adoption.notes = notes

    db.add(adoption)
    db.commit()
    logger.info("Adoption request %s moved to %s", adoption.id, new_status.value)

    adoption = _load_adoption(db, adoption.id)
    notifier.send(
        adoption.adopter.email,
        *notifications.adoption_status_changed(
            adoption.adopter, adoption.animal, new_status.value, notes
        ),
    )
    return adoption


def list_user_adoptions(db: Session, user_id: int) -> list[models.Adoption]:
    """Requests where the user is the adopter or the poster, newest first."""
    return db.scalars(
        select(models.Adoption)
        .where(
            or_(
                models.Adoption.adopter_id == user_id,
                models.Adoption.poster_id == user_id,
            )
        )
        .options(
            selectinload(models.Adoption.animal),
            selectinload(models.Adoption.adopter),
            selectinload(models.Adoption.poster),
        )
        .order_by(models.Adoption.created_at.desc(), models.Adoption.id.desc())
    ).all()
