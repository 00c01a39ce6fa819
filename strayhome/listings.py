"""Listing service: the lifecycle of rescued animal listings.

Listings are created by a poster with at least one photo, edited and
deleted only by that poster, collect informal interest from other
users, and are finally marked as adopted. Rescue and adoption counters
are updated in the same transaction as the listing change; emails are
queued only after the change has been committed.
"""

import logging
import math
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import crud, errors, models, notifications, schemas
from .notifications import Notifier

logger = logging.getLogger(__name__)

#: Status changes a poster may make by editing the listing
EDITABLE_STATUS_TRANSITIONS = {
    models.AnimalStatus.AVAILABLE.value: {
        models.AnimalStatus.UNDER_CONSIDERATION.value,
    },
}


def _location_columns(location: schemas.Location) -> dict:
    return {
        "location_address": location.address,
        "location_lat": location.coordinates.lat,
        "location_lng": location.coordinates.lng,
        "location_city": location.city,
        "location_state": location.state,
    }


def paginate(total: int, page: int, limit: int) -> dict:
    """Build the pagination block returned with list endpoints."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def list_animals(
    db: Session,
    type: str | None = None,
    status: str | None = None,
    urgent: bool | None = None,
    needs_foster: bool | None = None,
    page: int = 1,
    limit: int = 12,
) -> dict:
    """
    Retrieve one page of the catalog.

    Urgent listings come first, then the most recently created ones.
    Filters left as ``None`` do not constrain the result; unknown type
    or status values simply match nothing.

    Args:
        db (Session): Database session.
        type (str | None): Species filter.
        status (str | None): Listing status filter.
        urgent (bool | None): Urgency filter.
        needs_foster (bool | None): Foster-need filter.
        page (int): 1-based page number.
        limit (int): Page size.

    Returns:
        dict: ``animals`` for the page and the ``pagination`` block.
    """
    conditions = []
    if type:
        conditions.append(models.Animal.type == type)
    if status:
        conditions.append(models.Animal.status == status)
    if urgent is not None:
        conditions.append(models.Animal.urgent == urgent)
    if needs_foster is not None:
        conditions.append(models.Animal.needs_foster == needs_foster)

    stmt = (
        select(models.Animal)
        .where(*conditions)
        .options(selectinload(models.Animal.poster))
        .order_by(
            models.Animal.urgent.desc(),
            models.Animal.created_at.desc(),
            models.Animal.id.desc(),
        )
        .offset((page - 1) * limit)
        .limit(limit)
    )
    animals = db.scalars(stmt).all()
    total = db.scalar(
        select(func.count()).select_from(models.Animal).where(*conditions)
    )
    return {"animals": animals, "pagination": paginate(total, page, limit)}


def get_animal(db: Session, animal_id: int) -> models.Animal:
    """
    Retrieve a listing by id.

    Raises:
        NotFoundError: If the listing does not exist.
    """
    animal = db.get(models.Animal, animal_id)
    if animal is None:
        raise errors.NotFoundError("Animal not found")
    return animal


def get_owned_animal(
    db: Session, animal_id: int, user_id: int, action: str = "update"
) -> models.Animal:
    """
    Retrieve a listing the caller is allowed to modify.

    Raises:
        NotFoundError: If the listing does not exist.
        AuthorizationError: If the caller is not the poster.
    """
    animal = get_animal(db, animal_id)
    if animal.poster_id != user_id:
        raise errors.AuthorizationError(f"Not authorized to {action} this listing")
    return animal


def check_status_change(animal: models.Animal, new_status: str | None) -> bool:
    """
    Check a status edit against :data:`EDITABLE_STATUS_TRANSITIONS`.

    Raises:
        ConflictError: If the poster may not move the listing there.

    Returns:
        bool: ``True`` if the status actually changes.
    """
    if new_status is None:
        return False
    new_status = models.AnimalStatus(new_status).value
    if new_status == animal.status:
        return False
    if new_status not in EDITABLE_STATUS_TRANSITIONS.get(animal.status, set()):
        raise errors.ConflictError(
            f"Cannot change status from {animal.status} to {new_status}"
        )
    return True


def create_animal(
    db: Session,
    poster: models.User,
    animal_in: schemas.AnimalCreate,
    photos: list[str],
    notifier: Notifier,
) -> models.Animal:
    """
    Publish a new listing on behalf of the poster.

    The listing and the poster's rescue counter are committed together;
    the confirmation email is queued afterwards and cannot undo them.

    Args:
        db (Session): Database session.
        poster (User): Authenticated poster.
        animal_in (AnimalCreate): Descriptive fields and location.
        photos (list[str]): Stored photo references, at least one.
        notifier (Notifier): Email dispatcher.

    Raises:
        ValidationError: If no photo is provided.

    Returns:
        Animal: Newly created listing.
    """
    if not photos:
        raise errors.ValidationError("At least one photo is required")

    fields = animal_in.model_dump(exclude={"location"}, mode="json")
    animal = models.Animal(
        **fields,
        **_location_columns(animal_in.location),
        photos=list(photos),
        poster_id=poster.id,
        status=models.AnimalStatus.AVAILABLE.value,
    )
    db.add(animal)
    db.flush()
    crud.adjust_user_stat(db, poster.id, "animals_rescued", 1)
    db.commit()
    db.refresh(animal)
    logger.info("Animal %s listed by user %s", animal.id, poster.id)

    notifier.send(poster.email, *notifications.listing_created(poster))
    return animal


def update_animal(
    db: Session,
    animal_id: int,
    user_id: int,
    changes: schemas.AnimalUpdate,
    new_photos: list[str] | None = None,
) -> models.Animal:
    """
    Partially update a listing owned by the caller.

    New photos are appended to the existing ones. The status may only
    move from ``available`` to ``under_consideration`` here; adoption is
    recorded through :func:`mark_adopted` or the adoption workflow.

    Args:
        db (Session): Database session.
        animal_id (int): Listing identifier.
        user_id (int): Caller identifier.
        changes (AnimalUpdate): Fields to replace.
        new_photos (list[str] | None): Photo references to append.

    Raises:
        NotFoundError: If the listing does not exist.
        AuthorizationError: If the caller is not the poster.
        ConflictError: If the status change is not allowed.

    Returns:
        Animal: Updated listing.
    """
    animal = get_owned_animal(db, animal_id, user_id, "update")

    data = changes.model_dump(exclude_unset=True, exclude={"location"}, mode="json")
    data = {key: value for key, value in data.items() if value is not None}

    new_status = data.pop("status", None)
    if check_status_change(animal, new_status):
        data["status"] = new_status

    if changes.location is not None:
        data.update(_location_columns(changes.location))

    for key, value in data.items():
        setattr(animal, key, value)
    if new_photos:
        animal.photos = [*animal.photos, *new_photos]

    db.add(animal)
    db.commit()
    db.refresh(animal)
    logger.info("Animal %s updated: %s", animal.id, sorted(data))
    return animal


def delete_animal(db: Session, animal_id: int, user_id: int) -> None:
    """
    Delete a listing owned by the caller and decrement their rescue count.

    Raises:
        NotFoundError: If the listing does not exist (including when it
            was already deleted).
        AuthorizationError: If the caller is not the poster.
    """
    animal = get_owned_animal(db, animal_id, user_id, "delete")
    db.delete(animal)
    crud.adjust_user_stat(db, user_id, "animals_rescued", -1)
    db.commit()
    logger.info("Animal %s deleted by user %s", animal_id, user_id)


def express_interest(
    db: Session,
    animal_id: int,
    user: models.User,
    message: str,
    contact_info: str,
    notifier: Notifier,
) -> models.AnimalInterest:
    """
    Record that a user would like to adopt the animal.

    The poster is emailed when they opted in to interest notifications.

    Raises:
        NotFoundError: If the listing does not exist.
        ConflictError: If the animal was already adopted.
        SelfReferenceError: If the caller posted the listing.
        DuplicateError: If the caller already expressed interest.
    """
    animal = get_animal(db, animal_id)
    if animal.status == models.AnimalStatus.ADOPTED.value:
        raise errors.ConflictError("Animal has already been adopted")
    if animal.poster_id == user.id:
        raise errors.SelfReferenceError("Cannot express interest in your own listing")
    if any(entry.user_id == user.id for entry in animal.interested_users):
        raise errors.DuplicateError(
            "You have already expressed interest in this animal"
        )

    interest = models.AnimalInterest(
        user_id=user.id,
        message=message or "",
        contact_info=contact_info or "",
        timestamp=datetime.utcnow(),
    )
    animal.interested_users.append(interest)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise errors.DuplicateError(
            "You have already expressed interest in this animal"
        )
    logger.info("User %s expressed interest in animal %s", user.id, animal.id)

    poster = animal.poster
    if poster.notify_adoption_interest:
        notifier.send(
            poster.email,
            *notifications.interest_received(poster, animal, user, message, contact_info),
        )
    return interest


def confirm_adoption(
    db: Session, animal: models.Animal, adopter: models.User
) -> bool:
    """
    Mark the animal as adopted by ``adopter`` within the open transaction.

    This is the single place where a listing becomes adopted, whether
    the poster marks it directly or completes a formal request. The
    adopter's counter is incremented once per animal. Nothing is
    committed here.

    Args:
        db (Session): Database session.
        animal (Animal): Listing to confirm.
        adopter (User): New owner.

    Raises:
        ConflictError: If the animal was adopted by someone else.

    Returns:
        bool: ``True`` if the listing changed, ``False`` if it was
        already adopted by the same adopter.
    """
    if animal.status == models.AnimalStatus.ADOPTED.value:
        if animal.adopter_id == adopter.id:
            return False
        raise errors.ConflictError("Animal has already been adopted")

    animal.status = models.AnimalStatus.ADOPTED.value
    animal.adopter_id = adopter.id
    animal.adoption_date = datetime.utcnow()
    db.add(animal)
    crud.adjust_user_stat(db, adopter.id, "animals_adopted", 1)
    return True


def mark_adopted(
    db: Session,
    animal_id: int,
    user_id: int,
    adopter_id: int,
    notifier: Notifier,
) -> models.Animal:
    """
    Record, on the poster's word, that the animal found a home.

    Raises:
        NotFoundError: If the listing or the adopter does not exist.
        AuthorizationError: If the caller is not the poster.
        SelfReferenceError: If the poster names themselves as adopter.
        ConflictError: If the animal was already adopted.
    """
    animal = get_owned_animal(db, animal_id, user_id, "update")
    adopter = crud.get_user_by_id(db, adopter_id)
    if adopter is None:
        raise errors.NotFoundError("Adopter not found")
    if adopter.id == animal.poster_id:
        raise errors.SelfReferenceError("Cannot adopt your own listing")
    if animal.status == models.AnimalStatus.ADOPTED.value:
        raise errors.ConflictError("Animal has already been adopted")

    confirm_adoption(db, animal, adopter)
    db.commit()
    db.refresh(animal)
    logger.info("Animal %s marked adopted by user %s", animal.id, adopter.id)

    notifier.send(adopter.email, *notifications.adoption_confirmed(adopter, animal))
    return animal


def list_user_rescues(db: Session, user_id: int, page: int = 1, limit: int = 10) -> dict:
    """Listings posted by the user, newest first."""
    condition = models.Animal.poster_id == user_id
    rescues = db.scalars(
        select(models.Animal)
        .where(condition)
        .order_by(models.Animal.created_at.desc(), models.Animal.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = db.scalar(select(func.count()).select_from(models.Animal).where(condition))
    return {"rescues": rescues, "pagination": paginate(total, page, limit)}


def list_user_adoptions(db: Session, user_id: int, page: int = 1, limit: int = 10) -> dict:
    """Animals adopted by the user, most recent adoption first."""
    conditions = (
        models.Animal.adopter_id == user_id,
        models.Animal.status == models.AnimalStatus.ADOPTED.value,
    )
    adoptions = db.scalars(
        select(models.Animal)
        .where(*conditions)
        .options(selectinload(models.Animal.poster))
        .order_by(models.Animal.adoption_date.desc(), models.Animal.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = db.scalar(select(func.count()).select_from(models.Animal).where(*conditions))
    return {"adoptions": adoptions, "pagination": paginate(total, page, limit)}
