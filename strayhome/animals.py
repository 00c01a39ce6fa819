"""Animal listing routes for the StrayHome API."""

import json
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from . import errors, listings, schemas, storage
from .auth import get_current_user
from .core import get_settings
from .database import get_db
from .models import User
from .notifications import Notifier, get_notifier
from .ratelimit import rate_limit

router = APIRouter(prefix="/animals", tags=["animals"])
settings = get_settings()


def parse_location(raw: str | None) -> dict | None:
    """
    Decode a location sent as a JSON string in a multipart form.

    Raises:
        ValidationError: If the value is not a JSON object.
    """
    if raw is None or raw == "":
        return None
    try:
        location = json.loads(raw)
    except json.JSONDecodeError:
        raise errors.ValidationError("Location must be a JSON object")
    if not isinstance(location, dict):
        raise errors.ValidationError("Location must be a JSON object")
    return location


def describe_errors(exc: SchemaValidationError) -> str:
    """Flatten pydantic errors into a single readable message."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )


def _form_fields(**fields) -> dict:
    return {key: value for key, value in fields.items() if value is not None}


@router.get("", response_model=schemas.AnimalList)
def list_animals(
    type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    urgent: Optional[bool] = Query(None),
    needs_foster: Optional[bool] = Query(None, alias="needsFoster"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    """
    Browse the catalog with optional filters.

    Urgent listings are shown first, then the newest ones.

    Args:
        type (str | None): Species filter (``dog`` or ``cat``).
        status (str | None): Listing status filter.
        urgent (bool | None): Urgency filter.
        needs_foster (bool | None): Foster-need filter.
        page (int): 1-based page number.
        limit (int): Page size.
        db (Session): Database session.

    Returns:
        AnimalList: Page of listings with pagination details.
    """
    return listings.list_animals(
        db,
        type=type,
        status=status,
        urgent=urgent,
        needs_foster=needs_foster,
        page=page,
        limit=limit,
    )


@router.get("/{animal_id}", response_model=schemas.AnimalOut)
def get_animal(animal_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a single listing.

    Raises:
        NotFoundError: If the listing does not exist.
    """
    return listings.get_animal(db, animal_id)


@router.post("", response_model=schemas.AnimalEnvelope, status_code=201)
def create_animal(
    type: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    breed: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    special_notes: Optional[str] = Form(None, alias="specialNotes"),
    medical_needs: Optional[str] = Form(None, alias="medicalNeeds"),
    location: Optional[str] = Form(None),
    current_location: Optional[str] = Form(None, alias="currentLocation"),
    urgent: Optional[bool] = Form(None),
    needs_foster: Optional[bool] = Form(None, alias="needsFoster"),
    photos: Optional[list[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Publish a new listing from a multipart form.

    ``location`` is a JSON object with ``address``, ``coordinates``
    (``lat``/``lng``) and optional ``city``/``state``. Between one and
    ``MAX_PHOTOS`` image files must be attached as ``photos``.

    Raises:
        ValidationError: If a required field or photo is missing or invalid.

    Returns:
        AnimalEnvelope: Confirmation message and the created listing.
    """
    fields = _form_fields(
        type=type,
        name=name,
        breed=breed,
        age=age,
        gender=gender,
        size=size,
        color=color,
        description=description,
        special_notes=special_notes,
        medical_needs=medical_needs,
        location=parse_location(location),
        current_location=current_location,
        urgent=urgent,
        needs_foster=needs_foster,
    )
    try:
        animal_in = schemas.AnimalCreate.model_validate(fields)
    except SchemaValidationError as exc:
        raise errors.ValidationError(describe_errors(exc))

    references = storage.store_photos(photos or [], required=True)
    try:
        animal = listings.create_animal(
            db, current_user, animal_in, references, notifier
        )
    except Exception:
        storage.discard_photos(references)
        raise
    return {"message": "Animal listed successfully", "animal": animal}


@router.put("/{animal_id}", response_model=schemas.AnimalEnvelope)
def update_animal(
    animal_id: int,
    type: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    breed: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    special_notes: Optional[str] = Form(None, alias="specialNotes"),
    medical_needs: Optional[str] = Form(None, alias="medicalNeeds"),
    location: Optional[str] = Form(None),
    current_location: Optional[str] = Form(None, alias="currentLocation"),
    urgent: Optional[bool] = Form(None),
    needs_foster: Optional[bool] = Form(None, alias="needsFoster"),
    status: Optional[str] = Form(None),
    photos: Optional[list[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Partially update a listing owned by the current user.

    Only submitted fields are replaced; new photos are appended to the
    existing ones.

    Raises:
        NotFoundError: If the listing does not exist.
        AuthorizationError: If the caller is not the poster.
        ValidationError: If a field or photo is invalid.
        ConflictError: If the status change is not allowed. Nothing is
            stored in that case.

    Returns:
        AnimalEnvelope: Confirmation message and the updated listing.
    """
    animal = listings.get_owned_animal(db, animal_id, current_user.id, "update")
    fields = _form_fields(
        type=type,
        name=name,
        breed=breed,
        age=age,
        gender=gender,
        size=size,
        color=color,
        description=description,
        special_notes=special_notes,
        medical_needs=medical_needs,
        location=parse_location(location),
        current_location=current_location,
        urgent=urgent,
        needs_foster=needs_foster,
        status=status,
    )
    try:
        changes = schemas.AnimalUpdate.model_validate(fields)
    except SchemaValidationError as exc:
        raise errors.ValidationError(describe_errors(exc))

    listings.check_status_change(animal, changes.status)

    new_photos = storage.store_photos(photos or [], required=False)
    try:
        animal = listings.update_animal(
            db, animal_id, current_user.id, changes, new_photos
        )
    except Exception:
        storage.discard_photos(new_photos)
        raise
    return {"message": "Animal updated successfully", "animal": animal}


@router.delete("/{animal_id}", response_model=schemas.MessageOut)
def delete_animal(
    animal_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Delete a listing owned by the current user.

    Raises:
        NotFoundError: If the listing does not exist.
        AuthorizationError: If the caller is not the poster.
    """
    listings.delete_animal(db, animal_id, current_user.id)
    return {"message": "Animal listing deleted successfully"}


@router.post(
    "/{animal_id}/interest",
    response_model=schemas.MessageOut,
    dependencies=[Depends(rate_limit(times=10, seconds=60))],
)
def express_interest(
    animal_id: int,
    payload: schemas.InterestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Tell the poster that the current user would like to adopt.

    Raises:
        NotFoundError: If the listing does not exist.
        ConflictError: If the animal is adopted, the caller is the poster,
            or the caller already expressed interest.
    """
    listings.express_interest(
        db, animal_id, current_user, payload.message, payload.contact_info, notifier
    )
    return {"message": "Interest expressed successfully"}


@router.patch("/{animal_id}/adopt", response_model=schemas.MessageOut)
def mark_adopted(
    animal_id: int,
    payload: schemas.MarkAdopted,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Record that the listing was adopted by the given user.

    Raises:
        NotFoundError: If the listing or adopter does not exist.
        AuthorizationError: If the caller is not the poster.
        ConflictError: If the animal is already adopted.
    """
    listings.mark_adopted(db, animal_id, current_user.id, payload.adopter_id, notifier)
    return {"message": "Animal marked as adopted successfully"}
