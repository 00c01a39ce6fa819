"""Adoption request routes for the StrayHome API."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import schemas, workflow
from .auth import get_current_user
from .database import get_db
from .models import User
from .notifications import Notifier, get_notifier
from .ratelimit import rate_limit

router = APIRouter(prefix="/adoptions", tags=["adoptions"])


@router.get("/user", response_model=schemas.AdoptionList)
def list_my_adoptions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve requests where the current user is the adopter or the poster.

    Returns:
        AdoptionList: Requests, newest first.
    """
    return {"adoptions": workflow.list_user_adoptions(db, current_user.id)}


@router.post(
    "",
    response_model=schemas.AdoptionEnvelope,
    status_code=201,
    dependencies=[Depends(rate_limit(times=10, seconds=60))],
)
def request_adoption(
    payload: schemas.AdoptionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    File a formal adoption request for a listing.

    Args:
        payload (AdoptionCreate): Listing, message and contact details.
        current_user (User): Authenticated adopter.
        db (Session): Database session.
        notifier (Notifier): Email dispatcher.

    Raises:
        NotFoundError: If the listing does not exist.
        ConflictError: If the animal is adopted, the caller is the poster,
            or an active request already exists.

    Returns:
        AdoptionEnvelope: Confirmation message and the created request.
    """
    adoption = workflow.request_adoption(
        db,
        current_user,
        payload.animal_id,
        payload.message,
        payload.contact_info,
        notifier,
    )
    return {"message": "Adoption request created successfully", "adoption": adoption}


@router.patch("/{adoption_id}/status", response_model=schemas.AdoptionEnvelope)
def update_adoption_status(
    adoption_id: int,
    payload: schemas.AdoptionStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Move a request to a new status (poster only).

    Completing a request marks the listing as adopted.

    Raises:
        NotFoundError: If the request does not exist.
        AuthorizationError: If the caller is not the poster.
        InvalidTransitionError: If the status change is not allowed.
    """
    adoption = workflow.update_status(
        db, adoption_id, current_user.id, payload.status, payload.notes, notifier
    )
    return {"message": "Adoption status updated successfully", "adoption": adoption}
