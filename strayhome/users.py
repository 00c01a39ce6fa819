"""User profile, listings and dashboard routes for the StrayHome API."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from . import crud, errors, listings, schemas, statistics
from .auth import cache_user, get_current_user
from .database import get_db
from .models import User
from .ratelimit import rate_limit

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me",
    response_model=schemas.UserOut,
    dependencies=[Depends(rate_limit(times=5, seconds=60))],
)
def read_me(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve the profile of the currently authenticated user.

    Counters and notification preferences are read from the database
    rather than from the identity cache.

    Returns:
        UserOut: User profile information.
    """
    user = crud.get_user_by_id(db, current_user.id)
    if user is None:
        raise errors.NotFoundError("User not found")
    return user


@router.put("/me", response_model=schemas.UserOut)
async def update_me(
    changes: schemas.UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update profile fields and notification preferences.

    Args:
        changes (UserUpdate): Fields to update.
        current_user (User): Authenticated user.
        db (Session): Database session.

    Returns:
        UserOut: Updated profile.
    """
    user = crud.update_user_profile(db, current_user, changes)
    await cache_user(user)
    return user


@router.get("/rescues", response_model=schemas.RescueList)
def my_rescues(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Listings posted by the current user, newest first."""
    return listings.list_user_rescues(db, current_user.id, page=page, limit=limit)


@router.get("/adoptions", response_model=schemas.AdoptedList)
def my_adoptions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Animals adopted by the current user, most recent first."""
    return listings.list_user_adoptions(db, current_user.id, page=page, limit=limit)


@router.get("/dashboard", response_model=schemas.DashboardOut)
def dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Summary counters and recent activity of the current user.

    ``pending`` counts the user's listings that are still available.
    """
    return statistics.user_dashboard(db, current_user.id)
