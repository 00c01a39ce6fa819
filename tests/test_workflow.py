import pytest

from strayhome import crud, errors, listings, workflow
from strayhome.models import AdoptionStatus, Animal


@pytest.mark.parametrize(
    "current,new,allowed",
    [
        (AdoptionStatus.PENDING, AdoptionStatus.APPROVED, True),
        (AdoptionStatus.PENDING, AdoptionStatus.CANCELLED, True),
        (AdoptionStatus.PENDING, AdoptionStatus.COMPLETED, False),
        (AdoptionStatus.APPROVED, AdoptionStatus.COMPLETED, True),
        (AdoptionStatus.APPROVED, AdoptionStatus.CANCELLED, True),
        (AdoptionStatus.APPROVED, AdoptionStatus.PENDING, False),
        (AdoptionStatus.COMPLETED, AdoptionStatus.CANCELLED, False),
        (AdoptionStatus.CANCELLED, AdoptionStatus.PENDING, False),
    ],
)
def test_can_transition(current, new, allowed):
    assert workflow.can_transition(current, new) is allowed


def test_validate_transition_raises_only_in_strict_mode():
    with pytest.raises(errors.InvalidTransitionError):
        workflow.validate_transition("completed", "pending", strict=True)
    workflow.validate_transition("completed", "pending", strict=False)


def test_invalid_transition_is_a_conflict():
    with pytest.raises(errors.ConflictError) as exc:
        workflow.validate_transition("cancelled", "approved", strict=True)
    assert exc.value.status_code == 409


def test_confirm_adoption_is_idempotent_for_same_adopter(db_session, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    other = make_user("other@example.com")
    animal = Animal(
        type="dog",
        photos=["/uploads/rex.jpg"],
        location_address="1 Main Street",
        location_lat=1.0,
        location_lng=2.0,
        poster_id=poster.id,
    )
    db_session.add(animal)
    db_session.commit()

    assert listings.confirm_adoption(db_session, animal, adopter) is True
    db_session.commit()
    assert listings.confirm_adoption(db_session, animal, adopter) is False
    with pytest.raises(errors.ConflictError):
        listings.confirm_adoption(db_session, animal, other)

    db_session.refresh(adopter)
    assert animal.status == "adopted"
    assert animal.adopter_id == adopter.id
    assert adopter.animals_adopted == 1


def test_rescue_counter_never_goes_negative(db_session, make_user):
    user = make_user("poster@example.com")
    crud.adjust_user_stat(db_session, user.id, "animals_rescued", -1)
    db_session.commit()
    db_session.refresh(user)
    assert user.animals_rescued == 0
