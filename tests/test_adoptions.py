from fastapi import status

from conftest import auth_headers, create_listing


def request_adoption(client, adopter, animal_id, contact="555-0101", message="Hi"):
    return client.post(
        "/adoptions",
        json={"animalId": animal_id, "message": message, "contactInfo": contact},
        headers=auth_headers(adopter),
    )


def set_status(client, poster, adoption_id, new_status, notes=None):
    payload = {"status": new_status}
    if notes is not None:
        payload["notes"] = notes
    return client.patch(
        f"/adoptions/{adoption_id}/status", json=payload, headers=auth_headers(poster)
    )


def test_request_adoption_creates_pending_request(client, make_user, notifier):
    poster = make_user("poster@example.com", name="Maya")
    adopter = make_user("adopter@example.com", name="Sam")
    animal = create_listing(client, poster).json()["animal"]
    notifier.sent.clear()

    response = request_adoption(client, adopter, animal["id"], message="Big yard")
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["message"] == "Adoption request created successfully"
    adoption = body["adoption"]
    assert adoption["status"] == "pending"
    assert adoption["animalId"] == animal["id"]
    assert adoption["adopterId"] == adopter.id
    assert adoption["posterId"] == poster.id
    assert adoption["adopterMessage"] == "Big yard"
    assert adoption["adopterContact"] == "555-0101"
    assert adoption["animal"]["name"] == "Rex"
    assert adoption["adopter"]["name"] == "Sam"

    emails = notifier.to("poster@example.com")
    assert len(emails) == 1
    assert "Sam" in emails[0][2]


def test_request_adoption_preconditions(client, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    late = make_user("late@example.com")
    animal = create_listing(client, poster).json()["animal"]

    missing = request_adoption(client, adopter, 9999)
    assert missing.status_code == status.HTTP_404_NOT_FOUND

    own = request_adoption(client, poster, animal["id"])
    assert own.status_code == status.HTTP_409_CONFLICT

    assert request_adoption(client, adopter, animal["id"]).status_code == 201
    duplicate = request_adoption(client, adopter, animal["id"])
    assert duplicate.status_code == status.HTTP_409_CONFLICT
    assert duplicate.json()["detail"] == "Adoption request already exists"

    client.patch(
        f"/animals/{animal['id']}/adopt",
        json={"adopterId": adopter.id},
        headers=auth_headers(poster),
    )
    adopted = request_adoption(client, late, animal["id"])
    assert adopted.status_code == status.HTTP_409_CONFLICT
    assert adopted.json()["detail"] == "Animal has already been adopted"


def test_request_adoption_requires_contact_info(client, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]

    response = request_adoption(client, adopter, animal["id"], contact="")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_only_poster_can_change_status(client, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]
    adoption = request_adoption(client, adopter, animal["id"]).json()["adoption"]

    response = set_status(client, adopter, adoption["id"], "approved")
    assert response.status_code == status.HTTP_403_FORBIDDEN

    missing = set_status(client, poster, 9999, "approved")
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_completion_adopts_the_animal(client, db_session, make_user, notifier):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]
    adoption = request_adoption(client, adopter, animal["id"]).json()["adoption"]
    notifier.sent.clear()

    approved = set_status(client, poster, adoption["id"], "approved", notes="Visit")
    assert approved.status_code == status.HTTP_200_OK
    assert approved.json()["message"] == "Adoption status updated successfully"
    assert approved.json()["adoption"]["notes"] == "Visit"
    assert client.get(f"/animals/{animal['id']}").json()["status"] == "available"

    completed = set_status(client, poster, adoption["id"], "completed")
    assert completed.status_code == status.HTTP_200_OK
    result = completed.json()["adoption"]
    assert result["status"] == "completed"
    assert result["adoptionDate"] is not None
    assert result["notes"] == "Visit"

    listing = client.get(f"/animals/{animal['id']}").json()
    assert listing["status"] == "adopted"
    assert listing["adopterId"] == adopter.id
    assert listing["adoptionDate"] is not None

    db_session.refresh(adopter)
    assert adopter.animals_adopted == 1
    assert [sent[0] for sent in notifier.sent] == [
        "adopter@example.com",
        "adopter@example.com",
    ]


def test_strict_transitions(client, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]
    adoption = request_adoption(client, adopter, animal["id"]).json()["adoption"]

    skipped = set_status(client, poster, adoption["id"], "completed")
    assert skipped.status_code == status.HTTP_409_CONFLICT
    assert client.get(f"/animals/{animal['id']}").json()["status"] == "available"

    assert set_status(client, poster, adoption["id"], "cancelled").status_code == 200
    reopened = set_status(client, poster, adoption["id"], "approved")
    assert reopened.status_code == status.HTTP_409_CONFLICT

    invalid = set_status(client, poster, adoption["id"], "archived")
    assert invalid.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_permissive_transitions_when_strict_mode_off(
    client, db_session, make_user, settings, monkeypatch
):
    monkeypatch.setattr(settings, "STRICT_ADOPTION_TRANSITIONS", False)
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]
    adoption = request_adoption(client, adopter, animal["id"]).json()["adoption"]

    completed = set_status(client, poster, adoption["id"], "completed")
    assert completed.status_code == status.HTTP_200_OK
    assert client.get(f"/animals/{animal['id']}").json()["status"] == "adopted"

    # Re-completing keeps the adopter's counter stable
    assert set_status(client, poster, adoption["id"], "completed").status_code == 200
    db_session.refresh(adopter)
    assert adopter.animals_adopted == 1


def test_new_request_allowed_after_cancellation(client, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]
    first = request_adoption(client, adopter, animal["id"]).json()["adoption"]
    set_status(client, poster, first["id"], "cancelled")

    second = request_adoption(client, adopter, animal["id"])
    assert second.status_code == status.HTTP_201_CREATED
    assert second.json()["adoption"]["id"] != first["id"]


def test_competing_request_cannot_complete_after_adoption(
    client, db_session, make_user
):
    poster = make_user("poster@example.com")
    first = make_user("first@example.com")
    second = make_user("second@example.com")
    animal = create_listing(client, poster).json()["animal"]
    a = request_adoption(client, first, animal["id"]).json()["adoption"]
    b = request_adoption(client, second, animal["id"]).json()["adoption"]
    set_status(client, poster, a["id"], "approved")
    set_status(client, poster, b["id"], "approved")

    assert set_status(client, poster, a["id"], "completed").status_code == 200
    conflict = set_status(client, poster, b["id"], "completed")
    assert conflict.status_code == status.HTTP_409_CONFLICT

    listing = client.get(f"/animals/{animal['id']}").json()
    assert listing["adopterId"] == first.id
    db_session.refresh(second)
    assert second.animals_adopted == 0

    adoptions = client.get("/adoptions/user", headers=auth_headers(second)).json()
    assert adoptions["adoptions"][0]["status"] == "approved"


def test_completion_after_mark_adopted_does_not_double_count(
    client, db_session, make_user
):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    animal = create_listing(client, poster).json()["animal"]
    adoption = request_adoption(client, adopter, animal["id"]).json()["adoption"]
    set_status(client, poster, adoption["id"], "approved")

    client.patch(
        f"/animals/{animal['id']}/adopt",
        json={"adopterId": adopter.id},
        headers=auth_headers(poster),
    )
    completed = set_status(client, poster, adoption["id"], "completed")
    assert completed.status_code == status.HTTP_200_OK

    db_session.refresh(adopter)
    assert adopter.animals_adopted == 1


def test_list_user_adoptions_covers_both_sides(client, make_user):
    poster = make_user("poster@example.com")
    adopter = make_user("adopter@example.com")
    stranger = make_user("stranger@example.com")
    rex = create_listing(client, poster, name="Rex").json()["animal"]
    luna = create_listing(client, poster, name="Luna").json()["animal"]
    request_adoption(client, adopter, rex["id"])
    request_adoption(client, adopter, luna["id"])

    for user in (poster, adopter):
        data = client.get("/adoptions/user", headers=auth_headers(user)).json()
        assert [a["animal"]["name"] for a in data["adoptions"]] == ["Luna", "Rex"]

    empty = client.get("/adoptions/user", headers=auth_headers(stranger)).json()
    assert empty == {"adoptions": []}
