from fastapi import status

from strayhome.auth import (
    MemoryCache,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
)


def test_password_hashing_roundtrip():
    password = "secret123"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)


def test_signup_starts_with_empty_stats_and_all_notifications(client):
    response = client.post(
        "/auth/signup",
        json={
            "name": "Maya",
            "email": "maya@example.com",
            "password": "secret123",
            "phone": "555-0100",
        },
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["email"] == "maya@example.com"
    assert data["phone"] == "555-0100"
    assert data["stats"] == {"animalsRescued": 0, "animalsAdopted": 0}
    assert data["notificationPreferences"] == {
        "adoptionInterest": True,
        "adoptionConfirmed": True,
        "rescueUpdates": True,
    }
    assert "password" not in data and "hashedPassword" not in data


def test_signup_rejects_duplicate_email(client, make_user):
    make_user("taken@example.com")
    response = client.post(
        "/auth/signup",
        json={"name": "Other", "email": "taken@example.com", "password": "secret123"},
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_signup_validates_payload(client):
    response = client.post(
        "/auth/signup",
        json={"name": "Short", "email": "not-an-email", "password": "123"},
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_login_and_token_pair(client, make_user):
    make_user("user@example.com")
    response = client.post(
        "/auth/login",
        data={"username": "user@example.com", "password": "secret123"},
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert "access_token" in data and "refresh_token" in data
    assert data["token_type"] == "bearer"

    me_resp = client.get(
        "/users/me",
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me_resp.status_code == status.HTTP_200_OK
    assert me_resp.json()["email"] == "user@example.com"


def test_login_rejects_wrong_password(client, make_user):
    make_user("user@example.com")
    response = client.post(
        "/auth/login",
        data={"username": "user@example.com", "password": "wrong-pass"},
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_refresh_token_returns_new_access(client, make_user):
    make_user("refresh@example.com")
    login_resp = client.post(
        "/auth/login",
        data={"username": "refresh@example.com", "password": "secret123"},
        headers={"content-type": "application/x-www-form-urlencoded"},
    ).json()
    refresh_resp = client.post(
        "/auth/refresh",
        json={"refresh_token": login_resp["refresh_token"]},
    )
    assert refresh_resp.status_code == status.HTTP_200_OK
    tokens = refresh_resp.json()
    assert tokens["access_token"] != ""


def test_refresh_rejects_access_token(client, make_user):
    user = make_user("scope@example.com")
    response = client.post(
        "/auth/refresh",
        json={"refresh_token": create_access_token({"sub": user.email})},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_refresh_token_cannot_authenticate_requests(client, make_user):
    user = make_user("scope@example.com")
    token = create_refresh_token({"sub": user.email})
    response = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_protected_route_requires_token(client):
    assert client.get("/users/me").status_code == status.HTTP_401_UNAUTHORIZED
    response = client.get(
        "/users/me", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_memory_cache_expires_entries(session_loop):
    now = [100.0]
    cache = MemoryCache(clock=lambda: now[0])

    async def scenario():
        await cache.set("user:a", "A", ex=60)
        await cache.set("user:b", "B")
        assert await cache.get("user:a") == "A"
        now[0] += 61
        assert await cache.get("user:a") is None
        assert await cache.get("user:b") == "B"

        await cache.set("user:c", "C", ex=10)
        now[0] += 11
        await cache.set("user:d", "D", ex=10)
        assert set(cache.store) == {"user:b", "user:d"}

    session_loop.run_until_complete(scenario())
