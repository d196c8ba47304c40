"""
Tests for authentication endpoints: signup and login.
"""

import pytest
from httpx import AsyncClient

from eventease.core.security import create_access_token, create_refresh_token


@pytest.mark.asyncio
async def test_signup_user(client: AsyncClient):
    """Successful signup returns user data without the hash."""
    response = await client.post("/api/v1/auth/signup", json={
        "email": "new@example.com",
        "name": "New Person",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["role"] == "attendee"
    assert "password_hash" not in data


@pytest.mark.asyncio
async def test_signup_duplicate_email(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/signup", json={
        "email": "TEST@example.com",
        "name": "Someone Else",
        "password": "securepassword123",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_signup_cannot_claim_admin(client: AsyncClient):
    response = await client.post("/api/v1/auth/signup", json={
        "email": "sneaky@example.com",
        "name": "Sneaky",
        "password": "securepassword123",
        "role": "admin",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_signup_weak_password(client: AsyncClient):
    response = await client.post("/api/v1/auth/signup", json={
        "email": "weak@example.com",
        "name": "Weak",
        "password": "short",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anypassword123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(client: AsyncClient, test_user):
    token = create_access_token(test_user.id, test_user.role, expires_minutes=-1)
    response = await client.get(
        "/api/v1/registrations/",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "registration_attempts_total" in metrics.text


async def login(client: AsyncClient) -> dict:
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "testpassword123",
    })
    return response.json()


@pytest.mark.asyncio
async def test_refresh_issues_working_access_token(client: AsyncClient, test_user):
    tokens = await login(client)

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    refreshed = response.json()

    listing = await client.get(
        "/api/v1/registrations/",
        headers={"Authorization": f"Bearer {refreshed['access_token']}"},
    )
    assert listing.status_code == 200


@pytest.mark.asyncio
async def test_refresh_token_is_not_a_bearer_token(client: AsyncClient, test_user):
    tokens = await login(client)
    response = await client.get(
        "/api/v1/registrations/",
        headers={"Authorization": f"Bearer {tokens['refresh_token']}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_access_token_cannot_refresh(client: AsyncClient, test_user):
    tokens = await login(client)
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_for_unknown_user(client: AsyncClient):
    token = create_refresh_token("gone-user")
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_lists_users(client: AsyncClient, user_factory, make_headers, test_user, organizer):
    admin = await user_factory(role="admin")
    response = await client.get("/api/v1/users/?page_size=2", headers=make_headers(admin))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert len(data["users"]) == 2
    assert "password_hash" not in data["users"][0]


@pytest.mark.asyncio
async def test_user_listing_requires_admin(client: AsyncClient, auth_headers, organizer_headers):
    assert (await client.get("/api/v1/users/", headers=auth_headers)).status_code == 403
    assert (await client.get("/api/v1/users/", headers=organizer_headers)).status_code == 403
    assert (await client.get("/api/v1/users/")).status_code == 401
