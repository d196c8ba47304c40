"""
Tests for registration endpoints: status mapping, payload shape and
authorization rules around the engine.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register_for_event(client: AsyncClient, auth_headers, test_user, test_event):
    """Successful registration returns 201 with the camelCase contract."""
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id, "eventId": test_event.id},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["registration"]["event"]["id"] == test_event.id
    assert data["registration"]["user"]["id"] == test_user.id
    assert data["updatedEvent"]["capacity"] == 99
    assert "durationMs" in data["metrics"]
    assert "error" not in data

    event_response = await client.get(f"/api/v1/events/{test_event.id}")
    assert event_response.json()["capacity"] == 99


@pytest.mark.asyncio
async def test_register_unauthenticated(client: AsyncClient, test_user, test_event):
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id, "eventId": test_event.id},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_someone_else_forbidden(client: AsyncClient, auth_headers, organizer, test_event):
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": organizer.id, "eventId": test_event.id},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_may_register_others(client: AsyncClient, user_factory, make_headers, test_user, test_event):
    admin = await user_factory(role="admin")
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id, "eventId": test_event.id},
        headers=make_headers(admin),
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_duplicate_registration_returns_409(client: AsyncClient, auth_headers, test_user, test_event):
    body = {"userId": test_user.id, "eventId": test_event.id}
    first = await client.post("/api/v1/registrations/", json=body, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/registrations/", json=body, headers=auth_headers)
    assert second.status_code == 409
    error = second.json()["error"]
    assert error["type"] == "DuplicateRegistration"
    assert error["rolledBack"] is True

    event_response = await client.get(f"/api/v1/events/{test_event.id}")
    assert event_response.json()["capacity"] == 99


@pytest.mark.asyncio
async def test_sold_out_returns_400(client: AsyncClient, auth_headers, test_user, sold_out_event):
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id, "eventId": sold_out_event.id},
        headers=auth_headers,
    )
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"]["type"] == "CapacityExhausted"


@pytest.mark.asyncio
async def test_register_nonexistent_event_returns_404(client: AsyncClient, auth_headers, test_user):
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id, "eventId": "does-not-exist"},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"]["type"] == "EventNotFound"


@pytest.mark.asyncio
async def test_register_missing_fields_returns_422(client: AsyncClient, auth_headers, test_user):
    response = await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unregister_restores_capacity(client: AsyncClient, auth_headers, test_user, test_event):
    await client.post(
        "/api/v1/registrations/",
        json={"userId": test_user.id, "eventId": test_event.id},
        headers=auth_headers,
    )

    response = await client.delete(f"/api/v1/registrations/{test_event.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["updatedEvent"]["capacity"] == 100

    event_response = await client.get(f"/api/v1/events/{test_event.id}")
    assert event_response.json()["capacity"] == 100


@pytest.mark.asyncio
async def test_unregister_when_not_registered(client: AsyncClient, auth_headers, test_event):
    response = await client.delete(f"/api/v1/registrations/{test_event.id}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["type"] == "RegistrationNotFound"


@pytest.mark.asyncio
async def test_list_my_registrations(client: AsyncClient, auth_headers, test_user, event_factory, organizer):
    for i in range(3):
        event = await event_factory(organizer, title=f"Meetup {i}")
        response = await client.post(
            "/api/v1/registrations/",
            json={"userId": test_user.id, "eventId": event.id},
            headers=auth_headers,
        )
        assert response.status_code == 201

    response = await client.get("/api/v1/registrations/?page=1&pageSize=2", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["registrations"]) == 2
    assert data["pagination"] == {
        "currentPage": 1,
        "pageSize": 2,
        "totalRecords": 3,
        "totalPages": 2,
        "hasNextPage": True,
    }


@pytest.mark.asyncio
async def test_list_registrations_page_size_is_capped(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/registrations/?pageSize=500", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["pagination"]["pageSize"] == 50


@pytest.mark.asyncio
async def test_list_registrations_rejects_page_zero(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/registrations/?page=0", headers=auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_bulk_register_as_organizer(client: AsyncClient, organizer_headers, user_factory, test_event):
    users = [await user_factory() for _ in range(4)]
    response = await client.post(
        "/api/v1/registrations/bulk",
        json={"userIds": [u.id for u in users], "eventId": test_event.id},
        headers=organizer_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["registrationsCreated"] == 4
    assert data["duplicatesSkipped"] == 0
    assert data["updatedEvent"]["capacity"] == 96


@pytest.mark.asyncio
async def test_bulk_register_forbidden_for_attendee(client: AsyncClient, auth_headers, test_user, test_event):
    response = await client.post(
        "/api/v1/registrations/bulk",
        json={"userIds": [test_user.id], "eventId": test_event.id},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_bulk_register_insufficient_capacity(
    client: AsyncClient, organizer, organizer_headers, user_factory, event_factory
):
    event = await event_factory(organizer, capacity=1)
    users = [await user_factory() for _ in range(2)]
    response = await client.post(
        "/api/v1/registrations/bulk",
        json={"userIds": [u.id for u in users], "eventId": event.id},
        headers=organizer_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["type"] == "InsufficientCapacity"


@pytest.mark.asyncio
async def test_bulk_register_unknown_event_uses_result_shape(client: AsyncClient, organizer_headers, test_user):
    response = await client.post(
        "/api/v1/registrations/bulk",
        json={"userIds": [test_user.id], "eventId": "no-such-event"},
        headers=organizer_headers,
    )
    assert response.status_code == 404
    data = response.json()
    assert data["success"] is False
    assert data["error"]["type"] == "EventNotFound"
    assert data["error"]["rolledBack"] is True
