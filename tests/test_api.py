"""HTTP tests through the ASGI app."""

import pytest

from tests.conftest import PASSWORD


async def signup(client, email_sender, email, first_name="Ada"):
    """Register, verify and log in; returns auth headers."""
    response = await client.post(
        "/auth/register",
        json={"email": email, "password": PASSWORD, "firstName": first_name, "lastName": "Tester"},
    )
    assert response.status_code == 201, response.text
    token = email_sender.verifications[-1]["token"]

    response = await client.post("/auth/verify-email", json={"token": token})
    assert response.status_code == 201, response.text

    response = await client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
async def admin_headers(client, email_sender):
    return await signup(client, email_sender, "admin@example.com")


@pytest.fixture
async def workspace(client, admin_headers):
    response = await client.post(
        "/workspaces",
        json={"name": "HQ", "timezone": "UTC", "scheduleStartHour": 8, "scheduleEndHour": 18},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def room(client, admin_headers, workspace):
    response = await client.post(
        f"/workspaces/{workspace['id']}/rooms",
        json={"name": "Turing", "description": "Ground floor"},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    """Test health and request ids."""

    async def test_healthz(self, client):
        """Test the health endpoint."""
        response = await client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_request_id_is_echoed(self, client):
        """Test that X-Request-ID is echoed back."""
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestAuthEndpoints:
    """Test auth routes."""

    async def test_register_response(self, client):
        """Test the registration response body."""
        response = await client.post(
            "/auth/register",
            json={"email": "new@example.com", "password": PASSWORD, "firstName": "N", "lastName": "P"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "new@example.com"
        assert body["requiresEmailVerification"] is True
        assert "userId" in body

    async def test_login_before_verification(self, client):
        """Test login before verifying the email."""
        await client.post(
            "/auth/register",
            json={"email": "new@example.com", "password": PASSWORD, "firstName": "N", "lastName": "P"},
        )
        response = await client.post("/auth/login", json={"email": "new@example.com", "password": PASSWORD})
        assert response.status_code == 403
        assert response.json()["code"] == "EMAIL_NOT_VERIFIED"

    async def test_duplicate_registration(self, client, admin_headers):
        """Test registering an existing email."""
        response = await client.post(
            "/auth/register",
            json={"email": "admin@example.com", "password": PASSWORD, "firstName": "A", "lastName": "B"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_ALREADY_REGISTERED"

    async def test_wrong_password(self, client, admin_headers):
        """Test login with the wrong password."""
        response = await client.post(
            "/auth/login", json={"email": "admin@example.com", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    async def test_me_and_logout(self, client, admin_headers):
        """Test /auth/me and logout."""
        response = await client.get("/auth/me", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "admin@example.com"

        response = await client.post("/auth/logout", headers=admin_headers)
        assert response.json() == {"loggedOut": True}

        response = await client.get("/auth/me", headers=admin_headers)
        assert response.status_code == 401

    async def test_missing_token(self, client):
        """Test a request without a session."""
        response = await client.get("/workspaces")
        assert response.status_code == 401
        assert response.json() == {"code": "UNAUTHORIZED", "message": "Invalid access token"}

    async def test_malformed_body(self, client):
        """Test a request body that fails validation."""
        response = await client.post("/auth/login", json={"email": "a@example.com"})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "BAD_REQUEST"
        assert "password" in body["message"]


class TestWorkspaceEndpoints:
    """Test workspace routes."""

    async def test_create_returns_membership(self, workspace):
        """Test that creation returns the admin membership."""
        assert workspace["name"] == "HQ"
        assert workspace["scheduleStartHour"] == 8
        assert workspace["membership"] == {"role": "ADMIN", "status": "ACTIVE"}

    async def test_list_and_update(self, client, admin_headers, workspace):
        """Test listing and updating a workspace."""
        response = await client.get("/workspaces", headers=admin_headers)
        items = response.json()["items"]
        assert [item["id"] for item in items] == [workspace["id"]]
        assert items[0]["invitation"] is None

        response = await client.patch(
            f"/workspaces/{workspace['id']}", json={"timezone": "Europe/Paris"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["timezone"] == "Europe/Paris"

    async def test_invalid_workspace_id(self, client, admin_headers):
        """Test a malformed workspace id in the path."""
        response = await client.get("/workspaces/not-a-uuid/rooms", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    async def test_invitation_flow(self, client, email_sender, admin_headers, workspace):
        """Test invite, list, accept over HTTP."""
        guest_headers = await signup(client, email_sender, "guest@example.com", first_name="Grace")
        wid = workspace["id"]

        response = await client.post(
            f"/workspaces/{wid}/invitations", json={"email": "Guest@Example.com"}, headers=admin_headers
        )
        assert response.status_code == 201, response.text
        invitation = response.json()
        assert invitation["status"] == "PENDING"
        assert "token" not in invitation and "tokenHash" not in invitation

        # Invited but not yet a member
        response = await client.get(f"/workspaces/{wid}/rooms", headers=guest_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "UNAUTHORIZED"

        response = await client.get("/workspaces", headers=guest_headers)
        item = response.json()["items"][0]
        assert item["membership"] is None
        assert item["invitation"]["id"] == invitation["id"]

        response = await client.post(
            f"/workspaces/invitations/{invitation['id']}/accept", headers=guest_headers
        )
        assert response.status_code == 201
        assert response.json() == {"accepted": True}

        response = await client.get(f"/workspaces/{wid}/members", headers=admin_headers)
        assert [m["email"] for m in response.json()["items"]] == ["admin@example.com", "guest@example.com"]

        response = await client.post(
            f"/workspaces/invitations/{invitation['id']}/reject", headers=guest_headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVITATION_NOT_PENDING"

    async def test_cancel_workspace(self, client, admin_headers, workspace):
        """Test confirmed workspace deletion over HTTP."""
        url = f"/workspaces/{workspace['id']}/cancel"
        response = await client.post(
            url,
            json={"workspaceName": "HQ", "email": "admin@example.com", "password": "nope-nope"},
            headers=admin_headers,
        )
        assert response.status_code == 403
        assert response.json()["code"] == "WORKSPACE_CANCEL_CONFIRMATION_FAILED"

        response = await client.post(
            url,
            json={"workspaceName": "HQ", "email": "admin@example.com", "password": PASSWORD},
            headers=admin_headers,
        )
        assert response.json() == {"deleted": True}

        response = await client.get("/workspaces", headers=admin_headers)
        assert response.json()["items"] == []


class TestRoomEndpoints:
    """Test room routes."""

    async def test_room_crud(self, client, admin_headers, workspace, room):
        """Test create, read, update and delete."""
        base = f"/workspaces/{workspace['id']}/rooms"
        assert room["name"] == "Turing"

        response = await client.post(base, json={"name": "Turing"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "ROOM_NAME_ALREADY_EXISTS"

        response = await client.patch(
            f"{base}/{room['id']}", json={"description": None}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["description"] is None
        assert response.json()["name"] == "Turing"

        response = await client.delete(f"{base}/{room['id']}", headers=admin_headers)
        assert response.json() == {"deleted": True}

        response = await client.get(f"{base}/{room['id']}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestBookingEndpoints:
    """Test booking routes."""

    async def _book(self, client, headers, workspace, room, start, end):
        return await client.post(
            f"/workspaces/{workspace['id']}/bookings",
            json={"roomId": room["id"], "startAt": start, "endAt": end, "subject": "Standup"},
            headers=headers,
        )

    async def test_booking_flow(self, client, admin_headers, workspace, room):
        """Test create, list and cancel."""
        response = await self._book(
            client, admin_headers, workspace, room, "2026-02-23T10:00:00Z", "2026-02-23T11:00:00Z"
        )
        assert response.status_code == 201, response.text
        booking = response.json()
        assert booking["criticality"] == "MEDIUM"
        assert booking["status"] == "ACTIVE"

        response = await self._book(
            client, admin_headers, workspace, room, "2026-02-23T10:30:00Z", "2026-02-23T11:30:00Z"
        )
        assert response.status_code == 409
        assert response.json()["code"] == "BOOKING_OVERLAP"

        response = await client.get(f"/workspaces/{workspace['id']}/bookings", headers=admin_headers)
        items = response.json()["items"]
        assert [item["id"] for item in items] == [booking["id"]]
        assert items[0]["roomName"] == "Turing"

        response = await client.post(
            f"/workspaces/{workspace['id']}/bookings/{booking['id']}/cancel", headers=admin_headers
        )
        assert response.status_code == 201
        assert response.json()["status"] == "CANCELLED"

        response = await client.get(
            f"/workspaces/{workspace['id']}/bookings",
            params={"includeCancelled": "true"},
            headers=admin_headers,
        )
        assert [item["status"] for item in response.json()["items"]] == ["CANCELLED"]

    async def test_rule_violations_are_bad_requests(self, client, admin_headers, workspace, room):
        """Test that rule violations map to 400."""
        response = await self._book(
            client, admin_headers, workspace, room, "2026-02-23T06:00:00Z", "2026-02-23T07:00:00Z"
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BOOKING_OUTSIDE_ALLOWED_HOURS"

        response = await self._book(
            client, admin_headers, workspace, room, "2026-02-20T10:00:00Z", "2026-02-20T11:00:00Z"
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BOOKING_PAST_DATE_NOT_ALLOWED"

    async def test_invalid_boolean_query(self, client, admin_headers, workspace):
        """Test a bad boolean query parameter."""
        response = await client.get(
            f"/workspaces/{workspace['id']}/bookings", params={"mine": "maybe"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"
